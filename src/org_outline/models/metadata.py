"""Cross-document metadata snapshot."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GlobalMetadata:
    """Tags, categories and property keys seen across all loaded documents.

    ``property_keys`` maps each key to a sample of the values observed for it.
    Counts are the number of documents in which a tag or category occurs.
    """

    tags: frozenset[str] = frozenset()
    categories: frozenset[str] = frozenset()
    property_keys: dict[str, frozenset[str]] = field(default_factory=dict)
    tag_counts: dict[str, int] = field(default_factory=dict)
    category_counts: dict[str, int] = field(default_factory=dict)

    def tags_by_count(self) -> list[tuple[str, int]]:
        return sorted(self.tag_counts.items(), key=lambda item: (-item[1], item[0]))

    def categories_by_count(self) -> list[tuple[str, int]]:
        return sorted(self.category_counts.items(), key=lambda item: (-item[1], item[0]))
