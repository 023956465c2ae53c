"""Resolve effective properties, categories and tags of headlines."""

from collections.abc import Mapping

from org_outline.config import ALWAYS_LOCAL_PROPERTIES
from org_outline.core.tree.navigation import NavigationIndex
from org_outline.models.node import Document, Headline


def _lookup(properties: Mapping[str, str], upper: str) -> str | None:
    value = properties.get(upper)
    if value is not None:
        return value
    for key, candidate in properties.items():
        if key.upper() == upper:
            return candidate
    return None


class PropertyResolver:
    """Resolve property values with org inheritance rules.

    Precedence is the headline's own drawer, then the nearest ancestor that
    defines the key, then the document level. Keys compare case-insensitively.
    """

    def __init__(
        self,
        document: Document,
        index: NavigationIndex,
        *,
        non_inheritable: frozenset[str] = frozenset(),
    ) -> None:
        self.document = document
        self.index = index
        self.non_inheritable = frozenset(k.upper() for k in non_inheritable)

    def _document_value(self, upper: str) -> str | None:
        value = _lookup(self.document.properties, upper)
        if value is None and upper == "CATEGORY":
            return self.document.category or None
        return value

    def _inherits(self, upper: str) -> bool:
        return upper not in ALWAYS_LOCAL_PROPERTIES and upper not in self.non_inheritable

    def resolve(self, headline: Headline, key: str) -> str | None:
        """Return the effective value of ``key`` for a headline, or None."""
        upper = key.upper()
        own = _lookup(headline.title.properties, upper)
        if own is not None:
            return own
        if upper in ALWAYS_LOCAL_PROPERTIES:
            return None
        if self._inherits(upper):
            for ancestor in reversed(self.index.ancestors(headline.id)):
                value = _lookup(ancestor.title.properties, upper)
                if value is not None:
                    return value
        return self._document_value(upper)

    def all_effective_keys(self, headline: Headline) -> tuple[str, ...]:
        """All keys that resolve to a value for this headline, sorted."""
        keys = {k.upper() for k in headline.title.properties}
        for ancestor in self.index.ancestors(headline.id):
            keys.update(upper for k in ancestor.title.properties if self._inherits(upper := k.upper()))
        keys.update(
            upper
            for k in self.document.properties
            if (upper := k.upper()) not in ALWAYS_LOCAL_PROPERTIES
        )
        if self.document.category:
            keys.add("CATEGORY")
        return tuple(sorted(keys))

    def effective_properties(self, headline: Headline) -> dict[str, str]:
        properties: dict[str, str] = {}
        for key in self.all_effective_keys(headline):
            value = self.resolve(headline, key)
            if value is not None:
                properties[key] = value
        return properties

    def category(self, headline: Headline) -> str:
        return self.resolve(headline, "CATEGORY") or self.document.category

    def effective_tags(self, headline: Headline) -> tuple[str, ...]:
        """File tags, then ancestor tags, then own tags; first occurrence wins."""
        tags: dict[str, None] = dict.fromkeys(self.document.filetags)
        for ancestor in self.index.ancestors(headline.id):
            tags.update(dict.fromkeys(ancestor.title.tags))
        tags.update(dict.fromkeys(headline.title.tags))
        return tuple(tags)
