"""Tree navigation: parents, siblings, ancestors and breadcrumbs by headline id."""

from dataclasses import dataclass, field

from org_outline.models.node import Document, Headline


@dataclass(frozen=True)
class Breadcrumb:
    headline_id: str
    text: str
    level: int


@dataclass(frozen=True)
class NavigationIndex:
    """Id-keyed lookups for one document.

    Parent and sibling relations live here rather than on the headlines, so
    ownership of the tree flows strictly from roots to leaves. Top-level
    headlines are siblings of each other.
    """

    document_id: str
    headlines: dict[str, Headline] = field(default_factory=dict)
    parents: dict[str, str | None] = field(default_factory=dict)
    previous_ids: dict[str, str | None] = field(default_factory=dict)
    next_ids: dict[str, str | None] = field(default_factory=dict)
    positions: dict[str, int] = field(default_factory=dict)
    order: tuple[str, ...] = ()
    root_ids: tuple[str, ...] = ()

    @classmethod
    def build(cls, document: Document) -> "NavigationIndex":
        headlines: dict[str, Headline] = {}
        parents: dict[str, str | None] = {}
        previous_ids: dict[str, str | None] = {}
        next_ids: dict[str, str | None] = {}
        positions: dict[str, int] = {}
        order: list[str] = []

        def link_siblings(siblings: tuple[Headline, ...], parent_id: str | None) -> None:
            for i, headline in enumerate(siblings):
                parents[headline.id] = parent_id
                positions[headline.id] = i
                previous_ids[headline.id] = siblings[i - 1].id if i > 0 else None
                next_ids[headline.id] = siblings[i + 1].id if i + 1 < len(siblings) else None

        link_siblings(document.headlines, None)
        for headline in document.iter_headlines():
            headlines[headline.id] = headline
            order.append(headline.id)
            link_siblings(headline.children, headline.id)

        return cls(
            document_id=document.id,
            headlines=headlines,
            parents=parents,
            previous_ids=previous_ids,
            next_ids=next_ids,
            positions=positions,
            order=tuple(order),
            root_ids=tuple(h.id for h in document.headlines),
        )

    def by_id(self, headline_id: str) -> Headline:
        """Return a headline. Raises KeyError for unknown ids."""
        return self.headlines[headline_id]

    def __contains__(self, headline_id: object) -> bool:
        return headline_id in self.headlines

    def parent(self, headline_id: str) -> Headline | None:
        parent_id = self.parents.get(headline_id)
        return self.headlines[parent_id] if parent_id is not None else None

    def previous(self, headline_id: str) -> Headline | None:
        sibling_id = self.previous_ids.get(headline_id)
        return self.headlines[sibling_id] if sibling_id is not None else None

    def next(self, headline_id: str) -> Headline | None:
        sibling_id = self.next_ids.get(headline_id)
        return self.headlines[sibling_id] if sibling_id is not None else None

    def children(self, headline_id: str) -> tuple[Headline, ...]:
        headline = self.headlines.get(headline_id)
        return headline.children if headline is not None else ()

    def position(self, headline_id: str) -> int | None:
        """Index of a headline among its siblings."""
        return self.positions.get(headline_id)

    def ancestors(self, headline_id: str) -> tuple[Headline, ...]:
        """Ancestors from the root down to the immediate parent."""
        chain: list[Headline] = []
        parent_id = self.parents.get(headline_id)
        while parent_id is not None:
            chain.append(self.headlines[parent_id])
            parent_id = self.parents.get(parent_id)
        return tuple(reversed(chain))

    def breadcrumbs(self, headline_id: str) -> tuple[Breadcrumb, ...]:
        """Breadcrumbs from root to immediate parent (excludes the headline itself)."""
        return tuple(
            Breadcrumb(headline_id=h.id, text=h.title.text, level=h.level)
            for h in self.ancestors(headline_id)
        )

    def siblings(
        self, headline_id: str, count: int = 3
    ) -> tuple[tuple[Headline, ...], tuple[Headline, ...]]:
        """Get up to ``count`` siblings before and after a headline.

        Returns (siblings_before, siblings_after), both in document order.
        """
        before: list[Headline] = []
        sibling = self.previous(headline_id)
        while sibling is not None and len(before) < count:
            before.append(sibling)
            sibling = self.previous(sibling.id)
        after: list[Headline] = []
        sibling = self.next(headline_id)
        while sibling is not None and len(after) < count:
            after.append(sibling)
            sibling = self.next(sibling.id)
        return tuple(reversed(before)), tuple(after)
