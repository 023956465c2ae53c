"""Domain models for parsed org documents."""

from collections.abc import Iterator
from dataclasses import dataclass, field

from org_outline.models.records import ParseWarning
from org_outline.models.timestamp import Planning
from org_outline.models.todo import StatusClass, TodoKeywordConfig


@dataclass(frozen=True)
class Title:
    """A headline title split into its org components.

    ``raw`` is everything after the stars. ``keyword_token`` is the leading word
    of ``raw`` and is kept so titles can be reclassified without re-parsing.
    """

    raw: str
    text: str
    keyword_token: str | None = None
    keyword: str | None = None
    status: StatusClass = StatusClass.NONE
    priority: str | None = None
    tags: tuple[str, ...] = ()
    properties: dict[str, str] = field(default_factory=dict)
    planning: Planning = field(default_factory=Planning)


@dataclass(frozen=True)
class Headline:
    """A node of the outline. Children are owned; the parent is found via the index."""

    id: str
    document_id: str
    level: int
    title: Title
    body: str = ""
    children: tuple["Headline", ...] = ()
    etag: str = ""
    source_level: int = 0
    line: int = 0

    @property
    def is_task(self) -> bool:
        return self.title.keyword is not None

    @property
    def is_note(self) -> bool:
        return self.title.keyword is None

    def iter_subtree(self) -> Iterator["Headline"]:
        """Yield this headline and its descendants in document order."""
        stack = [self]
        while stack:
            headline = stack.pop()
            yield headline
            stack.extend(reversed(headline.children))


@dataclass(frozen=True)
class Document:
    """One source file's parsed result. Replaced wholesale on re-parse."""

    id: str
    path: str
    title: str
    preamble: str = ""
    headlines: tuple[Headline, ...] = ()
    filetags: tuple[str, ...] = ()
    properties: dict[str, str] = field(default_factory=dict)
    category: str = ""
    etag: str = ""
    todo_config: TodoKeywordConfig = field(default_factory=TodoKeywordConfig.default)
    has_own_todo_config: bool = False
    source_hash: str = ""
    warnings: tuple[ParseWarning, ...] = ()

    def iter_headlines(self) -> Iterator[Headline]:
        """Yield every headline in document order."""
        for root in self.headlines:
            yield from root.iter_subtree()

    @property
    def headline_count(self) -> int:
        return sum(1 for _ in self.iter_headlines())
