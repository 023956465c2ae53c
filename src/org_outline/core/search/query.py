"""Declarative filter, sort and group evaluation over headlines.

Evaluation never mutates the model and never reads the clock; callers pass
``now`` explicitly.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Literal

from org_outline.config import DEFAULT_PRIORITIES
from org_outline.core.pipeline import IndexedDocument
from org_outline.models.node import Document, Headline
from org_outline.models.timestamp import Timestamp, end_date, start_date
from org_outline.models.todo import StatusClass

Window = Literal["today", "this_week", "overdue"]
DateField = Literal["scheduled", "deadline", "any"]
CompareOp = Literal["eq", "ne", "lt", "le", "gt", "ge", "contains", "exists"]

SORT_FIELDS = frozenset(
    {"priority", "title", "keyword", "status", "scheduled", "deadline", "level", "document", "category"}
)
GROUP_FIELDS = frozenset({"status", "keyword", "priority", "tag", "category", "document"})
WINDOWS = ("today", "this_week", "overdue")


@dataclass(frozen=True)
class HeadlineEntry:
    """A headline paired with the indexed document that owns it."""

    headline: Headline
    indexed: IndexedDocument

    @property
    def document(self) -> Document:
        return self.indexed.document

    @property
    def effective_tags(self) -> tuple[str, ...]:
        return self.indexed.resolver.effective_tags(self.headline)

    def resolve(self, key: str) -> str | None:
        return self.indexed.resolver.resolve(self.headline, key)

    @property
    def category(self) -> str:
        return self.indexed.resolver.category(self.headline)


def entries_for(documents: Iterable[IndexedDocument]) -> list[HeadlineEntry]:
    """All headlines of the given documents, in document order."""
    return [
        HeadlineEntry(headline=headline, indexed=indexed)
        for indexed in documents
        for headline in indexed.document.iter_headlines()
    ]


# --- Predicates ---


@dataclass(frozen=True)
class StatusIn:
    statuses: frozenset[StatusClass]

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        return entry.headline.title.status in self.statuses


@dataclass(frozen=True)
class KeywordIn:
    keywords: frozenset[str]

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        return entry.headline.title.keyword in self.keywords


@dataclass(frozen=True)
class HasTag:
    tag: str
    inherited: bool = True

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        tags = entry.effective_tags if self.inherited else entry.headline.title.tags
        return self.tag in tags


def _as_number(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class PropertyCompare:
    """Compare a resolved property value.

    Comparison is numeric when both sides parse as numbers. A missing value
    only satisfies ``ne``.
    """

    key: str
    op: CompareOp = "eq"
    value: str = ""

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        actual = entry.resolve(self.key)
        if self.op == "exists":
            return actual is not None
        if actual is None:
            return self.op == "ne"
        if self.op == "contains":
            return self.value.lower() in actual.lower()

        left: float | str = actual
        right: float | str = self.value
        left_number, right_number = _as_number(actual), _as_number(self.value)
        if left_number is not None and right_number is not None:
            left, right = left_number, right_number
        match self.op:
            case "eq":
                return left == right
            case "ne":
                return left != right
            case "lt":
                return left < right
            case "le":
                return left <= right
            case "gt":
                return left > right
            case "ge":
                return left >= right
        msg = f"Unknown comparison operator {self.op!r}"
        raise ValueError(msg)


def _in_window(ts: Timestamp, window: Window, now: date) -> bool:
    start, end = start_date(ts), end_date(ts)
    if start is None or end is None:
        return False
    match window:
        case "today":
            return start <= now <= end
        case "this_week":
            return start <= now + timedelta(days=7) and end >= now
        case "overdue":
            return end < now
    msg = f"Unknown date window {window!r}"
    raise ValueError(msg)


@dataclass(frozen=True)
class DateWindow:
    """Match planning timestamps against a window relative to ``now``.

    The field defaults to ``scheduled`` for ``today`` and ``this_week`` and to
    ``deadline`` for ``overdue``. ``any`` checks both.
    """

    window: Window
    field: DateField | None = None

    @property
    def fields(self) -> tuple[str, ...]:
        chosen = self.field or ("deadline" if self.window == "overdue" else "scheduled")
        return ("scheduled", "deadline") if chosen == "any" else (chosen,)

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        planning = entry.headline.title.planning
        for name in self.fields:
            ts = planning.get(name)
            if ts is not None and _in_window(ts, self.window, now):
                return True
        return False


@dataclass(frozen=True)
class TextMatch:
    """All words must occur, case-insensitively, in the title (and body)."""

    text: str
    include_body: bool = True

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        haystack = entry.headline.title.text
        if self.include_body:
            haystack = f"{haystack}\n{entry.headline.body}"
        haystack = haystack.lower()
        return all(word in haystack for word in self.text.lower().split())


@dataclass(frozen=True)
class LevelIs:
    level: int

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        return entry.headline.level == self.level


@dataclass(frozen=True)
class InDocument:
    """Match by document id, path or title."""

    document: str

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        doc = entry.document
        return self.document in (doc.id, doc.path, doc.title)


@dataclass(frozen=True)
class All:
    predicates: tuple["Predicate", ...]

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        return all(p.matches(entry, now) for p in self.predicates)


@dataclass(frozen=True)
class Any:
    predicates: tuple["Predicate", ...]

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        return any(p.matches(entry, now) for p in self.predicates)


@dataclass(frozen=True)
class Not:
    predicate: "Predicate"

    def matches(self, entry: HeadlineEntry, now: date) -> bool:
        return not self.predicate.matches(entry, now)


Predicate = (
    StatusIn | KeywordIn | HasTag | PropertyCompare | DateWindow | TextMatch
    | LevelIs | InDocument | All | Any | Not
)


# --- Specs and results ---


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class QuerySpec:
    predicate: Predicate | None = None
    sort: tuple[SortKey, ...] = ()
    group_by: str | None = None
    limit: int | None = None


@dataclass(frozen=True)
class QueryGroup:
    key: str | None
    entries: tuple[HeadlineEntry, ...]


@dataclass(frozen=True)
class QueryResult:
    headlines: tuple[HeadlineEntry, ...]
    groups: tuple[QueryGroup, ...] = ()


def _planning_key(ts: Timestamp | None) -> tuple[date, int, int] | None:
    if ts is None:
        return None
    start = start_date(ts)
    if start is None:
        return None
    # Only single and range variants reach here; all carry a start Datetime.
    begin = ts.start  # type: ignore[union-attr]
    return (start, begin.hour if begin.hour is not None else -1, begin.minute or 0)


_STATUS_RANK = {StatusClass.ACTIVE: 0, StatusClass.CLOSED: 1, StatusClass.NONE: 2}


def _sort_value(entry: HeadlineEntry, field: str, priorities: tuple[str, ...]) -> object:
    title = entry.headline.title
    match field:
        case "priority":
            return priorities.index(title.priority) if title.priority in priorities else None
        case "title":
            return title.text.lower()
        case "keyword":
            return entry.document.todo_config.order_of(title.keyword)
        case "status":
            return _STATUS_RANK[title.status]
        case "scheduled" | "deadline":
            return _planning_key(title.planning.get(field))
        case "level":
            return entry.headline.level
        case "document":
            return entry.document.title.lower()
        case "category":
            return entry.category.lower()
    if field.startswith("property:"):
        value = entry.resolve(field.removeprefix("property:"))
        if value is None:
            return None
        number = _as_number(value)
        return (0, number, "") if number is not None else (1, 0.0, value.lower())
    msg = f"Unknown sort field {field!r}"
    raise ValueError(msg)


def sort_entries(
    entries: list[HeadlineEntry],
    keys: tuple[SortKey, ...],
    *,
    priorities: tuple[str, ...] = DEFAULT_PRIORITIES,
) -> list[HeadlineEntry]:
    """Stable multi-key sort. Missing values sort last in both directions."""
    result = list(entries)
    for key in reversed(keys):
        values = [(entry, _sort_value(entry, key.field, priorities)) for entry in result]
        present = [(e, v) for e, v in values if v is not None]
        missing = [e for e, v in values if v is None]
        present.sort(key=lambda pair: pair[1], reverse=key.descending)
        result = [e for e, _ in present] + missing
    return result


def _group_keys(entry: HeadlineEntry, group_by: str) -> list[str | None]:
    title = entry.headline.title
    match group_by:
        case "status":
            return [title.status.value]
        case "keyword":
            return [title.keyword]
        case "priority":
            return [title.priority]
        case "tag":
            return list(entry.effective_tags) or [None]
        case "category":
            return [entry.category]
        case "document":
            return [entry.document.title]
    if group_by.startswith("property:"):
        return [entry.resolve(group_by.removeprefix("property:"))]
    msg = f"Unknown group field {group_by!r}"
    raise ValueError(msg)


def group_entries(entries: Iterable[HeadlineEntry], group_by: str) -> tuple[QueryGroup, ...]:
    """Group entries, keeping groups in order of first appearance."""
    groups: dict[str | None, list[HeadlineEntry]] = {}
    for entry in entries:
        for key in _group_keys(entry, group_by):
            groups.setdefault(key, []).append(entry)
    return tuple(QueryGroup(key=key, entries=tuple(items)) for key, items in groups.items())


def evaluate(
    entries: Iterable[HeadlineEntry],
    spec: QuerySpec,
    *,
    now: date | datetime,
    priorities: tuple[str, ...] = DEFAULT_PRIORITIES,
) -> QueryResult:
    """Filter, sort and group headlines.

    Args:
        entries: Candidate headlines, usually from entries_for().
        spec: Predicate, sort keys, grouping and limit.
        now: Reference date for date windows.
        priorities: Priority order for the ``priority`` sort key.

    Returns:
        QueryResult with the matching headlines and, if requested, their groups.
    """
    today = now.date() if isinstance(now, datetime) else now
    predicate = spec.predicate
    matched = [e for e in entries if predicate is None or predicate.matches(e, today)]
    ordered = sort_entries(matched, spec.sort, priorities=priorities)
    if spec.limit is not None:
        ordered = ordered[: spec.limit]
    groups = group_entries(ordered, spec.group_by) if spec.group_by else ()
    return QueryResult(headlines=tuple(ordered), groups=groups)


# --- Parsing specs from strings ---

_PROPERTY_FILTER_RE = re.compile(r"^(?P<key>[^=!<>~?]+)(?P<op>>=|<=|!=|=|<|>|~|\?)(?P<value>.*)$")
_OPS: dict[str, CompareOp] = {
    "=": "eq", "!=": "ne", "<": "lt", "<=": "le", ">": "gt", ">=": "ge", "~": "contains", "?": "exists",
}


def parse_sort(text: str) -> tuple[SortKey, ...]:
    """Parse ``"priority,-deadline"`` into sort keys; ``-`` means descending."""
    keys = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        descending = part.startswith("-")
        field = part.lstrip("-")
        if field not in SORT_FIELDS and not field.startswith("property:"):
            msg = f"Unknown sort field {field!r}"
            raise ValueError(msg)
        keys.append(SortKey(field=field, descending=descending))
    return tuple(keys)


def parse_property_filter(text: str) -> PropertyCompare:
    """Parse ``KEY=VALUE``, ``KEY>=3``, ``KEY~part`` or ``KEY?``."""
    m = _PROPERTY_FILTER_RE.match(text.strip())
    if m is None:
        msg = f"Invalid property filter {text!r}"
        raise ValueError(msg)
    return PropertyCompare(key=m.group("key").strip(), op=_OPS[m.group("op")], value=m.group("value"))


def parse_when(text: str) -> DateWindow:
    """Parse ``today``, ``this_week`` or ``overdue``, optionally ``:scheduled|deadline|any``."""
    window, _, field = text.strip().partition(":")
    if window not in WINDOWS:
        msg = f"Unknown date window {window!r}"
        raise ValueError(msg)
    if field and field not in ("scheduled", "deadline", "any"):
        msg = f"Unknown date field {field!r}"
        raise ValueError(msg)
    return DateWindow(window=window, field=field or None)  # type: ignore[arg-type]


def parse_spec(
    *,
    status: Iterable[str] = (),
    keyword: Iterable[str] = (),
    tags: Iterable[str] = (),
    when: str | None = None,
    properties: Iterable[str] = (),
    text: str | None = None,
    document: str | None = None,
    level: int | None = None,
    sort: str | None = None,
    group_by: str | None = None,
    limit: int | None = None,
) -> QuerySpec:
    """Build a QuerySpec from CLI or MCP style string arguments.

    All given filters must match.
    """
    predicates: list[Predicate] = []
    statuses = frozenset(StatusClass(s.lower()) for s in status)
    if statuses:
        predicates.append(StatusIn(statuses))
    keywords = frozenset(keyword)
    if keywords:
        predicates.append(KeywordIn(keywords))
    predicates.extend(HasTag(tag) for tag in tags)
    if when:
        predicates.append(parse_when(when))
    predicates.extend(parse_property_filter(p) for p in properties)
    if text:
        predicates.append(TextMatch(text))
    if document:
        predicates.append(InDocument(document))
    if level is not None:
        predicates.append(LevelIs(level))
    if group_by and group_by not in GROUP_FIELDS and not group_by.startswith("property:"):
        msg = f"Unknown group field {group_by!r}"
        raise ValueError(msg)

    predicate: Predicate | None = None
    if len(predicates) == 1:
        predicate = predicates[0]
    elif predicates:
        predicate = All(tuple(predicates))
    return QuerySpec(
        predicate=predicate,
        sort=parse_sort(sort) if sort else (),
        group_by=group_by,
        limit=limit,
    )

