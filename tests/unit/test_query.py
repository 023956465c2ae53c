"""Tests for the headline query engine."""

from datetime import date, datetime

import pytest

from org_outline.config import PipelineConfig
from org_outline.core.pipeline import IndexedDocument, parse_document
from org_outline.core.search.query import (
    All,
    Any,
    DateWindow,
    HasTag,
    HeadlineEntry,
    InDocument,
    KeywordIn,
    LevelIs,
    Not,
    PropertyCompare,
    QuerySpec,
    SortKey,
    StatusIn,
    TextMatch,
    entries_for,
    evaluate,
    parse_property_filter,
    parse_sort,
    parse_spec,
    parse_when,
)
from org_outline.models.todo import StatusClass
from tests.unit.conftest import HOME_ORG

NOW = date(2025, 1, 15)


@pytest.fixture
def entries(projects: IndexedDocument, config: PipelineConfig) -> list[HeadlineEntry]:
    home = parse_document(HOME_ORG, path="/notes/home.org", config=config)
    return entries_for([projects, home])


def _texts(result_entries: tuple[HeadlineEntry, ...] | list[HeadlineEntry]) -> list[str]:
    return [e.headline.title.text for e in result_entries]


def _run(entries: list[HeadlineEntry], spec: QuerySpec, now: date = NOW) -> list[str]:
    return _texts(evaluate(entries, spec, now=now).headlines)


def test_no_predicate_returns_everything(entries: list[HeadlineEntry]) -> None:
    assert len(_run(entries, QuerySpec())) == 8


def test_status_and_keyword(entries: list[HeadlineEntry]) -> None:
    active = QuerySpec(predicate=StatusIn(frozenset({StatusClass.ACTIVE})))
    assert _run(entries, active) == ["Ship release", "Review docs", "Standup", "Buy milk"]
    closed = QuerySpec(predicate=StatusIn(frozenset({StatusClass.CLOSED})))
    assert _run(entries, closed) == ["Old task"]
    assert _run(entries, QuerySpec(predicate=KeywordIn(frozenset({"NEXT"})))) == ["Buy milk"]


def test_tags_inherited_and_local(entries: list[HeadlineEntry]) -> None:
    assert _run(entries, QuerySpec(predicate=HasTag("urgent"))) == [
        "Ship release",
        "Sub item",
        "Review docs",
    ]
    assert _run(entries, QuerySpec(predicate=HasTag("urgent", inherited=False))) == ["Ship release"]


def test_date_windows(entries: list[HeadlineEntry]) -> None:
    assert _run(entries, QuerySpec(predicate=DateWindow("today"))) == ["Ship release"]
    assert _run(entries, QuerySpec(predicate=DateWindow("this_week"))) == [
        "Ship release",
        "Standup",
    ]
    assert _run(entries, QuerySpec(predicate=DateWindow("overdue"))) == ["Review docs"]
    assert _run(entries, QuerySpec(predicate=DateWindow("overdue", "scheduled"))) == []
    assert _run(
        entries, QuerySpec(predicate=DateWindow("today", "deadline")), now=date(2025, 1, 20)
    ) == ["Buy milk"]


def test_this_week_includes_deadlines_with_any(entries: list[HeadlineEntry]) -> None:
    spec = QuerySpec(predicate=DateWindow("this_week", "any"))
    assert _run(entries, spec) == ["Ship release", "Standup", "Buy milk"]


@pytest.mark.parametrize(
    ("scheduled", "expected"),
    [("2025-01-22", ["Trip"]), ("2025-01-23", []), ("2025-01-14", [])],
)
def test_this_week_window_edges(scheduled: str, expected: list[str], config: PipelineConfig) -> None:
    doc = parse_document(f"* Trip\nSCHEDULED: <{scheduled}>\n", path="/notes/w.org", config=config)
    spec = QuerySpec(predicate=DateWindow("this_week"))
    assert _run(entries_for([doc]), spec) == expected


def test_datetime_now_is_reduced_to_date(entries: list[HeadlineEntry]) -> None:
    spec = QuerySpec(predicate=DateWindow("today"))
    result = evaluate(entries, spec, now=datetime(2025, 1, 15, 23, 59))
    assert _texts(result.headlines) == ["Ship release"]


def test_property_comparisons(entries: list[HeadlineEntry]) -> None:
    assert _run(entries, QuerySpec(predicate=PropertyCompare("EFFORT", "ge", "1"))) == [
        "Ship release",
        "Sub item",
        "Review docs",
    ]
    assert _run(entries, QuerySpec(predicate=PropertyCompare("effort", "lt", "1"))) == ["Standup"]
    assert _run(entries, QuerySpec(predicate=PropertyCompare("OWNER", "eq", "alice"))) == [
        "Meeting notes",
        "Standup",
    ]
    assert _run(entries, QuerySpec(predicate=PropertyCompare("ID", "exists"))) == ["Ship release"]
    assert _run(entries, QuerySpec(predicate=PropertyCompare("OWNER", "contains", "ALI"))) == [
        "Meeting notes",
        "Standup",
    ]


def test_missing_property_only_satisfies_not_equal(entries: list[HeadlineEntry]) -> None:
    ne = _run(entries, QuerySpec(predicate=PropertyCompare("OWNER", "ne", "alice")))
    assert "Buy milk" in ne
    assert "Standup" not in ne
    assert "Buy milk" not in _run(entries, QuerySpec(predicate=PropertyCompare("OWNER", "lt", "z")))


def test_text_match(entries: list[HeadlineEntry]) -> None:
    assert _run(entries, QuerySpec(predicate=TextMatch("release NOTES"))) == ["Ship release"]
    assert _run(entries, QuerySpec(predicate=TextMatch("release notes", include_body=False))) == []


def test_combinators(entries: list[HeadlineEntry]) -> None:
    either = Any((KeywordIn(frozenset({"NEXT"})), LevelIs(2)))
    assert _run(entries, QuerySpec(predicate=either)) == [
        "Sub item",
        "Review docs",
        "Standup",
        "Buy milk",
    ]
    both = All((InDocument("Home"), Not(StatusIn(frozenset({StatusClass.ACTIVE})))))
    assert _run(entries, QuerySpec(predicate=both)) == ["TODO Not a keyword here"]


def test_priority_sort_puts_missing_last(entries: list[HeadlineEntry]) -> None:
    active = StatusIn(frozenset({StatusClass.ACTIVE}))
    ascending = QuerySpec(predicate=active, sort=(SortKey("priority"),))
    assert _run(entries, ascending) == ["Ship release", "Standup", "Review docs", "Buy milk"]
    descending = QuerySpec(predicate=active, sort=(SortKey("priority", descending=True),))
    assert _run(entries, descending) == ["Standup", "Ship release", "Review docs", "Buy milk"]


def test_multi_key_sort_is_stable(entries: list[HeadlineEntry]) -> None:
    spec = QuerySpec(sort=(SortKey("level"), SortKey("title")))
    assert _run(entries, spec)[:5] == [
        "Buy milk",
        "Meeting notes",
        "Old task",
        "Ship release",
        "TODO Not a keyword here",
    ]


def test_sort_by_dates_and_properties(entries: list[HeadlineEntry]) -> None:
    by_scheduled = QuerySpec(
        predicate=StatusIn(frozenset({StatusClass.ACTIVE})), sort=(SortKey("scheduled"),)
    )
    assert _run(entries, by_scheduled) == ["Ship release", "Standup", "Review docs", "Buy milk"]
    by_effort = QuerySpec(predicate=PropertyCompare("EFFORT", "exists"), sort=parse_sort("property:EFFORT"))
    assert _run(entries, by_effort)[0] == "Standup"


def test_limit_applies_after_sort(entries: list[HeadlineEntry]) -> None:
    spec = QuerySpec(
        predicate=StatusIn(frozenset({StatusClass.ACTIVE})),
        sort=(SortKey("priority"),),
        limit=2,
    )
    assert _run(entries, spec) == ["Ship release", "Standup"]


def test_group_by_status_keeps_first_appearance_order(entries: list[HeadlineEntry]) -> None:
    result = evaluate(entries, QuerySpec(group_by="status"), now=NOW)
    assert [g.key for g in result.groups] == ["active", "none", "closed"]
    assert _texts(result.groups[2].entries) == ["Old task"]


def test_group_by_tag_allows_multiple_groups(entries: list[HeadlineEntry]) -> None:
    spec = QuerySpec(predicate=KeywordIn(frozenset({"TODO"})), group_by="tag")
    result = evaluate(entries, spec, now=NOW)
    groups = {g.key: _texts(g.entries) for g in result.groups}
    assert groups == {"work": ["Ship release", "Standup"], "urgent": ["Ship release"]}


def test_group_by_category(entries: list[HeadlineEntry]) -> None:
    spec = QuerySpec(predicate=StatusIn(frozenset({StatusClass.ACTIVE})), group_by="category")
    result = evaluate(entries, spec, now=NOW)
    assert {g.key: len(g.entries) for g in result.groups} == {"proj": 2, "meetings": 1, "home": 1}


def test_evaluate_does_not_mutate_entries(entries: list[HeadlineEntry]) -> None:
    snapshot = list(entries)
    evaluate(entries, QuerySpec(sort=(SortKey("title", descending=True),)), now=NOW)
    assert entries == snapshot


def test_parse_helpers() -> None:
    assert parse_sort("priority, -deadline") == (
        SortKey("priority"),
        SortKey("deadline", descending=True),
    )
    assert parse_property_filter("EFFORT>=2") == PropertyCompare("EFFORT", "ge", "2")
    assert parse_property_filter("OWNER?") == PropertyCompare("OWNER", "exists", "")
    assert parse_when("overdue") == DateWindow("overdue")
    assert parse_when("today:any") == DateWindow("today", "any")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"sort": "bogus"},
        {"group_by": "bogus"},
        {"when": "someday"},
        {"when": "today:closed"},
        {"status": ["bogus"]},
        {"properties": ["=value"]},
    ],
)
def test_parse_spec_rejects_bad_input(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        parse_spec(**kwargs)


def test_parse_spec_combines_filters(entries: list[HeadlineEntry]) -> None:
    spec = parse_spec(status=["active"], tags=["work"], sort="-priority", limit=5)
    assert isinstance(spec.predicate, All)
    assert _run(entries, spec) == ["Standup", "Ship release", "Review docs"]
    single = parse_spec(keyword=["NEXT"])
    assert single.predicate == KeywordIn(frozenset({"NEXT"}))
    assert parse_spec().predicate is None
