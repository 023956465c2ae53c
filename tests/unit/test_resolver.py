"""Tests for property, category and tag resolution."""

import pytest

from org_outline.config import PipelineConfig
from org_outline.core.pipeline import IndexedDocument, parse_document
from org_outline.core.properties.resolver import PropertyResolver
from tests.unit.fakes import headline_by_text


def test_own_value_wins(projects: IndexedDocument) -> None:
    ship = headline_by_text(projects, "Ship release")
    assert projects.resolver.resolve(ship, "EFFORT") == "3"
    assert projects.resolver.resolve(ship, "effort") == "3"


def test_inherits_from_nearest_ancestor(projects: IndexedDocument) -> None:
    sub = headline_by_text(projects, "Sub item")
    standup = headline_by_text(projects, "Standup")
    assert projects.resolver.resolve(sub, "EFFORT") == "3"
    assert projects.resolver.resolve(standup, "OWNER") == "alice"


def test_falls_back_to_document(projects: IndexedDocument) -> None:
    old = headline_by_text(projects, "Old task")
    assert projects.resolver.resolve(old, "OWNER") == "team"
    assert projects.resolver.resolve(old, "STARTUP") == "overview"
    assert projects.resolver.resolve(old, "MISSING") is None


def test_always_local_keys_do_not_inherit(projects: IndexedDocument) -> None:
    ship = headline_by_text(projects, "Ship release")
    sub = headline_by_text(projects, "Sub item")
    assert projects.resolver.resolve(ship, "ID") == "ship-release"
    assert projects.resolver.resolve(sub, "ID") is None


def test_non_inheritable_keys_skip_ancestors(projects: IndexedDocument) -> None:
    resolver = PropertyResolver(
        projects.document, projects.navigation, non_inheritable=frozenset({"effort", "owner"})
    )
    sub = headline_by_text(projects, "Sub item")
    standup = headline_by_text(projects, "Standup")
    assert resolver.resolve(sub, "EFFORT") is None
    # The document level still applies.
    assert resolver.resolve(standup, "OWNER") == "team"


def test_category(projects: IndexedDocument) -> None:
    resolver = projects.resolver
    assert resolver.category(headline_by_text(projects, "Ship release")) == "proj"
    assert resolver.category(headline_by_text(projects, "Meeting notes")) == "meetings"
    assert resolver.category(headline_by_text(projects, "Standup")) == "meetings"


def test_effective_tags(projects: IndexedDocument) -> None:
    resolver = projects.resolver
    assert resolver.effective_tags(headline_by_text(projects, "Sub item")) == ("work", "urgent")
    assert resolver.effective_tags(headline_by_text(projects, "Review docs")) == (
        "work",
        "urgent",
        "docs",
    )
    assert resolver.effective_tags(headline_by_text(projects, "Standup")) == ("work",)


def test_effective_properties(projects: IndexedDocument) -> None:
    standup = headline_by_text(projects, "Standup")
    assert projects.resolver.effective_properties(standup) == {
        "CATEGORY": "meetings",
        "EFFORT": "0.5",
        "OWNER": "alice",
        "STARTUP": "overview",
    }
    sub = headline_by_text(projects, "Sub item")
    assert "ID" not in projects.resolver.all_effective_keys(sub)


def _drawer(value: str | None) -> str:
    return f":PROPERTIES:\n:P: {value}\n:END:\n" if value else ""


@pytest.mark.parametrize(
    ("ancestor", "leaf", "expected"),
    [("2", "3", "3"), ("2", None, "2"), (None, None, "1")],
)
def test_precedence_as_overrides_are_removed(
    ancestor: str | None, leaf: str | None, expected: str, config: PipelineConfig
) -> None:
    text = f"{_drawer('1')}* Parent\n{_drawer(ancestor)}** Leaf\n{_drawer(leaf)}"
    indexed = parse_document(text, path="/notes/p.org", config=config)
    leaf_headline = headline_by_text(indexed, "Leaf")
    assert indexed.resolver.resolve(leaf_headline, "P") == expected
