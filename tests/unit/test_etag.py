"""Tests for headline and document fingerprints."""

import pytest

from org_outline.config import PipelineConfig
from org_outline.core.fingerprint.etag import ETAG_LENGTH
from org_outline.core.fingerprint.updates import diff_documents
from org_outline.core.pipeline import IndexedDocument, parse_document
from tests.unit.conftest import PROJECTS_ORG
from tests.unit.fakes import headline_by_text

PATH = "/notes/projects.org"


def _parse(text: str, config: PipelineConfig | None = None) -> IndexedDocument:
    return parse_document(text, path=PATH, config=config or PipelineConfig())


def _etags(indexed: IndexedDocument) -> dict[str, str]:
    return {h.title.text: h.etag for h in indexed.document.iter_headlines()}


def test_etags_are_filled_and_deterministic(projects: IndexedDocument) -> None:
    again = _parse(PROJECTS_ORG)
    assert _etags(projects) == _etags(again)
    assert projects.document.etag == again.document.etag
    assert all(len(etag) == ETAG_LENGTH for etag in _etags(projects).values())


def test_body_change_moves_self_and_ancestors_only(projects: IndexedDocument) -> None:
    changed = _parse(PROJECTS_ORG.replace("** Sub item\n", "** Sub item\nmore detail\n"))
    before, after = _etags(projects), _etags(changed)
    assert before["Sub item"] != after["Sub item"]
    assert before["Ship release"] != after["Ship release"]
    assert before["Review docs"] == after["Review docs"]
    assert before["Old task"] == after["Old task"]
    assert before["Standup"] == after["Standup"]
    assert projects.document.etag != changed.document.etag


def test_title_change_moves_self_and_ancestors_only(projects: IndexedDocument) -> None:
    changed = _parse(PROJECTS_ORG.replace("** Sub item\n", "** Sub task\n"))
    before, after = _etags(projects), _etags(changed)
    by_line = {h.line: h.etag for h in changed.document.iter_headlines()}
    sub = headline_by_text(projects, "Sub item")
    assert by_line[sub.line] != sub.etag
    assert before["Ship release"] != after["Ship release"]
    assert before["Review docs"] == after["Review docs"]
    assert before["Old task"] == after["Old task"]
    assert before["Meeting notes"] == after["Meeting notes"]
    assert projects.document.etag != changed.document.etag


def test_planning_change_moves_etag(projects: IndexedDocument) -> None:
    changed = _parse(PROJECTS_ORG.replace("<2025-01-17 Fri 09:00>", "<2025-01-17 Fri 10:00>"))
    before, after = _etags(projects), _etags(changed)
    assert before["Standup"] != after["Standup"]
    assert before["Meeting notes"] != after["Meeting notes"]
    assert before["Ship release"] == after["Ship release"]


def test_inherited_category_feeds_etag(projects: IndexedDocument) -> None:
    changed = _parse(PROJECTS_ORG.replace("#+CATEGORY: proj", "#+CATEGORY: other"))
    before, after = _etags(projects), _etags(changed)
    assert before["Old task"] != after["Old task"]
    # These resolve CATEGORY from their own drawer or their parent's.
    assert before["Meeting notes"] == after["Meeting notes"]
    assert before["Standup"] == after["Standup"]


def test_display_properties_feed_etag() -> None:
    text = "#+TITLE: T\n:PROPERTIES:\n:OWNER: a\n:END:\n* A\n"
    config = PipelineConfig(display_properties=("owner",))
    one = _parse(text, config)
    two = _parse(text.replace(":OWNER: a", ":OWNER: b"), config)
    assert _etags(one)["A"] != _etags(two)["A"]
    plain_one = _parse(text)
    plain_two = _parse(text.replace(":OWNER: a", ":OWNER: b"))
    assert _etags(plain_one)["A"] == _etags(plain_two)["A"]
    assert plain_one.document.etag != plain_two.document.etag


def test_diff_documents_reports_changes(projects: IndexedDocument) -> None:
    changed = _parse(
        PROJECTS_ORG.replace("** Sub item\n", "** Sub item\nmore detail\n").replace(
            "* DONE Old task\nCLOSED: [2025-01-02 Thu 10:00]\n", "* Fresh\n"
        )
    )
    update = diff_documents(projects.document, changed.document)
    sub = headline_by_text(projects, "Sub item")
    ship = headline_by_text(projects, "Ship release")
    old = headline_by_text(projects, "Old task")
    fresh = headline_by_text(changed, "Fresh")
    assert set(update.changed) == {sub.id, ship.id}
    assert update.removed == (old.id,)
    assert update.added == (fresh.id,)
    assert update.document_id == projects.id


def test_diff_documents_first_publication_and_removal(projects: IndexedDocument) -> None:
    added = diff_documents(None, projects.document)
    assert len(added.added) == projects.document.headline_count
    removed = diff_documents(projects.document, None)
    assert len(removed.removed) == projects.document.headline_count
    assert diff_documents(projects.document, projects.document).is_empty
    with pytest.raises(ValueError):
        diff_documents(None, None)
