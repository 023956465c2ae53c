"""Tests for building documents from events."""

from org_outline.config import PipelineConfig
from org_outline.core.importer.events import tokenize_and_adapt
from org_outline.core.importer.tokenizer import LineTokenizer
from org_outline.core.pipeline import IndexedDocument
from org_outline.core.tree.builder import UNTITLED, build_document, split_title
from org_outline.core.tree.identity import document_id_for
from org_outline.models.node import Document
from org_outline.models.records import WarningKind
from org_outline.models.timestamp import ActiveTimestamp, Datetime
from org_outline.models.todo import StatusClass, TodoKeywordConfig
from tests.unit.fakes import headline_by_text


def _build(text: str, path: str = "/notes/test.org", config: PipelineConfig | None = None) -> Document:
    adapted = tokenize_and_adapt(text, LineTokenizer())
    return build_document(
        adapted.events,
        path=path,
        config=config or PipelineConfig(),
        warnings=adapted.warnings,
    )


def test_task_with_priority_tags_and_schedule() -> None:
    doc = _build("* TODO [#A] Ship release :urgent:\nSCHEDULED: <2025-01-15>\n** Sub item\n")
    assert len(doc.headlines) == 1
    ship = doc.headlines[0]
    assert ship.level == 1
    assert ship.title.keyword == "TODO"
    assert ship.title.status is StatusClass.ACTIVE
    assert ship.title.priority == "A"
    assert ship.title.tags == ("urgent",)
    assert ship.title.text == "Ship release"
    assert ship.title.planning.scheduled == ActiveTimestamp(start=Datetime(2025, 1, 15))
    assert len(ship.children) == 1
    sub = ship.children[0]
    assert sub.level == 2
    assert sub.title.keyword is None
    assert sub.title.status is StatusClass.NONE


def test_document_level_settings(projects: IndexedDocument) -> None:
    doc = projects.document
    assert doc.id == document_id_for("/notes/projects.org")
    assert doc.path == "/notes/projects.org"
    assert doc.title == "Projects"
    assert doc.filetags == ("work",)
    assert doc.category == "proj"
    assert doc.properties == {"STARTUP": "overview", "OWNER": "team"}
    assert doc.preamble == "Intro text."
    assert doc.warnings == ()
    assert [h.title.text for h in doc.headlines] == ["Ship release", "Old task", "Meeting notes"]
    assert doc.headline_count == 6


def test_headline_parts(projects: IndexedDocument) -> None:
    ship = headline_by_text(projects, "Ship release")
    assert ship.body == "Release notes here."
    assert ship.title.properties == {"EFFORT": "3", "ID": "ship-release"}
    assert [c.title.text for c in ship.children] == ["Sub item", "Review docs"]
    review = headline_by_text(projects, "Review docs")
    assert review.title.keyword == "WAITING"
    assert review.title.planning.deadline is not None
    old = headline_by_text(projects, "Old task")
    assert old.title.status is StatusClass.CLOSED
    assert old.title.planning.closed is not None
    standup = headline_by_text(projects, "Standup")
    assert standup.title.priority == "B"
    assert standup.title.planning.scheduled.start.hour == 9


def test_level_jump_nests_under_nearest_shallower_headline() -> None:
    doc = _build("* A\n*** C\n** B\n")
    a = doc.headlines[0]
    assert [c.title.text for c in a.children] == ["C", "B"]
    c = a.children[0]
    assert c.level == 2
    assert c.source_level == 3
    assert a.children[1].level == 2


def test_deep_first_headline_becomes_root() -> None:
    doc = _build("*** Deep\n* Top\n")
    assert [h.title.text for h in doc.headlines] == ["Deep", "Top"]
    assert doc.headlines[0].level == 1
    assert doc.headlines[0].source_level == 3


def test_levels_follow_parents() -> None:
    doc = _build("* A\n** B\n*** C\n** D\n* E\n")
    for headline in doc.iter_headlines():
        for child in headline.children:
            assert child.level == headline.level + 1


def test_split_title_variants() -> None:
    config = TodoKeywordConfig.default()
    priorities = ("A", "B", "C")

    title = split_title("[#Z] odd priority", config, priorities)
    assert title.priority is None
    assert title.text == "[#Z] odd priority"

    title = split_title("todo lowercase", config, priorities)
    assert title.keyword is None
    assert title.keyword_token == "todo"

    title = split_title("DONE", config, priorities)
    assert title.keyword == "DONE"
    assert title.text == ""

    title = split_title("Plan :a:b@home:", config, priorities)
    assert title.tags == ("a", "b@home")
    assert title.text == "Plan"

    title = split_title("Ratio 1:2:3 stays", config, priorities)
    assert title.tags == ()


def test_property_append() -> None:
    doc = _build("* A\n:PROPERTIES:\n:var: a\n:VAR+: b\n:NEW+: c\n:END:\n")
    assert doc.headlines[0].title.properties == {"VAR": "a b", "NEW": "c"}


def test_keyword_inside_headline_is_body() -> None:
    doc = _build("* A\n#+BEGIN_QUOTE: x\ntext\n")
    assert doc.headlines[0].body == "#+BEGIN_QUOTE: x\ntext"


def test_title_fallbacks() -> None:
    assert _build("* A\n", path="/notes/inbox.org").title == "inbox"
    assert _build("#+TITLE: One\n#+TITLE: Two\n").title == "One Two"
    assert _build("* A\n", path="").title == UNTITLED


def test_category_falls_back_to_stem() -> None:
    assert _build("* A\n", path="/notes/inbox.org").category == "inbox"
    doc = _build(":PROPERTIES:\n:CATEGORY: fromdrawer\n:END:\n* A\n")
    assert doc.category == "fromdrawer"


def test_document_todo_keywords() -> None:
    doc = _build("#+TODO: NEXT | DONE\n* NEXT Buy milk\n* TODO Not a keyword here\n")
    assert doc.has_own_todo_config
    assert doc.todo_config == TodoKeywordConfig(active=("NEXT",), closed=("DONE",))
    buy, other = doc.headlines
    assert buy.title.keyword == "NEXT"
    assert other.is_note
    assert other.title.text == "TODO Not a keyword here"


def test_multiple_todo_lines_are_merged() -> None:
    doc = _build("#+TODO: TODO | DONE\n#+SEQ_TODO: REPORT BUG | FIXED\n* BUG crash\n")
    assert doc.todo_config.active == ("TODO", "REPORT", "BUG")
    assert doc.todo_config.closed == ("DONE", "FIXED")
    assert doc.headlines[0].title.keyword == "BUG"


def test_headline_ids_are_stable_under_sibling_insert() -> None:
    before = _build("* A\n* B\n** C\n")
    after = _build("* New\n* A\n* B\n** C\n")
    ids_before = {h.title.text: h.id for h in before.iter_headlines()}
    ids_after = {h.title.text: h.id for h in after.iter_headlines()}
    for text in ("A", "B", "C"):
        assert ids_before[text] == ids_after[text]


def test_headline_ids_ignore_keyword_changes() -> None:
    todo = _build("* TODO Write report\n")
    done = _build("* DONE Write report :x:\n")
    assert todo.headlines[0].id == done.headlines[0].id


def test_explicit_id_survives_rename() -> None:
    one = _build("* Old name\n:PROPERTIES:\n:ID: abc\n:END:\n")
    two = _build("* New name\n:PROPERTIES:\n:ID: abc\n:END:\n")
    assert one.headlines[0].id == two.headlines[0].id


def test_repeated_texts_get_distinct_ids() -> None:
    doc = _build("* Same\n* Same\n")
    assert doc.headlines[0].id != doc.headlines[1].id


def test_duplicate_explicit_ids_warn_and_stay_unique() -> None:
    doc = _build("* A\n:PROPERTIES:\n:ID: dup\n:END:\n* B\n:PROPERTIES:\n:ID: dup\n:END:\n")
    assert [w.kind for w in doc.warnings] == [WarningKind.DUPLICATE_ID]
    ids = [h.id for h in doc.iter_headlines()]
    assert len(set(ids)) == len(ids)


def test_ids_are_prefixed_with_document_id() -> None:
    doc = _build("* A\n", path="/notes/a.org")
    assert doc.headlines[0].id.startswith(f"{doc.id}-")
    assert document_id_for("/notes/a.org") != document_id_for("/notes/b.org")
