"""Shared test fixtures."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from org_outline.config import PipelineConfig
from org_outline.core.importer.loader import load_source_dir
from org_outline.core.pipeline import IndexedDocument, parse_document
from org_outline.core.store import DocumentStore

PROJECTS_ORG = """\
#+TITLE: Projects
#+FILETAGS: :work:
#+CATEGORY: proj
#+STARTUP: overview
:PROPERTIES:
:OWNER: team
:END:
Intro text.

* TODO [#A] Ship release :urgent:
SCHEDULED: <2025-01-15 Wed>
:PROPERTIES:
:EFFORT: 3
:ID: ship-release
:END:
Release notes here.
** Sub item
** WAITING Review docs :docs:
DEADLINE: <2025-01-10 Fri>
* DONE Old task
CLOSED: [2025-01-02 Thu 10:00]
* Meeting notes
:PROPERTIES:
:CATEGORY: meetings
:OWNER: alice
:END:
** TODO [#B] Standup
SCHEDULED: <2025-01-17 Fri 09:00>
:PROPERTIES:
:EFFORT: 0.5
:END:
"""

HOME_ORG = """\
#+TITLE: Home
#+TODO: NEXT | DONE
* NEXT Buy milk :errand:
DEADLINE: <2025-01-20 Mon>
* TODO Not a keyword here
"""

SOURCE_FILES = {
    "projects.org": PROJECTS_ORG,
    "home.org": HOME_ORG,
    ".hidden.org": "* TODO Hidden\n",
    "notes.txt": "* TODO Not org\n",
}


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def projects(config: PipelineConfig) -> IndexedDocument:
    """The projects sample parsed with the default configuration."""
    return parse_document(PROJECTS_ORG, path="/notes/projects.org", config=config)


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A directory with two org files plus files that must be ignored."""
    source = tmp_path / "org"
    source.mkdir()
    for name, text in SOURCE_FILES.items():
        (source / name).write_text(text)
    return source


@pytest.fixture
def store(source_dir: Path) -> Iterator[DocumentStore]:
    """A store with the sample directory loaded."""
    with DocumentStore(PipelineConfig()) as s:
        load_source_dir(s, source_dir)
        yield s
