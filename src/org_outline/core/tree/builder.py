"""Build the Document / Headline tree from the normalized event stream."""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from pathlib import PurePath

from loguru import logger

from org_outline.config import PipelineConfig
from org_outline.core.todo.classifier import classify
from org_outline.core.tree.identity import ROOT_ANCHOR, IdAllocator, document_id_for, explicit_id
from org_outline.models.events import (
    BodyText,
    Event,
    FileKeyword,
    HeadlineEnd,
    HeadlineStart,
    PlanningEntry,
    PropertyEntry,
)
from org_outline.models.node import Document, Headline, Title
from org_outline.models.records import ParseWarning, WarningKind
from org_outline.models.timestamp import Planning, Timestamp
from org_outline.models.todo import TodoKeywordConfig

UNTITLED = "Untitled Document"

_TODO_KEYWORDS = frozenset({"TODO", "SEQ_TODO", "TYP_TODO"})
_PRIORITY_RE = re.compile(r"^\[#(?P<priority>[A-Za-z0-9])\](?:\s+|$)")
_TAGS_RE = re.compile(r"(?:^|\s+)(?P<tags>:(?:[\w@#%]+:)+)\s*$")


def split_title(
    raw: str,
    config: TodoKeywordConfig,
    priorities: tuple[str, ...],
) -> Title:
    """Split the text after a headline's stars into keyword, priority, tags and text.

    The leading word is only a keyword when it is configured. A priority
    cookie is only recognised right after the keyword or at the very start.

    Args:
        raw: Headline text after the stars.
        config: Keyword configuration in effect for the document.
        priorities: Allowed priority letters.

    Returns:
        A Title with empty properties and planning.
    """
    rest = raw.strip()
    parts = rest.split(maxsplit=1)
    keyword_token = parts[0] if parts else None

    keyword, status = classify(keyword_token, config)
    if keyword is not None:
        rest = parts[1] if len(parts) > 1 else ""

    priority = None
    m = _PRIORITY_RE.match(rest)
    if m and m.group("priority") in priorities:
        priority = m.group("priority")
        rest = rest[m.end():]

    tags: tuple[str, ...] = ()
    m = _TAGS_RE.search(rest)
    if m:
        tags = tuple(t for t in m.group("tags").split(":") if t)
        rest = rest[: m.start()]

    return Title(
        raw=raw,
        text=rest.strip(),
        keyword_token=keyword_token,
        keyword=keyword,
        status=status,
        priority=priority,
        tags=tags,
    )


@dataclass
class _Draft:
    """Mutable headline under construction."""

    level: int
    source_level: int
    raw_title: str
    line: int
    properties: dict[str, str] = field(default_factory=dict)
    planning: dict[str, Timestamp] = field(default_factory=dict)
    body: list[str] = field(default_factory=list)
    children: list["_Draft"] = field(default_factory=list)


def _set_property(properties: dict[str, str], key: str, value: str) -> None:
    key = key.upper()
    if key.endswith("+") and len(key) > 1:
        key = key[:-1]
        if properties.get(key):
            properties[key] = f"{properties[key]} {value}".strip()
            return
    properties[key] = value


def _join_lines(lines: list[str]) -> str:
    return "\n".join(lines).strip("\n")


def _split_filetags(value: str) -> list[str]:
    return [t for t in re.split(r"[:\s]+", value) if t]


def build_document(
    events: Iterable[Event],
    *,
    path: str | PurePath,
    config: PipelineConfig,
    warnings: Iterable[ParseWarning] = (),
    source_hash: str = "",
) -> Document:
    """Assemble a Document from events. Etags are left empty.

    Headlines are attached with a stack. A headline whose star count skips
    levels nests under the nearest preceding shallower headline and gets
    ``level = parent.level + 1``; the star count is kept as ``source_level``.

    Args:
        events: Properly nested events from the adapter.
        path: Source path; the document id derives from it.
        config: Pipeline configuration.
        warnings: Warnings already raised while adapting.
        source_hash: SHA-256 of the source bytes, if known.

    Returns:
        The document with ids allocated and titles classified.
    """
    source_path = PurePath(path)
    document_id = document_id_for(source_path)
    all_warnings = list(warnings)

    roots: list[_Draft] = []
    stack: list[_Draft] = []
    preamble: list[str] = []
    title_parts: list[str] = []
    filetags: list[str] = []
    category: str | None = None
    todo_definitions: list[str] = []
    doc_properties: dict[str, str] = {}

    for event in events:
        match event:
            case HeadlineStart(level=level, raw_title=raw_title, line=line):
                while stack and stack[-1].source_level >= level:
                    stack.pop()
                parent = stack[-1] if stack else None
                draft = _Draft(
                    level=parent.level + 1 if parent else 1,
                    source_level=level,
                    raw_title=raw_title,
                    line=line,
                )
                (parent.children if parent else roots).append(draft)
                stack.append(draft)
            case HeadlineEnd():
                if stack:
                    stack.pop()
            case BodyText(text=text):
                (stack[-1].body if stack else preamble).append(text)
            case PropertyEntry(key=key, value=value):
                _set_property(stack[-1].properties if stack else doc_properties, key, value)
            case PlanningEntry(kind=kind, timestamp=timestamp):
                if stack:
                    stack[-1].planning[kind] = timestamp
            case FileKeyword(key=key, value=value):
                upper = key.upper()
                if upper == "TITLE":
                    title_parts.append(value)
                elif upper == "FILETAGS":
                    filetags.extend(t for t in _split_filetags(value) if t not in filetags)
                elif upper == "CATEGORY":
                    category = value
                elif upper in _TODO_KEYWORDS:
                    todo_definitions.append(value)
                elif stack:
                    stack[-1].body.append(f"#+{key}: {value}")
                else:
                    doc_properties[upper] = value

    todo_config = config.todo_keywords
    has_own_todo_config = False
    own: TodoKeywordConfig | None = None
    for definition in todo_definitions:
        try:
            parsed = TodoKeywordConfig.from_definition(definition)
        except ValueError:
            logger.warning("{}: ignoring empty TODO definition", source_path)
            continue
        own = parsed if own is None else own.merged_with(parsed)
    if own is not None:
        todo_config = own
        has_own_todo_config = True

    explicit_ids = [
        value
        for draft in _iter_drafts(roots)
        if (value := explicit_id(draft.properties)) is not None
    ]
    allocator = IdAllocator(document_id, explicit_ids)
    for duplicate in allocator.duplicates:
        message = f"Duplicate ID {duplicate!r}; falling back to positional ids"
        logger.warning("{}: {}", source_path, message)
        all_warnings.append(ParseWarning(kind=WarningKind.DUPLICATE_ID, message=message))

    def freeze(drafts: list[_Draft], parent_anchor: str) -> tuple[Headline, ...]:
        titles = [
            split_title(d.raw_title, todo_config, config.priorities) for d in drafts
        ]
        ids = allocator.allocate(
            parent_anchor,
            [(t.text, d.properties) for t, d in zip(titles, drafts, strict=True)],
        )
        headlines = []
        for draft, title, (anchor, headline_id) in zip(drafts, titles, ids, strict=True):
            headlines.append(
                Headline(
                    id=headline_id,
                    document_id=document_id,
                    level=draft.level,
                    title=replace(
                        title,
                        properties=dict(draft.properties),
                        planning=Planning(**draft.planning),
                    ),
                    body=_join_lines(draft.body),
                    children=freeze(draft.children, anchor),
                    source_level=draft.source_level,
                    line=draft.line,
                )
            )
        return tuple(headlines)

    if category is None:
        category = doc_properties.get("CATEGORY") or source_path.stem
    title = " ".join(title_parts).strip() or source_path.stem or UNTITLED

    document = Document(
        id=document_id,
        path=source_path.as_posix(),
        title=title,
        preamble=_join_lines(preamble),
        headlines=freeze(roots, ROOT_ANCHOR),
        filetags=tuple(filetags),
        properties=doc_properties,
        category=category,
        todo_config=todo_config,
        has_own_todo_config=has_own_todo_config,
        source_hash=source_hash,
        warnings=tuple(all_warnings),
    )
    logger.debug("Built {} ({} headlines)", document.path, document.headline_count)
    return document


def _iter_drafts(drafts: list[_Draft]) -> Iterable[_Draft]:
    for draft in drafts:
        yield draft
        yield from _iter_drafts(draft.children)
