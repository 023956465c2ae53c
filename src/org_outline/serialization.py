"""Plain-dict conversion of published records, for JSON output and caching.

Timestamps carry a ``type`` discriminant. ``document_from_dict`` inverts
``document_to_dict`` exactly.
"""

from typing import Any, assert_never

from org_outline.models.metadata import GlobalMetadata
from org_outline.models.node import Document, Headline, Title
from org_outline.models.records import ParseWarning, WarningKind
from org_outline.models.timestamp import (
    ActiveRangeTimestamp,
    ActiveTimestamp,
    Datetime,
    DiaryTimestamp,
    InactiveRangeTimestamp,
    InactiveTimestamp,
    Planning,
    Timestamp,
)
from org_outline.models.todo import StatusClass, TodoKeywordConfig


def datetime_to_dict(value: Datetime) -> dict[str, Any]:
    return {
        "year": value.year,
        "month": value.month,
        "day": value.day,
        "hour": value.hour,
        "minute": value.minute,
        "weekday": value.weekday,
    }


def datetime_from_dict(data: dict[str, Any]) -> Datetime:
    return Datetime(
        year=data["year"],
        month=data["month"],
        day=data["day"],
        hour=data.get("hour"),
        minute=data.get("minute"),
        weekday=data.get("weekday"),
    )


def timestamp_to_dict(ts: Timestamp) -> dict[str, Any]:
    match ts:
        case ActiveTimestamp() | InactiveTimestamp():
            return {
                "type": "active" if isinstance(ts, ActiveTimestamp) else "inactive",
                "start": datetime_to_dict(ts.start),
                "repeater": ts.repeater,
                "delay": ts.delay,
            }
        case ActiveRangeTimestamp() | InactiveRangeTimestamp():
            return {
                "type": "active_range" if isinstance(ts, ActiveRangeTimestamp) else "inactive_range",
                "start": datetime_to_dict(ts.start),
                "end": datetime_to_dict(ts.end),
                "repeater": ts.repeater,
                "delay": ts.delay,
            }
        case DiaryTimestamp(expression=expression):
            return {"type": "diary", "expression": expression}
        case _:
            assert_never(ts)


def timestamp_from_dict(data: dict[str, Any]) -> Timestamp:
    kind = data["type"]
    if kind == "diary":
        return DiaryTimestamp(expression=data["expression"])
    start = datetime_from_dict(data["start"])
    repeater, delay = data.get("repeater"), data.get("delay")
    if kind == "active":
        return ActiveTimestamp(start=start, repeater=repeater, delay=delay)
    if kind == "inactive":
        return InactiveTimestamp(start=start, repeater=repeater, delay=delay)
    end = datetime_from_dict(data["end"])
    if kind == "active_range":
        return ActiveRangeTimestamp(start=start, end=end, repeater=repeater, delay=delay)
    if kind == "inactive_range":
        return InactiveRangeTimestamp(start=start, end=end, repeater=repeater, delay=delay)
    msg = f"Unknown timestamp type {kind!r}"
    raise ValueError(msg)


def _planning_to_dict(planning: Planning) -> dict[str, Any]:
    return {
        kind: timestamp_to_dict(ts) if (ts := planning.get(kind)) is not None else None
        for kind in ("scheduled", "deadline", "closed")
    }


def _planning_from_dict(data: dict[str, Any]) -> Planning:
    return Planning(
        **{
            kind: timestamp_from_dict(value) if (value := data.get(kind)) is not None else None
            for kind in ("scheduled", "deadline", "closed")
        }
    )


def title_to_dict(title: Title) -> dict[str, Any]:
    return {
        "raw": title.raw,
        "text": title.text,
        "keyword_token": title.keyword_token,
        "keyword": title.keyword,
        "status": title.status.value,
        "priority": title.priority,
        "tags": list(title.tags),
        "properties": dict(title.properties),
        "planning": _planning_to_dict(title.planning),
    }


def title_from_dict(data: dict[str, Any]) -> Title:
    return Title(
        raw=data["raw"],
        text=data["text"],
        keyword_token=data.get("keyword_token"),
        keyword=data.get("keyword"),
        status=StatusClass(data.get("status", "none")),
        priority=data.get("priority"),
        tags=tuple(data.get("tags", ())),
        properties=dict(data.get("properties", {})),
        planning=_planning_from_dict(data.get("planning", {})),
    )


def headline_to_dict(headline: Headline, *, include_children: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": headline.id,
        "document_id": headline.document_id,
        "level": headline.level,
        "source_level": headline.source_level,
        "line": headline.line,
        "title": title_to_dict(headline.title),
        "body": headline.body,
        "etag": headline.etag,
    }
    if include_children:
        data["children"] = [headline_to_dict(child) for child in headline.children]
    return data


def headline_from_dict(data: dict[str, Any]) -> Headline:
    return Headline(
        id=data["id"],
        document_id=data["document_id"],
        level=data["level"],
        title=title_from_dict(data["title"]),
        body=data.get("body", ""),
        children=tuple(headline_from_dict(child) for child in data.get("children", ())),
        etag=data.get("etag", ""),
        source_level=data.get("source_level", 0),
        line=data.get("line", 0),
    )


def document_to_dict(document: Document) -> dict[str, Any]:
    return {
        "id": document.id,
        "path": document.path,
        "title": document.title,
        "preamble": document.preamble,
        "headlines": [headline_to_dict(h) for h in document.headlines],
        "filetags": list(document.filetags),
        "properties": dict(document.properties),
        "category": document.category,
        "etag": document.etag,
        "todo_config": {
            "active": list(document.todo_config.active),
            "closed": list(document.todo_config.closed),
        },
        "has_own_todo_config": document.has_own_todo_config,
        "source_hash": document.source_hash,
        "warnings": [
            {"kind": w.kind.value, "message": w.message, "line": w.line}
            for w in document.warnings
        ],
    }


def document_from_dict(data: dict[str, Any]) -> Document:
    todo = data.get("todo_config")
    return Document(
        id=data["id"],
        path=data["path"],
        title=data["title"],
        preamble=data.get("preamble", ""),
        headlines=tuple(headline_from_dict(h) for h in data.get("headlines", ())),
        filetags=tuple(data.get("filetags", ())),
        properties=dict(data.get("properties", {})),
        category=data.get("category", ""),
        etag=data.get("etag", ""),
        todo_config=(
            TodoKeywordConfig(active=tuple(todo["active"]), closed=tuple(todo["closed"]))
            if todo is not None
            else TodoKeywordConfig.default()
        ),
        has_own_todo_config=data.get("has_own_todo_config", False),
        source_hash=data.get("source_hash", ""),
        warnings=tuple(
            ParseWarning(kind=WarningKind(w["kind"]), message=w["message"], line=w.get("line", 0))
            for w in data.get("warnings", ())
        ),
    )


def metadata_to_dict(metadata: GlobalMetadata) -> dict[str, Any]:
    return {
        "tags": sorted(metadata.tags),
        "categories": sorted(metadata.categories),
        "property_keys": {k: sorted(v) for k, v in sorted(metadata.property_keys.items())},
        "tag_counts": dict(metadata.tags_by_count()),
        "category_counts": dict(metadata.categories_by_count()),
    }
