"""MCP server exposing org outline queries and navigation tools."""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from org_outline.config import REFRESH_INTERVAL, load_config, resolve_source_directory
from org_outline.core.importer.loader import load_source_dir
from org_outline.core.pipeline import IndexedDocument
from org_outline.core.search.query import HeadlineEntry, entries_for, evaluate, parse_spec
from org_outline.core.store import DocumentStore
from org_outline.core.tree.render import render_subtree
from org_outline.models.node import Headline
from org_outline.models.timestamp import format_timestamp
from org_outline.serialization import metadata_to_dict


def _breadcrumbs_str(indexed: IndexedDocument, headline_id: str) -> str:
    crumbs = indexed.navigation.breadcrumbs(headline_id)
    return " > ".join(c.text[:40] for c in crumbs) if crumbs else ""


def _planning_str(headline: Headline, kind: str) -> str | None:
    ts = headline.title.planning.get(kind)
    return format_timestamp(ts) if ts is not None else None


def _entry_summary(entry: HeadlineEntry, *, include_breadcrumbs: bool = True) -> dict[str, Any]:
    headline = entry.headline
    title = headline.title
    summary: dict[str, Any] = {
        "id": headline.id,
        "document": entry.document.title,
        "keyword": title.keyword,
        "priority": title.priority,
        "title": title.text,
        "tags": list(entry.effective_tags),
        "level": headline.level,
        "scheduled": _planning_str(headline, "scheduled"),
        "deadline": _planning_str(headline, "deadline"),
    }
    if include_breadcrumbs:
        summary["breadcrumbs"] = _breadcrumbs_str(entry.indexed, headline.id)
    return summary


def _brief(headline: Headline) -> dict[str, Any]:
    return {
        "id": headline.id,
        "keyword": headline.title.keyword,
        "title": headline.title.text[:80],
        "child_count": len(headline.children),
    }


# --- Core functions (testable without MCP context) ---


def org_query(
    store: DocumentStore,
    *,
    now: date,
    status: list[str] | None = None,
    keyword: list[str] | None = None,
    tags: list[str] | None = None,
    when: str | None = None,
    properties: list[str] | None = None,
    text: str | None = None,
    document: str | None = None,
    sort: str | None = None,
    group_by: str | None = None,
    include_breadcrumbs: bool = True,
    limit: int = 20,
    offset: int = 0,
) -> dict[str, Any]:
    """Filter, sort and group headlines across all loaded documents.

    Args:
        now: Reference date for date windows.
        status: Status classes to keep ("active", "closed", "none").
        keyword: TODO keywords to keep.
        tags: Tags that must all be present (inherited tags count).
        when: "today", "this_week" or "overdue", optionally ":scheduled|deadline|any".
        properties: Property filters such as "EFFORT>=2" or "OWNER=alice".
        text: Words that must all occur in the title or body.
        document: Restrict to a document by id, path or title.
        sort: Comma separated sort fields, "-" prefix for descending.
        group_by: Group field (status, keyword, priority, tag, category, document, property:KEY).
        include_breadcrumbs: Include ancestor chain in results.
        limit: Max results (1-100, default 20).
        offset: Pagination offset.
    """
    limit = max(1, min(limit, 100))
    try:
        spec = parse_spec(
            status=status or (),
            keyword=keyword or (),
            tags=tags or (),
            when=when,
            properties=properties or (),
            text=text,
            document=document,
            sort=sort,
            group_by=group_by,
        )
    except ValueError as e:
        return {"error": str(e), "results": [], "count": 0, "total": 0}

    result = evaluate(
        entries_for(store.documents()), spec, now=now, priorities=store.config.priorities
    )
    total = len(result.headlines)
    page = result.headlines[offset : offset + limit]

    output: dict[str, Any] = {
        "results": [_entry_summary(e, include_breadcrumbs=include_breadcrumbs) for e in page],
        "count": len(page),
        "total": total,
        "has_more": offset + len(page) < total,
    }
    if result.groups:
        output["groups"] = [
            {"key": g.key, "count": len(g.entries), "ids": [e.headline.id for e in g.entries]}
            for g in result.groups
        ]
    if output["has_more"]:
        output["next_offset"] = offset + limit
    return output


def org_list_documents(store: DocumentStore) -> dict[str, Any]:
    """List all loaded documents with metadata and parse failures."""
    documents = store.documents()
    return {
        "documents": [
            {
                "id": d.document.id,
                "title": d.document.title,
                "path": d.document.path,
                "category": d.document.category,
                "filetags": list(d.document.filetags),
                "headline_count": d.document.headline_count,
                "warnings": len(d.document.warnings),
                "etag": d.document.etag,
            }
            for d in documents
        ],
        "count": len(documents),
        "total_headlines": sum(d.document.headline_count for d in documents),
        "failures": [
            {"path": f.path, "message": f.message, "offset": f.offset} for f in store.failures()
        ],
    }


def org_read_headline(
    store: DocumentStore,
    *,
    headline_id: str,
    max_depth: int | None = None,
    output_format: str = "org",
    include_body: bool = True,
) -> dict[str, Any]:
    """Read a headline and its subtree as org text or structured JSON.

    Args:
        headline_id: Headline ID to read.
        max_depth: Max depth levels to include (None = unlimited).
        output_format: "org" or "json".
        include_body: Include planning, properties and body text.
    """
    indexed = store.find_headline(headline_id)
    if indexed is None:
        return {"error": f"Headline '{headline_id}' not found."}

    breadcrumbs = _breadcrumbs_str(indexed, headline_id)

    if output_format == "org":
        text = render_subtree(
            indexed, headline_id, max_depth=max_depth, include_body=include_body
        )
        estimated_tokens = len(text) // 4
        result: dict[str, Any] = {
            "content": text,
            "headline_id": headline_id,
            "document": indexed.document.title,
            "breadcrumbs": breadcrumbs,
            "estimated_tokens": estimated_tokens,
        }
        if estimated_tokens > 5000:
            result["warning"] = (
                f"Large result (~{estimated_tokens} tokens). "
                "Consider using max_depth to limit output."
            )
        return result

    if output_format != "json":
        return {"error": f"Unknown output format '{output_format}'. Use 'org' or 'json'."}

    def _build_children(headline: Headline, remaining_depth: int | None) -> list[dict[str, Any]]:
        children = []
        for child in headline.children:
            entry = _brief(child)
            if include_body:
                entry["body"] = child.body
            if remaining_depth is None or remaining_depth > 1:
                next_depth = None if remaining_depth is None else remaining_depth - 1
                entry["children"] = _build_children(child, next_depth)
            children.append(entry)
        return children

    headline = indexed.navigation.by_id(headline_id)
    return {
        "headline": {**_brief(headline), "body": headline.body, "etag": headline.etag},
        "children": _build_children(headline, max_depth),
        "breadcrumbs": breadcrumbs,
    }


def org_headline_context(
    store: DocumentStore,
    *,
    headline_id: str,
    sibling_count: int = 3,
    child_limit: int = 20,
) -> dict[str, Any]:
    """Get a headline with breadcrumbs, siblings, children and effective metadata.

    Args:
        headline_id: Headline ID.
        sibling_count: Number of siblings before/after to include.
        child_limit: Max direct children to show.
    """
    indexed = store.find_headline(headline_id)
    if indexed is None:
        return {"error": f"Headline '{headline_id}' not found."}

    navigation = indexed.navigation
    resolver = indexed.resolver
    headline = navigation.by_id(headline_id)
    before, after = navigation.siblings(headline_id, sibling_count)
    parent = navigation.parent(headline_id)

    return {
        "headline": {
            **_brief(headline),
            "priority": headline.title.priority,
            "status": headline.title.status.value,
            "body": headline.body,
            "level": headline.level,
            "scheduled": _planning_str(headline, "scheduled"),
            "deadline": _planning_str(headline, "deadline"),
            "closed": _planning_str(headline, "closed"),
        },
        "document": indexed.document.title,
        "breadcrumbs": _breadcrumbs_str(indexed, headline_id),
        "parent_id": parent.id if parent else None,
        "category": resolver.category(headline),
        "tags": list(resolver.effective_tags(headline)),
        "properties": resolver.effective_properties(headline),
        "siblings_before": [_brief(s) for s in before],
        "siblings_after": [_brief(s) for s in after],
        "children": [_brief(c) for c in headline.children[:child_limit]],
    }


def org_metadata(store: DocumentStore, *, recent_updates: int = 10) -> dict[str, Any]:
    """Tags, categories and property keys across all documents, plus recent updates."""
    output = metadata_to_dict(store.metadata())
    updates = store.updates()[-recent_updates:] if recent_updates > 0 else []
    output["recent_updates"] = [
        {
            "document_id": u.document_id,
            "added": len(u.added),
            "removed": len(u.removed),
            "changed": len(u.changed),
        }
        for u in reversed(updates)
    ]
    return output


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    store: DocumentStore
    source_dir: Path | None
    refresh_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_refresh: float = float("-inf")


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Load the source directory on startup, stop the worker pool on shutdown."""
    source_dir = resolve_source_directory()
    store = DocumentStore(load_config())
    try:
        if source_dir.is_dir():
            load_source_dir(store, source_dir)
        else:
            logger.warning("Source directory {} not found; no documents loaded", source_dir)
        # The startup load starts the refresh cooldown.
        yield ServerContext(
            store=store,
            source_dir=source_dir if source_dir.is_dir() else None,
            last_refresh=time.monotonic(),
        )
    finally:
        store.close()


mcp_server = FastMCP(
    "org-outline",
    instructions="""\
Org files are headline outlines. Each headline may carry a TODO keyword, a
priority, tags, SCHEDULED/DEADLINE dates and a property drawer. Tags and most
properties are inherited from ancestors and from the file.

## Workflow

1. Use org_query_tool to find headlines (by status, keyword, tag, date window,
   property or text). Results only show the headline itself.
2. Call org_read_headline_tool with a result's id to read its subtree.
   Use max_depth=2 or 3 for large subtrees.
3. Use org_headline_context_tool to see siblings, parent and inherited metadata.

## Tips
- org_metadata_tool lists known tags, categories and property keys for filters.
- when="overdue" checks deadlines; when="today:any" checks both dates.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


async def _refresh(ctx: ServerContext, interval: float = REFRESH_INTERVAL) -> None:
    """Re-parse changed files from disk if the cooldown has elapsed.

    Unchanged files are skipped by hash.
    """
    if not ctx.source_dir:
        return
    async with ctx.refresh_lock:
        if time.monotonic() - ctx.last_refresh < interval:
            return
        load_source_dir(ctx.store, ctx.source_dir)
        ctx.last_refresh = time.monotonic()


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def org_query_tool(
    ctx: Context,
    status: list[str] | None = None,
    keyword: list[str] | None = None,
    tags: list[str] | None = None,
    when: str | None = None,
    properties: list[str] | None = None,
    text: str | None = None,
    document: str | None = None,
    sort: str | None = None,
    group_by: str | None = None,
    today: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> dict[str, Any]:
    """Find headlines across all org files.

    All given filters must match. Results contain the headline only; call
    org_read_headline_tool on an id to read its subtree.

    Pagination: When has_more is true, use next_offset in a follow-up call.

    Args:
        status: Status classes ("active", "closed", "none").
        keyword: TODO keywords such as "TODO" or "WAITING".
        tags: Required tags (inherited tags count).
        when: "today", "this_week" or "overdue", optionally ":scheduled|deadline|any".
        properties: Property filters like "EFFORT>=2", "OWNER=alice", "CATEGORY~work".
        text: Words that must occur in title or body.
        document: Document id, path or title.
        sort: Sort fields, e.g. "priority,-deadline".
        group_by: status, keyword, priority, tag, category, document or property:KEY.
        today: Reference date (YYYY-MM-DD); defaults to the current date.
        limit: Max results (1-100, default 20).
        offset: Pagination offset.
    """
    try:
        now = date.fromisoformat(today) if today else date.today()
    except ValueError:
        return {"error": f"Invalid date format '{today}'. Expected YYYY-MM-DD."}
    await _refresh(_ctx(ctx))
    return org_query(
        _ctx(ctx).store,
        now=now,
        status=status,
        keyword=keyword,
        tags=tags,
        when=when,
        properties=properties,
        text=text,
        document=document,
        sort=sort,
        group_by=group_by,
        limit=limit,
        offset=offset,
    )


@mcp_server.tool()
async def org_read_headline_tool(
    ctx: Context,
    headline_id: str,
    max_depth: int | None = None,
    output_format: str = "org",
    include_body: bool = True,
) -> dict[str, Any]:
    """Read a headline and its subtree as org text or structured JSON.

    Args:
        headline_id: Headline ID from query results.
        max_depth: Max depth levels (None = unlimited).
        output_format: "org" (human-readable) or "json" (structured).
        include_body: Include planning, properties and body text.
    """
    await _refresh(_ctx(ctx))
    return org_read_headline(
        _ctx(ctx).store,
        headline_id=headline_id,
        max_depth=max_depth,
        output_format=output_format,
        include_body=include_body,
    )


@mcp_server.tool()
async def org_headline_context_tool(
    ctx: Context,
    headline_id: str,
    sibling_count: int = 3,
    child_limit: int = 20,
) -> dict[str, Any]:
    """Get a headline with its surrounding context.

    Returns breadcrumbs, siblings, children and the effective (inherited)
    tags, category and properties.

    Args:
        headline_id: Headline ID from query results.
        sibling_count: Siblings before/after to include.
        child_limit: Max direct children to show.
    """
    await _refresh(_ctx(ctx))
    return org_headline_context(
        _ctx(ctx).store,
        headline_id=headline_id,
        sibling_count=sibling_count,
        child_limit=child_limit,
    )


@mcp_server.tool()
async def org_list_documents_tool(ctx: Context) -> dict[str, Any]:
    """List all loaded org documents.

    Use this to discover document titles for filtering queries.
    """
    await _refresh(_ctx(ctx))
    return org_list_documents(_ctx(ctx).store)


@mcp_server.tool()
async def org_metadata_tool(ctx: Context) -> dict[str, Any]:
    """List tags, categories and property keys seen across all documents."""
    await _refresh(_ctx(ctx))
    return org_metadata(_ctx(ctx).store)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from org_outline.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
