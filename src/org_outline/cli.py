"""CLI for org-outline (parse, query, read, MCP server)."""

import json
import os
from datetime import date
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from org_outline.config import load_config, resolve_source_directory
from org_outline.core.importer.loader import load_source_dir
from org_outline.core.pipeline import parse_document
from org_outline.core.store import DocumentStore
from org_outline.core.tree.render import render_subtree
from org_outline.logging_config import configure_logging
from org_outline.mcp.server import org_list_documents, org_metadata, org_query, run_mcp_server
from org_outline.models.records import AdapterFailure
from org_outline.serialization import document_to_dict

app = typer.Typer(help="org-outline: query and browse your org files.")

SourceDir = Annotated[
    Path | None,
    typer.Argument(help="Directory with .org files (default: ORG_OUTLINE_SOURCE_DIR or ~/org)"),
]


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Settings JSON file"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose)
    ctx.obj = config


def _open_store(ctx: typer.Context, source_dir: Path | None) -> DocumentStore:
    """Load every org file of source_dir into a fresh store."""
    src = source_dir or resolve_source_directory()
    if not src.is_dir():
        logger.error("Source directory not found: {}", src)
        raise typer.Exit(1)
    store = DocumentStore(load_config(ctx.obj))
    load_source_dir(store, src)
    return store


def _parse_now(now: str | None) -> date:
    # The CLI is the one place that reads the clock.
    if now is None:
        return date.today()
    try:
        return date.fromisoformat(now)
    except ValueError:
        typer.echo(f"Invalid date '{now}'. Expected YYYY-MM-DD.")
        raise typer.Exit(1) from None


@app.command()
def parse(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Org file to parse"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Parse a single org file and print its outline."""
    if not file.is_file():
        typer.echo(f"File '{file}' not found.")
        raise typer.Exit(1)
    try:
        indexed = parse_document(file.read_bytes(), path=file, config=load_config(ctx.obj))
    except AdapterFailure as e:
        typer.echo(f"Failed to parse {file}: {e}")
        raise typer.Exit(1) from None

    document = indexed.document
    if output_json:
        typer.echo(json.dumps(document_to_dict(document), indent=2))
        return

    typer.echo(f"{document.title}  [id={document.id}]")
    typer.echo(f"  category={document.category}  headlines={document.headline_count}\n")
    for headline in document.iter_headlines():
        title = headline.title
        prefix = f"{title.keyword} " if title.keyword else ""
        typer.echo(f"{'  ' * headline.level}{prefix}{title.text}  [id={headline.id}]")
    for warning in document.warnings:
        typer.echo(f"warning: line {warning.line}: {warning.message}")


@app.command()
def documents(ctx: typer.Context, source_dir: SourceDir = None) -> None:
    """List all documents in a source directory."""
    store = _open_store(ctx, source_dir)
    try:
        data = org_list_documents(store)
        typer.echo(f"{data['count']} documents:\n")
        for doc in data["documents"]:
            typer.echo(
                f"  {doc['title']} ({doc['path']}) - "
                f"{doc['headline_count']} headlines  [id={doc['id']}]"
            )
        for failure in data["failures"]:
            typer.echo(f"  FAILED {failure['path']}: {failure['message']}")
    finally:
        store.close()


@app.command()
def query(
    ctx: typer.Context,
    source_dir: SourceDir = None,
    status: Annotated[
        list[str] | None,
        typer.Option("--status", "-s", help="active, closed or none (repeatable)"),
    ] = None,
    keyword: Annotated[
        list[str] | None,
        typer.Option("--keyword", "-k", help="TODO keyword (repeatable)"),
    ] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Required tag (repeatable)"),
    ] = None,
    when: Annotated[
        str | None,
        typer.Option("--when", "-w", help="today, this_week or overdue[:scheduled|deadline|any]"),
    ] = None,
    prop: Annotated[
        list[str] | None,
        typer.Option("--property", "-p", help="Property filter like KEY=VALUE or KEY>=3"),
    ] = None,
    text: Annotated[
        str | None,
        typer.Option("--text", help="Words that must occur in title or body"),
    ] = None,
    sort: Annotated[
        str | None,
        typer.Option("--sort", help="Sort fields, e.g. priority,-deadline"),
    ] = None,
    group_by: Annotated[
        str | None,
        typer.Option("--group-by", "-g", help="Group field"),
    ] = None,
    now: Annotated[
        str | None,
        typer.Option("--now", help="Reference date YYYY-MM-DD (default: today)"),
    ] = None,
    limit: int = typer.Option(20, "--limit", "-n", help="Max results"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Find headlines matching filters."""
    today = _parse_now(now)
    store = _open_store(ctx, source_dir)
    try:
        data = org_query(
            store,
            now=today,
            status=status,
            keyword=keyword,
            tags=tag,
            when=when,
            properties=prop,
            text=text,
            sort=sort,
            group_by=group_by,
            limit=limit,
        )
    finally:
        store.close()

    if "error" in data:
        typer.echo(data["error"])
        raise typer.Exit(1)
    if output_json:
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo(f"Found {data['total']} headlines (showing {data['count']}):\n")
    for r in data["results"]:
        prefix = f"{r['keyword']} " if r["keyword"] else ""
        priority = f"[#{r['priority']}] " if r["priority"] else ""
        typer.echo(f"  [{r['document']}] {prefix}{priority}{r['title'][:80]}")
        dates = "  ".join(
            f"{kind}={r[kind]}" for kind in ("scheduled", "deadline") if r[kind]
        )
        typer.echo(f"    id={r['id']}  {dates}".rstrip())
        if r.get("breadcrumbs"):
            typer.echo(f"    in: {r['breadcrumbs']}")
        typer.echo()
    for group in data.get("groups", []):
        typer.echo(f"  {group['key']}: {group['count']}")


@app.command()
def metadata(
    ctx: typer.Context,
    source_dir: SourceDir = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show tags, categories and property keys across all documents."""
    store = _open_store(ctx, source_dir)
    try:
        data = org_metadata(store, recent_updates=0)
    finally:
        store.close()
    data.pop("recent_updates", None)

    if output_json:
        typer.echo(json.dumps(data, indent=2))
        return
    typer.echo("Tags:")
    for tag, count in data["tag_counts"].items():
        typer.echo(f"  {tag} ({count})")
    typer.echo("Categories:")
    for category, count in data["category_counts"].items():
        typer.echo(f"  {category} ({count})")
    typer.echo("Property keys:")
    for key, values in data["property_keys"].items():
        typer.echo(f"  {key}: {', '.join(values[:5])}")


@app.command()
def read(
    ctx: typer.Context,
    source_dir: Path = typer.Argument(..., help="Directory with .org files"),
    headline_id: str = typer.Argument(..., help="Headline ID to read"),
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", "-m", help="Max depth levels to render"),
    ] = None,
) -> None:
    """Read a headline and its subtree as org text."""
    store = _open_store(ctx, source_dir)
    try:
        indexed = store.find_headline(headline_id)
        if indexed is None:
            typer.echo(f"Headline '{headline_id}' not found.")
            raise typer.Exit(1)
        typer.echo(render_subtree(indexed, headline_id, max_depth=max_depth))
    finally:
        store.close()


@app.command()
def serve(ctx: typer.Context, source_dir: SourceDir = None) -> None:
    """Start the MCP server (stdio transport)."""
    if source_dir is not None:
        os.environ["ORG_OUTLINE_SOURCE_DIR"] = str(source_dir)
    if ctx.obj is not None:
        os.environ["ORG_OUTLINE_CONFIG"] = str(ctx.obj)
    run_mcp_server()
