"""Load a directory of org files into a DocumentStore."""

from dataclasses import dataclass
from pathlib import Path, PurePath

from loguru import logger

from org_outline.config import ORG_SUFFIXES
from org_outline.core.pipeline import source_hash
from org_outline.core.store import DocumentStore
from org_outline.core.tree.identity import document_id_for


@dataclass(frozen=True)
class LoadStats:
    """Summary of a load operation."""

    documents_loaded: int
    documents_skipped: int
    documents_failed: int
    documents_removed: int
    headlines_loaded: int


def is_relevant_file(path: PurePath) -> bool:
    """Org files only; anything hidden (or inside a hidden directory) is ignored."""
    if any(part.startswith(".") for part in path.parts):
        return False
    return path.suffix.lower() in ORG_SUFFIXES


def scan_source_dir(source_dir: Path) -> list[Path]:
    """Return all relevant files below source_dir, sorted by path."""
    return sorted(
        path
        for path in source_dir.rglob("*")
        if path.is_file() and is_relevant_file(path.relative_to(source_dir))
    )


def load_source_dir(
    store: DocumentStore,
    source_dir: Path,
    *,
    force: bool = False,
) -> LoadStats:
    """Parse every org file in source_dir and publish it to the store.

    Args:
        store: Store to publish into.
        source_dir: Directory containing .org files.
        force: Re-parse even if the file content hasn't changed.

    Returns:
        LoadStats with counts of loaded/skipped/failed/removed documents.
    """
    if not source_dir.is_dir():
        msg = f"Source directory {source_dir} does not exist"
        raise FileNotFoundError(msg)

    loaded = skipped = failed = removed = 0
    total_headlines = 0
    seen: set[str] = set()

    for path in scan_source_dir(source_dir):
        document_id = document_id_for(path)
        seen.add(document_id)
        try:
            data = path.read_bytes()
        except OSError:
            logger.exception("Failed to read {}", path)
            failed += 1
            continue

        existing = store.get(document_id)
        if not force and existing is not None and existing.document.source_hash == source_hash(data):
            skipped += 1
            continue

        indexed = store.load(path, data)
        if indexed is None:
            failed += 1
            continue

        loaded += 1
        total_headlines += indexed.document.headline_count
        logger.debug("Loaded {} ({} headlines)", indexed.document.title, indexed.document.headline_count)

    # Documents from this directory whose files have disappeared.
    root = source_dir.as_posix().rstrip("/") + "/"
    for indexed in store.documents():
        if indexed.document.path.startswith(root) and indexed.id not in seen:
            store.on_file_removed(indexed.document.path)
            removed += 1

    logger.info(
        "Load complete: {} loaded, {} skipped, {} failed, {} removed, {} total headlines",
        loaded, skipped, failed, removed, total_headlines,
    )
    return LoadStats(
        documents_loaded=loaded,
        documents_skipped=skipped,
        documents_failed=failed,
        documents_removed=removed,
        headlines_loaded=total_headlines,
    )
