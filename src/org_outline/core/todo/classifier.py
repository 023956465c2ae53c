"""Classify headline keywords into task states."""

from dataclasses import replace

from loguru import logger

from org_outline.core.tree.identity import ROOT_ANCHOR, IdAllocator, explicit_id
from org_outline.models.node import Document, Headline
from org_outline.models.todo import StatusClass, TodoKeywordConfig


def classify(
    token: str | None, config: TodoKeywordConfig | None
) -> tuple[str | None, StatusClass]:
    """Resolve a title's leading token against the keyword configuration.

    Matching is exact and case-sensitive. A token that is not configured
    means the headline is a plain note.

    Args:
        token: Leading word of the headline title, if any.
        config: Active keyword configuration. None falls back to the defaults.

    Returns:
        ``(keyword, status)``; ``(None, StatusClass.NONE)`` when nothing matches.
    """
    if config is None:
        logger.debug("No TODO keyword configuration, using defaults")
        config = TodoKeywordConfig.default()
    if token is None:
        return None, StatusClass.NONE
    status = config.status_of(token)
    if status is StatusClass.NONE:
        return None, StatusClass.NONE
    return token, status


def reclassify_document(
    document: Document,
    config: TodoKeywordConfig,
    *,
    priorities: tuple[str, ...],
) -> Document:
    """Re-split every title under a new keyword configuration.

    Titles are re-split from their retained raw text, so no re-parse is needed.
    Documents that define their own ``#+TODO`` keywords keep them. Headline ids
    are reallocated because display texts may change; etags are left for the
    caller to re-stamp.
    """
    from org_outline.core.tree.builder import split_title

    effective = document.todo_config if document.has_own_todo_config else config
    allocator = IdAllocator(
        document.id,
        (
            value
            for h in document.iter_headlines()
            if (value := explicit_id(h.title.properties)) is not None
        ),
    )

    def rebuild(headlines: tuple[Headline, ...], parent_anchor: str) -> tuple[Headline, ...]:
        titles = [
            replace(
                split_title(h.title.raw, effective, priorities),
                properties=h.title.properties,
                planning=h.title.planning,
            )
            for h in headlines
        ]
        ids = allocator.allocate(parent_anchor, [(t.text, t.properties) for t in titles])
        return tuple(
            replace(h, id=headline_id, title=title, children=rebuild(h.children, anchor))
            for h, title, (anchor, headline_id) in zip(headlines, titles, ids, strict=True)
        )

    logger.debug("Reclassifying {} with keywords {}", document.path, effective.all_keywords)
    return replace(
        document,
        headlines=rebuild(document.headlines, ROOT_ANCHOR),
        todo_config=effective,
    )
