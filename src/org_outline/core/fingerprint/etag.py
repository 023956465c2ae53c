"""Content fingerprints (etags) for headlines and documents."""

import hashlib
from collections.abc import Iterable
from dataclasses import replace

from org_outline.core.properties.resolver import PropertyResolver
from org_outline.models.node import Document, Headline
from org_outline.models.timestamp import Planning, format_timestamp

ETAG_LENGTH = 16


def _fold(fields: Iterable[str]) -> str:
    digest = hashlib.sha256()
    for value in fields:
        data = value.encode("utf-8")
        # Length prefixes keep ("ab", "c") and ("a", "bc") apart.
        digest.update(f"{len(data)}:".encode())
        digest.update(data)
    return digest.hexdigest()[:ETAG_LENGTH]


def _planning_fields(planning: Planning) -> list[str]:
    fields = []
    for kind in ("scheduled", "deadline", "closed"):
        ts = planning.get(kind)
        fields.extend((kind, format_timestamp(ts) if ts is not None else ""))
    return fields


def _headline_etag(
    headline: Headline,
    resolver: PropertyResolver,
    display_keys: tuple[str, ...],
    child_etags: list[str],
) -> str:
    fields = ["title", headline.title.raw, "body", headline.body]
    for key, value in sorted(headline.title.properties.items()):
        fields.extend(("property", key, value))
    fields.extend(_planning_fields(headline.title.planning))
    for key in display_keys:
        fields.extend(("display", key, resolver.resolve(headline, key) or ""))
    for etag in child_etags:
        fields.extend(("child", etag))
    return _fold(fields)


def headline_etags(
    document: Document,
    resolver: PropertyResolver,
    display_keys: tuple[str, ...],
) -> dict[str, str]:
    """Compute etags bottom-up for every headline of a document.

    Args:
        document: The document to fingerprint.
        resolver: Resolver over the same document, for display keys.
        display_keys: Keys whose resolved values are part of a headline's etag.

    Returns:
        Mapping of headline id to etag.
    """
    etags: dict[str, str] = {}

    def visit(headline: Headline) -> str:
        child_etags = [visit(child) for child in headline.children]
        etag = _headline_etag(headline, resolver, display_keys, child_etags)
        etags[headline.id] = etag
        return etag

    for root in document.headlines:
        visit(root)
    return etags


def document_etag(document: Document) -> str:
    """Fold the document attributes with the etags of its roots."""
    fields = ["title", document.title, "preamble", document.preamble]
    for tag in document.filetags:
        fields.extend(("filetag", tag))
    for key, value in sorted(document.properties.items()):
        fields.extend(("property", key, value))
    for root in document.headlines:
        fields.extend(("root", root.etag))
    return _fold(fields)


def stamp_document(
    document: Document,
    resolver: PropertyResolver,
    display_keys: tuple[str, ...],
) -> Document:
    """Return a copy of the document with headline and document etags filled in."""
    etags = headline_etags(document, resolver, display_keys)

    def stamp(headline: Headline) -> Headline:
        return replace(
            headline,
            etag=etags[headline.id],
            children=tuple(stamp(child) for child in headline.children),
        )

    stamped = replace(document, headlines=tuple(stamp(root) for root in document.headlines))
    return replace(stamped, etag=document_etag(stamped))
