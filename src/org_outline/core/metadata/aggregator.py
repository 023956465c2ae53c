"""Cross-document metadata: tags, categories and property keys."""

import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from org_outline.config import MAX_PROPERTY_SAMPLES
from org_outline.models.metadata import GlobalMetadata
from org_outline.models.node import Document


@dataclass(frozen=True)
class _Slice:
    """What one document contributes to the global metadata."""

    tags: frozenset[str]
    categories: frozenset[str]
    property_values: dict[str, frozenset[str]]


def _slice_of(document: Document) -> _Slice:
    tags = set(document.filetags)
    categories = {document.category} if document.category else set()
    categories.update(
        value for key, value in document.properties.items()
        if key.upper().startswith("CATEGORY_") and value
    )
    samples: dict[str, list[str]] = {}

    def sample(key: str, value: str) -> None:
        values = samples.setdefault(key.upper(), [])
        if value and value not in values and len(values) < MAX_PROPERTY_SAMPLES:
            values.append(value)

    for key, value in document.properties.items():
        sample(key, value)
    for headline in document.iter_headlines():
        tags.update(headline.title.tags)
        for key, value in headline.title.properties.items():
            sample(key, value)
            if key.upper() == "CATEGORY" and value:
                categories.add(value)

    return _Slice(
        tags=frozenset(tags),
        categories=frozenset(categories),
        property_values={k: frozenset(v) for k, v in samples.items()},
    )


class MetadataAggregator:
    """Maintain merged metadata across published documents.

    Each document contributes a slice. Publishing or removing a document only
    replaces its own slice and adjusts the merged counters by the difference.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._slices: dict[str, _Slice] = {}
        self._tag_counts: Counter[str] = Counter()
        self._category_counts: Counter[str] = Counter()
        self._key_counts: Counter[str] = Counter()
        self._property_values: dict[str, Counter[str]] = {}

    def _apply(self, piece: _Slice, sign: int) -> None:
        for tag in piece.tags:
            self._tag_counts[tag] += sign
        for category in piece.categories:
            self._category_counts[category] += sign
        for key, values in piece.property_values.items():
            self._key_counts[key] += sign
            counts = self._property_values.setdefault(key, Counter())
            for value in values:
                counts[value] += sign
            # Unary plus drops entries whose count fell to zero.
            counts = +counts
            if counts:
                self._property_values[key] = counts
            else:
                del self._property_values[key]
        self._tag_counts = +self._tag_counts
        self._category_counts = +self._category_counts
        self._key_counts = +self._key_counts

    def on_document_published(self, document: Document) -> None:
        piece = _slice_of(document)
        with self._lock:
            previous = self._slices.pop(document.id, None)
            if previous is not None:
                self._apply(previous, -1)
            self._slices[document.id] = piece
            self._apply(piece, 1)
        logger.debug(
            "Metadata updated for {}: {} tags, {} categories",
            document.path, len(piece.tags), len(piece.categories),
        )

    def on_document_removed(self, document_id: str) -> None:
        with self._lock:
            previous = self._slices.pop(document_id, None)
            if previous is None:
                return
            self._apply(previous, -1)
        logger.debug("Metadata removed for document {}", document_id)

    def reset(self, documents: Iterable[Document] = ()) -> None:
        """Drop all slices and rebuild from the given documents."""
        with self._lock:
            self._slices.clear()
            self._tag_counts = Counter()
            self._category_counts = Counter()
            self._key_counts = Counter()
            self._property_values = {}
            for document in documents:
                self.on_document_published(document)

    def snapshot(self) -> GlobalMetadata:
        """Return an immutable copy of the merged metadata."""
        with self._lock:
            property_keys = {
                key: frozenset(self._property_values.get(key, ()))
                for key in self._key_counts
            }
            return GlobalMetadata(
                tags=frozenset(self._tag_counts),
                categories=frozenset(self._category_counts),
                property_keys=dict(sorted(property_keys.items())),
                tag_counts=dict(self._tag_counts),
                category_counts=dict(self._category_counts),
            )
