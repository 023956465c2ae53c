"""Stable identifiers for documents and headlines.

Headline ids derive from an anchor rather than a position, so inserting or
removing an unrelated sibling does not renumber the rest of the outline.
"""

import hashlib
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from pathlib import PurePath

ROOT_ANCHOR = ""


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def document_id_for(path: str | PurePath) -> str:
    """Derive a document id from its source path."""
    return _digest(PurePath(path).as_posix())[:16]


def explicit_id(properties: Mapping[str, str]) -> str | None:
    """Return the ``ID`` (else ``CUSTOM_ID``) property value, if any."""
    for key in ("ID", "CUSTOM_ID"):
        value = properties.get(key, "").strip()
        if value:
            return value
    return None


class IdAllocator:
    """Allocate headline ids for one document.

    Explicit ids are only used as anchors when they are unique in the document.
    Otherwise the anchor is the parent's anchor, the display text and the
    occurrence count of that text among its siblings.
    """

    def __init__(self, document_id: str, explicit_ids: Iterable[str]) -> None:
        self.document_id = document_id
        counts = Counter(explicit_ids)
        self.duplicates: tuple[str, ...] = tuple(sorted(v for v, n in counts.items() if n > 1))
        self._unique = {v for v, n in counts.items() if n == 1}

    def allocate(
        self,
        parent_anchor: str,
        siblings: Sequence[tuple[str, Mapping[str, str]]],
    ) -> list[tuple[str, str]]:
        """Allocate ``(anchor, id)`` pairs for a run of siblings.

        Args:
            parent_anchor: Anchor of the parent, or ROOT_ANCHOR for top-level headlines.
            siblings: ``(display text, own properties)`` per sibling, in document order.

        Returns:
            One ``(anchor, headline id)`` pair per sibling.
        """
        seen: Counter[str] = Counter()
        allocated: list[tuple[str, str]] = []
        for text, properties in siblings:
            occurrence = seen[text]
            seen[text] += 1
            explicit = explicit_id(properties)
            if explicit is not None and explicit in self._unique:
                anchor = f"id:{explicit}"
            else:
                anchor = f"{parent_anchor}\x1f{text}\x1f{occurrence}"
            allocated.append((anchor, f"{self.document_id}-{_digest(anchor)[:12]}"))
        return allocated
