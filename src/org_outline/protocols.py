"""Protocols for the collaborators of the document pipeline."""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from org_outline.models.events import RawToken
from org_outline.models.node import Document


class TokenizerError(Exception):
    """Raised by a tokenizer that cannot tokenize a buffer at all."""

    def __init__(self, message: str, *, offset: int) -> None:
        super().__init__(message)
        self.offset = offset


@runtime_checkable
class TokenizerProtocol(Protocol):
    """Protocol for the external org tokenizer."""

    def tokenize(self, text: str) -> Iterable[RawToken]:
        """Split a text buffer into raw tokens, in source order."""
        ...


@runtime_checkable
class DocumentListener(Protocol):
    """Protocol for subscribers to published and removed documents."""

    def on_document_published(self, document: Document) -> None:
        """Called after a document is added or replaced."""
        ...

    def on_document_removed(self, document_id: str) -> None:
        """Called after a document is dropped from the store."""
        ...
