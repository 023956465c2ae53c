"""Failure, warning and update records exchanged with collaborators."""

from dataclasses import dataclass
from enum import Enum


class WarningKind(Enum):
    MALFORMED_PROPERTY = "malformed_property"
    UNTERMINATED_DRAWER = "unterminated_drawer"
    INVALID_TIMESTAMP = "invalid_timestamp"
    DUPLICATE_ID = "duplicate_id"


@dataclass(frozen=True)
class ParseWarning:
    """A locally recovered problem; the document was still built."""

    kind: WarningKind
    message: str
    line: int = 0


@dataclass(frozen=True)
class ParseFailure:
    """A whole-document failure. The previously published document is kept."""

    document_id: str
    path: str
    message: str
    offset: int | None = None


class AdapterFailure(Exception):
    """The tokenizer could not produce a token stream for the buffer."""

    def __init__(self, message: str, *, offset: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset

    def __str__(self) -> str:
        if self.offset is None:
            return self.message
        return f"{self.message} (at offset {self.offset})"


@dataclass(frozen=True)
class DocumentUpdate:
    """Headline-level difference between two published versions of a document."""

    document_id: str
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    changed: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)
