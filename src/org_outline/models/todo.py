"""TODO keyword configuration and status classes."""

from dataclasses import dataclass
from enum import Enum

DEFAULT_ACTIVE_KEYWORDS: tuple[str, ...] = ("TODO", "IN-PROGRESS", "WAITING")
DEFAULT_CLOSED_KEYWORDS: tuple[str, ...] = ("DONE", "CANCELLED")


class StatusClass(Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    NONE = "none"


@dataclass(frozen=True, eq=False)
class TodoKeywordConfig:
    """Ordered active and closed keyword lists.

    Order matters for sorting and display but not for equality.
    """

    active: tuple[str, ...]
    closed: tuple[str, ...]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TodoKeywordConfig):
            return NotImplemented
        return set(self.active) == set(other.active) and set(self.closed) == set(other.closed)

    def __hash__(self) -> int:
        return hash((frozenset(self.active), frozenset(self.closed)))

    @classmethod
    def default(cls) -> "TodoKeywordConfig":
        return cls(active=DEFAULT_ACTIVE_KEYWORDS, closed=DEFAULT_CLOSED_KEYWORDS)

    @classmethod
    def from_definition(cls, definition: str) -> "TodoKeywordConfig":
        """Parse an org ``#+TODO:`` value such as ``TODO(t) NEXT | DONE(d)``.

        Without a ``|`` separator the last keyword is the closed one, as in org.
        """
        if "|" in definition:
            active_part, closed_part = definition.split("|", 1)
            active = _keywords(active_part)
            closed = _keywords(closed_part)
        else:
            words = _keywords(definition)
            active, closed = words[:-1], words[-1:]
        if not active and not closed:
            msg = f"Empty TODO keyword definition: {definition!r}"
            raise ValueError(msg)
        return cls(active=active, closed=closed)

    @property
    def all_keywords(self) -> tuple[str, ...]:
        return self.active + self.closed

    def status_of(self, keyword: str) -> StatusClass:
        if keyword in self.active:
            return StatusClass.ACTIVE
        if keyword in self.closed:
            return StatusClass.CLOSED
        return StatusClass.NONE

    def order_of(self, keyword: str | None) -> int | None:
        """Position of a keyword in active-then-closed order."""
        if keyword is None:
            return None
        try:
            return self.all_keywords.index(keyword)
        except ValueError:
            return None

    def merged_with(self, other: "TodoKeywordConfig") -> "TodoKeywordConfig":
        """Append keywords from ``other`` that this configuration lacks."""
        active = self.active + tuple(k for k in other.active if k not in self.all_keywords)
        closed = self.closed + tuple(
            k for k in other.closed if k not in self.all_keywords and k not in active
        )
        return TodoKeywordConfig(active=active, closed=closed)


def _keywords(part: str) -> tuple[str, ...]:
    # Strip fast-access suffixes like TODO(t) or DONE(d@/!).
    words = (word.split("(", 1)[0] for word in part.split())
    return tuple(word for word in words if word)
