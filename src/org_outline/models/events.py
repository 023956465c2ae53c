"""Raw tokens from the tokenizer and the normalized event vocabulary."""

from dataclasses import dataclass
from enum import Enum

from org_outline.models.timestamp import Timestamp


class TokenKind(Enum):
    KEYWORD = "keyword"
    HEADLINE = "headline"
    PLANNING = "planning"
    DRAWER_BEGIN = "drawer_begin"
    DRAWER_LINE = "drawer_line"
    DRAWER_END = "drawer_end"
    TEXT = "text"


@dataclass(frozen=True)
class RawToken:
    """One token as emitted by a tokenizer.

    ``key``/``value`` carry keyword names and values (``#+KEY: value``) or the
    planning kind and its raw timestamp text. ``level`` is the star count of
    headline tokens.
    """

    kind: TokenKind
    line: int
    offset: int
    text: str = ""
    key: str = ""
    value: str = ""
    level: int = 0


@dataclass(frozen=True)
class FileKeyword:
    key: str
    value: str
    line: int = 0


@dataclass(frozen=True)
class HeadlineStart:
    level: int
    raw_title: str
    line: int = 0


@dataclass(frozen=True)
class BodyText:
    text: str
    line: int = 0


@dataclass(frozen=True)
class PropertyEntry:
    key: str
    value: str
    line: int = 0


@dataclass(frozen=True)
class PlanningEntry:
    kind: str
    timestamp: Timestamp
    line: int = 0


@dataclass(frozen=True)
class HeadlineEnd:
    level: int


Event = FileKeyword | HeadlineStart | BodyText | PropertyEntry | PlanningEntry | HeadlineEnd
