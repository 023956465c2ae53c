"""Adapt raw tokenizer output into the normalized event stream.

The stream is properly nested: every ``HeadlineStart`` is eventually followed by
a matching ``HeadlineEnd``, and deeper headlines close before shallower ones.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from org_outline.core.importer.timestamps import parse_timestamp
from org_outline.models.events import (
    BodyText,
    Event,
    FileKeyword,
    HeadlineEnd,
    HeadlineStart,
    PlanningEntry,
    PropertyEntry,
    RawToken,
    TokenKind,
)
from org_outline.models.records import AdapterFailure, ParseWarning, WarningKind
from org_outline.protocols import TokenizerError, TokenizerProtocol

_PROPERTY_RE = re.compile(r"^\s*:(?P<key>[^\s:]+):(?:\s+(?P<value>.*?))?\s*$")


@dataclass(frozen=True)
class AdapterResult:
    events: tuple[Event, ...]
    warnings: tuple[ParseWarning, ...] = ()


def _warn(warnings: list[ParseWarning], kind: WarningKind, message: str, line: int) -> None:
    logger.warning("Line {}: {}", line, message)
    warnings.append(ParseWarning(kind=kind, message=message, line=line))


def adapt(tokens: Iterable[RawToken]) -> AdapterResult:
    """Convert raw tokens into nested events.

    Malformed property lines, unterminated drawers and unparseable planning
    timestamps are recovered locally and reported as warnings.

    Args:
        tokens: Raw tokens in source order.

    Returns:
        The events and any warnings raised while adapting.
    """
    events: list[Event] = []
    warnings: list[ParseWarning] = []
    open_levels: list[int] = []
    drawer_line: int | None = None

    def close_drawer_unterminated() -> None:
        nonlocal drawer_line
        if drawer_line is not None:
            _warn(
                warnings,
                WarningKind.UNTERMINATED_DRAWER,
                "Property drawer has no :END:",
                drawer_line,
            )
            drawer_line = None

    for token in tokens:
        match token.kind:
            case TokenKind.HEADLINE:
                close_drawer_unterminated()
                while open_levels and open_levels[-1] >= token.level:
                    events.append(HeadlineEnd(level=open_levels.pop()))
                events.append(HeadlineStart(token.level, token.text, token.line))
                open_levels.append(token.level)
            case TokenKind.KEYWORD:
                events.append(FileKeyword(token.key, token.value, token.line))
            case TokenKind.PLANNING:
                timestamp = parse_timestamp(token.value)
                if timestamp is None:
                    _warn(
                        warnings,
                        WarningKind.INVALID_TIMESTAMP,
                        f"Invalid {token.key.upper()} timestamp {token.value!r}",
                        token.line,
                    )
                elif not open_levels:
                    events.append(BodyText(token.text, token.line))
                else:
                    events.append(PlanningEntry(token.key, timestamp, token.line))
            case TokenKind.DRAWER_BEGIN:
                close_drawer_unterminated()
                drawer_line = token.line
            case TokenKind.DRAWER_END:
                drawer_line = None
            case TokenKind.DRAWER_LINE:
                if not token.text.strip():
                    continue
                m = _PROPERTY_RE.match(token.text)
                if m is None:
                    _warn(
                        warnings,
                        WarningKind.MALFORMED_PROPERTY,
                        f"Malformed property line {token.text.strip()!r}",
                        token.line,
                    )
                    continue
                events.append(PropertyEntry(m.group("key"), m.group("value") or "", token.line))
            case TokenKind.TEXT:
                events.append(BodyText(token.text, token.line))

    close_drawer_unterminated()
    while open_levels:
        events.append(HeadlineEnd(level=open_levels.pop()))
    return AdapterResult(events=tuple(events), warnings=tuple(warnings))


def tokenize_and_adapt(source: str | bytes, tokenizer: TokenizerProtocol) -> AdapterResult:
    """Tokenize a buffer and adapt the tokens.

    Raises:
        AdapterFailure: The buffer is not valid UTF-8 or the tokenizer gave up.
    """
    if isinstance(source, bytes):
        try:
            text = source.decode("utf-8")
        except UnicodeDecodeError as e:
            msg = f"Invalid UTF-8: {e.reason}"
            raise AdapterFailure(msg, offset=e.start) from e
    else:
        text = source
    try:
        tokens = list(tokenizer.tokenize(text))
    except TokenizerError as e:
        raise AdapterFailure(str(e), offset=e.offset) from e
    return adapt(tokens)
