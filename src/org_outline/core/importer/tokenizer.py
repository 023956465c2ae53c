"""Line-oriented org tokenizer.

This is a small stand-in for a full org grammar engine. It recognises file
keywords, headlines, planning lines, property drawers and plain text lines,
which is all the document pipeline consumes.
"""

import re
from collections.abc import Iterator

from org_outline.core.importer.timestamps import TIMESTAMP_PATTERN
from org_outline.models.events import RawToken, TokenKind
from org_outline.protocols import TokenizerError

_HEADLINE_RE = re.compile(r"^(?P<stars>\*+)(?:[ \t]+(?P<title>.*?))?[ \t]*$")
_KEYWORD_RE = re.compile(r"^\s*#\+(?P<key>[^\s:]+):(?:\s*(?P<value>.*?))?\s*$")
_PLANNING_LINE_RE = re.compile(r"^\s*(?:SCHEDULED|DEADLINE|CLOSED):")
_PLANNING_ITEM_RE = re.compile(
    rf"(?P<kind>SCHEDULED|DEADLINE|CLOSED):\s*(?P<value>{TIMESTAMP_PATTERN}|\S*)"
)
_COMMENT_RE = re.compile(r"^\s*#(?:\s|$)")


def _split_lines(text: str) -> list[str]:
    """Split on newlines only, keeping line ends.

    Form feeds and Unicode line separators are ordinary characters in org text.
    """
    lines = [line + "\n" for line in text.split("\n")]
    lines[-1] = lines[-1][:-1]
    if not lines[-1]:
        lines.pop()
    return lines


class LineTokenizer:
    """Tokenize org text one line at a time."""

    def tokenize(self, text: str) -> Iterator[RawToken]:
        nul = text.find("\x00")
        if nul != -1:
            msg = "Buffer contains NUL characters; not an org text file"
            raise TokenizerError(msg, offset=nul)

        offset = 0
        in_drawer = False
        # Planning and property drawers are only recognised right after a headline.
        allow_planning = False
        allow_drawer = False
        # A file-level drawer may follow only keywords, comments and blank lines.
        top_of_file = True

        for line_no, raw_line in enumerate(_split_lines(text), start=1):
            line = raw_line.rstrip("\r\n")
            line_offset = offset
            offset += len(raw_line)
            stripped = line.strip()

            m = _HEADLINE_RE.match(line)
            if m:
                in_drawer = False
                allow_planning = allow_drawer = True
                top_of_file = False
                yield RawToken(
                    TokenKind.HEADLINE,
                    line_no,
                    line_offset,
                    text=m.group("title") or "",
                    level=len(m.group("stars")),
                )
                continue

            if in_drawer:
                if stripped.upper() == ":END:":
                    in_drawer = False
                    yield RawToken(TokenKind.DRAWER_END, line_no, line_offset, text=line)
                else:
                    yield RawToken(TokenKind.DRAWER_LINE, line_no, line_offset, text=line)
                continue

            if allow_planning and _PLANNING_LINE_RE.match(line):
                allow_planning = False
                for item in _PLANNING_ITEM_RE.finditer(line):
                    yield RawToken(
                        TokenKind.PLANNING,
                        line_no,
                        line_offset + item.start(),
                        text=item.group(0),
                        key=item.group("kind").lower(),
                        value=item.group("value"),
                    )
                continue

            if stripped.upper() == ":PROPERTIES:" and (allow_drawer or top_of_file):
                in_drawer = True
                allow_planning = allow_drawer = top_of_file = False
                yield RawToken(TokenKind.DRAWER_BEGIN, line_no, line_offset, text=line)
                continue

            allow_planning = allow_drawer = False

            m = _KEYWORD_RE.match(line)
            if m:
                yield RawToken(
                    TokenKind.KEYWORD,
                    line_no,
                    line_offset,
                    text=line,
                    key=m.group("key"),
                    value=m.group("value") or "",
                )
                continue

            if stripped and not _COMMENT_RE.match(line):
                top_of_file = False
            yield RawToken(TokenKind.TEXT, line_no, line_offset, text=line)
