"""Render headline subtrees back to org-style text."""

import io

from org_outline.core.pipeline import IndexedDocument
from org_outline.models.node import Headline
from org_outline.models.timestamp import format_timestamp


def _headline_line(headline: Headline, stars: int) -> str:
    title = headline.title
    parts = ["*" * stars]
    if title.keyword:
        parts.append(title.keyword)
    if title.priority:
        parts.append(f"[#{title.priority}]")
    if title.text:
        parts.append(title.text)
    if title.tags:
        parts.append(":" + ":".join(title.tags) + ":")
    return " ".join(parts)


def render_subtree(
    indexed: IndexedDocument,
    headline_id: str,
    *,
    max_depth: int | None = None,
    include_body: bool = True,
) -> str:
    """Render a headline and its descendants as org text.

    Args:
        indexed: The document containing the headline.
        headline_id: The headline to start rendering from.
        max_depth: Max levels below the start headline to include (None = unlimited).
        include_body: Whether to include planning, properties and body text.

    Returns:
        Org text with stars relative to the start headline, or "" if the id is unknown.
    """
    if headline_id not in indexed.navigation:
        return ""
    start = indexed.navigation.by_id(headline_id)

    out = io.StringIO()
    stack: list[tuple[Headline, int]] = [(start, 0)]
    while stack:
        headline, depth = stack.pop()
        out.write(_headline_line(headline, depth + 1) + "\n")

        if include_body:
            planning = headline.title.planning
            stamps = [
                f"{kind.upper()}: {format_timestamp(ts)}"
                for kind in ("scheduled", "deadline", "closed")
                if (ts := planning.get(kind)) is not None
            ]
            if stamps:
                out.write(" ".join(stamps) + "\n")
            if headline.title.properties:
                out.write(":PROPERTIES:\n")
                for key, value in headline.title.properties.items():
                    out.write(f":{key}: {value}\n")
                out.write(":END:\n")
            if headline.body:
                out.write(headline.body + "\n")

        # Truncation marker when children are cut off by max_depth
        if max_depth is not None and depth == max_depth and headline.children:
            count = len(headline.children)
            noun = "child" if count == 1 else "children"
            out.write(f"{'*' * (depth + 2)} ... ({count} more {noun}, id={headline.id})\n")
            continue
        stack.extend((child, depth + 1) for child in reversed(headline.children))

    return out.getvalue()
