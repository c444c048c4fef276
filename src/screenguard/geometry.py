"""Character spans to screen rectangles.

A finding's offsets were computed on the text as it was when detected.  By
the time masks are painted the node may have changed, so the span is
re-resolved against the node's current text by value before asking the
layout for rectangles.
"""

from __future__ import annotations

from .content import TextNode
from .layout import Layout
from .types import Rect


def resolve_span(text: str, value: str, start: int, end: int) -> tuple[int, int] | None:
    """Locate ``value`` in ``text``.

    A unique occurrence wins.  Otherwise the recorded offsets are used if
    they still index ``value``, else the first occurrence.  Returns None when
    ``value`` is absent (content changed under the finding).
    """
    if not value:
        return None
    first = text.find(value)
    if first == -1:
        return None
    if text.find(value, first + 1) == -1:
        return first, first + len(value)
    if 0 <= start < end <= len(text) and text[start:end] == value:
        return start, end
    return first, first + len(value)


def map_span_to_rects(
    layout: Layout,
    node: TextNode,
    start: int,
    end: int,
    value: str | None = None,
) -> list[Rect]:
    """Return the non-empty rects covering the span, one per rendered line.

    With ``value`` the span is resolved against the node's current text
    first; an unresolvable value maps to no rects.
    """
    if value is not None:
        span = resolve_span(node.text, value, start, end)
        if span is None:
            return []
        start, end = span
    if start >= end:
        return []
    return [r for r in layout.range_rects(node, start, end) if not r.is_empty]
