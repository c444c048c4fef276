"""Visible text units of a content tree, in document order."""

from __future__ import annotations
from collections.abc import Container, Iterator

from .content import Element, TextNode

EXCLUDED_TAGS = frozenset({"script", "style", "noscript", "iframe"})
OVERLAY_CLASS = "screenguard-overlay"
MIN_TEXT_LENGTH = 5


def is_excluded(element: Element) -> bool:
    """True for containers whose text is never content: non-rendering tags and masks."""
    return element.tag in EXCLUDED_TAGS or OVERLAY_CLASS in element.classes


def iter_rendered_text(root: Element) -> Iterator[TextNode]:
    """Yield text nodes under root in document order, skipping excluded subtrees."""
    for child in root.children:
        if isinstance(child, TextNode):
            yield child
        elif isinstance(child, Element) and not is_excluded(child):
            yield from iter_rendered_text(child)


def extract_text_units(
    root: Element,
    *,
    min_length: int = MIN_TEXT_LENGTH,
    processed: Container[TextNode] | None = None,
) -> list[TextNode]:
    """Return the scannable text nodes under root.

    Excluded subtrees are skipped whole.  Text shorter than ``min_length``
    once trimmed is skipped, as are nodes already in ``processed``.
    Never mutates the tree.
    """
    units: list[TextNode] = []
    for node in iter_rendered_text(root):
        if len(node.text.strip()) < min_length:
            continue
        if processed is not None and node in processed:
            continue
        units.append(node)
    return units
