"""Answers "where is this text on screen?" for the mapper and masks.

The :class:`Layout` protocol is what a host provides (a browser bridge would
answer from real client rects).  :class:`FlowLayout` is a deterministic
monospace block-flow engine used by the CLI and the tests:

- every rendered text node starts on a new line below the previous one;
- text wraps by character at ``width // char_width`` columns;
- nodes under non-rendering tags, overlays or ``display: none`` are not laid out;
- rects are reported in viewport coordinates (document position minus scroll).
"""

from __future__ import annotations
import weakref
from typing import Protocol

from .content import Document, Element, TextNode
from .extractor import is_excluded
from .types import Rect


class Layout(Protocol):
    def range_rects(self, node: TextNode, start: int, end: int) -> list[Rect]:
        """One rect per rendered line covered by ``node.text[start:end]``."""
        ...

    def node_rect(self, node: TextNode) -> Rect | None:
        """Bounding rect of the whole node, or None when not rendered."""
        ...


class FlowLayout:
    """Monospace flow layout over a :class:`Document`."""

    def __init__(
        self,
        document: Document,
        *,
        width: int = 1280,
        height: int = 800,
        char_width: int = 8,
        line_height: int = 16,
    ) -> None:
        self.document = document
        self.width = width
        self.height = height
        self.char_width = char_width
        self.line_height = line_height
        self.scroll_x = 0
        self.scroll_y = 0
        self._lines: weakref.WeakKeyDictionary[TextNode, int] = weakref.WeakKeyDictionary()
        self._cache_key: tuple[int, int] | None = None

    # -- viewport -----------------------------------------------------------

    @property
    def columns(self) -> int:
        return max(1, self.width // self.char_width)

    def scroll_to(self, x: int, y: int) -> None:
        self.scroll_x, self.scroll_y = x, y

    def scroll_by(self, dx: int = 0, dy: int = 0) -> None:
        self.scroll_x += dx
        self.scroll_y += dy

    def resize(self, width: int, height: int) -> None:
        self.width, self.height = width, height

    # -- flow ---------------------------------------------------------------

    def _reflow(self) -> None:
        key = (self.document.version, self.columns)
        if key == self._cache_key:
            return
        self._lines = weakref.WeakKeyDictionary()
        line = 0
        for node in self._rendered(self.document.body):
            self._lines[node] = line
            line += self._line_count(node.text)
        self._cache_key = key

    def _rendered(self, element: Element):
        for child in element.children:
            if isinstance(child, TextNode):
                yield child
            elif isinstance(child, Element):
                if is_excluded(child) or child.style.get("display") == "none":
                    continue
                yield from self._rendered(child)

    def _line_count(self, text: str) -> int:
        return -(-len(text) // self.columns)

    # -- Layout protocol ----------------------------------------------------

    def range_rects(self, node: TextNode, start: int, end: int) -> list[Rect]:
        self._reflow()
        first_line = self._lines.get(node)
        if first_line is None:
            return []
        start = max(0, start)
        end = min(end, len(node.text))
        cols = self.columns
        rects: list[Rect] = []
        pos = start
        while pos < end:
            line, col = divmod(pos, cols)
            run = min(end - pos, cols - col)
            rects.append(Rect(
                left=col * self.char_width - self.scroll_x,
                top=(first_line + line) * self.line_height - self.scroll_y,
                width=run * self.char_width,
                height=self.line_height,
            ))
            pos += run
        return rects

    def node_rect(self, node: TextNode) -> Rect | None:
        rects = self.range_rects(node, 0, len(node.text))
        if not rects:
            return None
        bounds = rects[0]
        for rect in rects[1:]:
            bounds = bounds.union(rect)
        return bounds
