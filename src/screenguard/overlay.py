"""Overlay manager — lifecycle of the visual masks painted over PII.

Each mask is an ``Element`` appended to the document body with the
``screenguard-overlay`` class, fixed positioning above everything else and
``pointer-events: none`` so the page stays fully usable underneath.  Masks
are recorded against the text node they cover; on scroll/resize they are
moved in place, never recreated, and masks of detached nodes are dropped.
"""

from __future__ import annotations
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .content import Document, Element, TextNode
from .extractor import OVERLAY_CLASS
from .geometry import map_span_to_rects
from .layout import Layout
from .types import CATEGORY_GLYPHS, PiiCategory, Rect

logger = logging.getLogger(__name__)

OVERLAY_Z_INDEX = "999999"


@dataclass(frozen=True, slots=True)
class Span:
    """The text a group of masks covers, for re-resolving on reposition."""
    start: int
    end: int
    value: str


@dataclass(slots=True)
class Mask:
    """Handle on one rendered mask element."""
    element: Element
    category: PiiCategory
    rect: Rect
    span: Span | None = None


def create_overlay(rect: Rect, category: PiiCategory) -> Element:
    """Build a non-interactive, topmost mask element over rect."""
    element = Element(
        "div",
        classes={OVERLAY_CLASS},
        dataset={
            "pii-type": category.value,
            "glyph": CATEGORY_GLYPHS.get(category, "•"),
        },
        style={
            "position": "fixed",
            "z-index": OVERLAY_Z_INDEX,
            "pointer-events": "none",
        },
    )
    _place(element, rect)
    return element


def _place(element: Element, rect: Rect) -> None:
    element.style.update({
        "left": f"{rect.left:g}px",
        "top": f"{rect.top:g}px",
        "width": f"{rect.width:g}px",
        "height": f"{rect.height:g}px",
    })


class OverlayManager:
    """Owns every active mask, keyed by the text node it covers."""

    def __init__(self, document: Document, layout: Layout) -> None:
        self.document = document
        self.layout = layout
        self._masks: dict[TextNode, list[Mask]] = {}

    # ------------------------------------------------------------------
    # Creation / removal
    # ------------------------------------------------------------------

    def mask(
        self,
        owner: TextNode,
        rects: Iterable[Rect],
        category: PiiCategory,
        span: Span | None = None,
    ) -> list[Mask]:
        """Paint one mask per rect and record them against owner."""
        created: list[Mask] = []
        for rect in rects:
            if rect.is_empty:
                continue
            element = create_overlay(rect, category)
            self.document.body.append(element)
            created.append(Mask(element=element, category=category, rect=rect, span=span))
        if created:
            self._masks.setdefault(owner, []).extend(created)
        return created

    def clear_all(self) -> None:
        """Remove every mask and empty the registry."""
        for masks in self._masks.values():
            for m in masks:
                m.element.detach()
        self._masks.clear()

    def remove(self, owner: TextNode) -> None:
        for m in self._masks.pop(owner, []):
            m.element.detach()

    # ------------------------------------------------------------------
    # Geometry updates
    # ------------------------------------------------------------------

    def reposition(self, owner: TextNode) -> None:
        """Move owner's masks to its current geometry.

        A detached owner loses its masks and its registry entry, and masks
        whose element was removed from the page are forgotten.  Masks
        whose span currently has no rendered rects stay where they are.
        """
        masks = self._masks.get(owner)
        if masks is None:
            return
        if not self.document.contains(owner):
            logger.debug("Dropping %d mask(s) of detached node", len(masks))
            self.remove(owner)
            return
        live = [m for m in masks if self.document.contains(m.element)]
        if len(live) != len(masks):
            logger.debug("Dropping %d mask(s) removed from the page", len(masks) - len(live))
            if not live:
                del self._masks[owner]
                return
            self._masks[owner] = masks = live

        groups: dict[tuple[Span | None, PiiCategory], list[Mask]] = {}
        for m in masks:
            groups.setdefault((m.span, m.category), []).append(m)

        for (span, _), group in groups.items():
            if span is None:
                bounds = self.layout.node_rect(owner)
                rects = [bounds] if bounds is not None else []
            else:
                rects = map_span_to_rects(self.layout, owner, span.start, span.end, span.value)
            if not rects:
                continue
            if len(rects) != len(group):
                # Line wrapping changed; keep the mask count, cover the whole span
                bounds = rects[0]
                for r in rects[1:]:
                    bounds = bounds.union(r)
                rects = [bounds] * len(group)
            for m, rect in zip(group, rects):
                m.rect = rect
                _place(m.element, rect)

    def reposition_all(self) -> None:
        self.prune()
        for owner in list(self._masks):
            self.reposition(owner)

    def prune(self) -> int:
        """Drop detached owners and masks removed from the page externally."""
        dropped = 0
        for owner in list(self._masks):
            if not self.document.contains(owner):
                dropped += len(self._masks[owner])
                self.remove(owner)
                continue
            live = [m for m in self._masks[owner] if self.document.contains(m.element)]
            dropped += len(self._masks[owner]) - len(live)
            if live:
                self._masks[owner] = live
            else:
                del self._masks[owner]
        return dropped

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def masked_count(self) -> int:
        return sum(len(masks) for masks in self._masks.values())

    def masks_for(self, owner: TextNode) -> list[Mask]:
        return list(self._masks.get(owner, []))

    def owners(self) -> list[TextNode]:
        return list(self._masks)

    def all_masks(self) -> list[Mask]:
        return [m for masks in self._masks.values() for m in masks]
