"""Scan scheduler — runs scan passes and reschedules them on content changes.

State machine::

    IDLE ──trigger──▶ SCANNING ──pass complete──▶ IDLE
      ▲                                              │
      └── debounced mutation (trailing edge, 2 s) ◀──┘

- At most one pass is in flight; a trigger arriving while SCANNING is
  dropped, not queued.
- Mutations re-arm the debounce timer; the pass starts after a quiet period.
- ``disable()`` clears masks and stops automatic scans without touching
  the processed registry or counts.
"""

from __future__ import annotations
import asyncio
import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from .content import Document, Element, MutationRecord, TextNode
from .detector import PiiDetector
from .extractor import MIN_TEXT_LENGTH, OVERLAY_CLASS, extract_text_units
from .geometry import map_span_to_rects, resolve_span
from .layout import Layout
from .overlay import OverlayManager, Span
from .scoring import label, score
from .state import ScanState
from .types import Finding, PiiCategory

logger = logging.getLogger(__name__)

DEFAULT_RESCAN_DELAY_S = 2.0


class Phase(enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"


@dataclass(slots=True)
class ScanResult:
    """Outcome of one completed pass."""
    found: int
    masked: int
    score: int
    label: str
    counts: dict[PiiCategory, int] = field(default_factory=dict)
    reason: str = "manual"


class Debouncer:
    """Trailing-edge timer: fires ``callback`` once ``delay`` seconds after the last poke."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.delay = delay
        self._callback = callback
        self._clock = clock
        self._handle: asyncio.TimerHandle | None = None
        self.deadline: float | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def poke(self) -> None:
        """(Re)start the quiet period.  Without a running loop the poke is skipped."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, rescan not scheduled")
            return
        self.cancel()
        self.deadline = self._clock() + self.delay
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self.deadline = None

    def _fire(self) -> None:
        self._handle = None
        self.deadline = None
        self._callback()


class ScanScheduler:
    """Orchestrates extract → detect → filter → map → mask → score."""

    def __init__(
        self,
        state: ScanState,
        detector: PiiDetector,
        document: Document,
        layout: Layout,
        overlays: OverlayManager,
        *,
        rescan_delay: float = DEFAULT_RESCAN_DELAY_S,
        min_text_length: int = MIN_TEXT_LENGTH,
    ) -> None:
        self.state = state
        self.detector = detector
        self.document = document
        self.layout = layout
        self.overlays = overlays
        self.min_text_length = min_text_length
        self.phase = Phase.IDLE
        self.debouncer = Debouncer(rescan_delay, self._on_quiet)
        self._listeners: list[Callable[[ScanResult], None]] = []
        self._task: asyncio.Task | None = None

    def on_complete(self, listener: Callable[[ScanResult], None]) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def request_scan(self, reason: str = "manual") -> asyncio.Task | None:
        """Start a pass in the background; None if the trigger is dropped."""
        if not self._can_start(reason):
            return None
        self._task = asyncio.ensure_future(self.scan(reason))
        return self._task

    def notify_mutation(self, records: list[MutationRecord]) -> None:
        """Debounce a rescan if any record changes real content."""
        if not self.state.enabled:
            return
        if any(_is_content_change(r) for r in records):
            self.debouncer.poke()

    def _on_quiet(self) -> None:
        logger.debug("Content settled, rescanning")
        self.request_scan("mutation")

    def disable(self) -> None:
        self.state.enabled = False
        self.debouncer.cancel()
        self.overlays.clear_all()

    def enable(self) -> None:
        self.state.enabled = True

    async def wait_idle(self) -> None:
        """Wait for the in-flight pass, if any."""
        task = self._task
        if task is not None and not task.done():
            await task

    def _can_start(self, reason: str) -> bool:
        if not self.state.enabled or not self.state.initialized:
            logger.debug("Scan (%s) skipped: enabled=%s initialized=%s",
                         reason, self.state.enabled, self.state.initialized)
            return False
        if self.phase is Phase.SCANNING:
            logger.debug("Scan (%s) dropped: pass already in flight", reason)
            return False
        return True

    # ------------------------------------------------------------------
    # The pass
    # ------------------------------------------------------------------

    async def scan(self, reason: str = "manual") -> ScanResult | None:
        """Run one full pass.  Returns None when the trigger is dropped."""
        if not self._can_start(reason):
            return None
        self.phase = Phase.SCANNING
        try:
            result = await self._run_pass(reason)
        finally:
            self.phase = Phase.IDLE
        if not self.state.enabled:
            # Disabled mid-pass
            self.overlays.clear_all()

        for listener in self._listeners:
            listener(result)
        return result

    async def _run_pass(self, reason: str) -> ScanResult:
        logger.info("Scanning page for PII (%s)", reason)
        state = self.state
        self.overlays.clear_all()
        state.reset_processed()
        state.privacy.reset()

        units = extract_text_units(
            self.document.body,
            min_length=self.min_text_length,
            processed=state.processed,
        )
        found = 0
        for node in units:
            if node in state.processed:
                continue
            text = node.text
            findings = await self.detector.detect(text)
            actionable = [f for f in findings if state.is_enabled(f.type)]
            for finding in actionable:
                try:
                    self._mask_finding(node, finding)
                except Exception as exc:
                    # One unmappable finding never aborts the pass
                    logger.debug("Could not mask %s finding: %s", finding.type.value, type(exc).__name__)
                state.privacy.record(finding.type)
            found += len(actionable)
            state.processed.add(node)

        state.privacy.score = score(state.privacy.counts)
        logger.info("Found and masked %d text PII item(s), score %d",
                    found, state.privacy.score)
        return ScanResult(
            found=found,
            masked=self.overlays.masked_count,
            score=state.privacy.score,
            label=label(state.privacy.score),
            counts=dict(state.privacy.counts),
            reason=reason,
        )

    def _mask_finding(self, node: TextNode, finding: Finding) -> None:
        span = resolve_span(node.text, finding.value, finding.start, finding.end)
        if span is None:
            # Content changed between detection and masking
            logger.debug("Skipping %s finding no longer present in its node", finding.type.value)
            return
        start, end = span
        rects = map_span_to_rects(self.layout, node, start, end)
        self.overlays.mask(node, rects, finding.type, Span(start, end, finding.value))


def _is_content_change(record: MutationRecord) -> bool:
    if record.kind == "character_data":
        return True
    return any(
        not (isinstance(n, Element) and OVERLAY_CLASS in n.classes)
        for n in record.added
    )
