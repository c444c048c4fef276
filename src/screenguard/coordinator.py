"""Coordinator — wires detector, scheduler and overlays to one page.

Usage:
    doc = load_html(markup)
    coordinator = Coordinator(doc, FlowLayout(doc), detector=PiiDetector(backend))
    await coordinator.start()                       # settings, init, first scan
    await coordinator.handle({"type": "rescan"})    # UI control messages
    coordinator.on_scroll()                         # host viewport events
    await coordinator.shutdown()

Control messages are acknowledged immediately; the scan they trigger runs
in the background.  After every completed pass a ``pii_detected`` message
is pushed to the telemetry sink (the badge/indicator collaborator).
"""

from __future__ import annotations
import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from .content import Document
from .detector import PiiDetector
from .extractor import MIN_TEXT_LENGTH
from .layout import Layout
from .overlay import OverlayManager
from .scheduler import DEFAULT_RESCAN_DELAY_S, ScanResult, ScanScheduler
from .scoring import describe, label
from .settings import Settings, SettingsIOError, SettingsStore
from .state import ScanState
from .types import PiiCategory

logger = logging.getLogger(__name__)

TelemetrySink = Callable[[dict[str, Any]], None]
Handler = Callable[[Mapping[str, Any]], Awaitable[dict[str, Any]]]


class Coordinator:
    """Process-wide state holder and request/response surface for the UI."""

    def __init__(
        self,
        document: Document,
        layout: Layout,
        *,
        detector: PiiDetector | None = None,
        settings_store: SettingsStore | None = None,
        defaults: Settings | None = None,
        telemetry: TelemetrySink | None = None,
        rescan_delay: float = DEFAULT_RESCAN_DELAY_S,
        min_text_length: int = MIN_TEXT_LENGTH,
    ) -> None:
        self.document = document
        self.layout = layout
        self.detector = detector or PiiDetector()
        self.settings_store = settings_store
        self.settings = defaults or Settings()
        self.settings_error: str | None = None
        self.telemetry = telemetry

        self.state = ScanState(
            enabled=self.settings.enabled,
            filters=dict(self.settings.filters),
        )
        self.overlays = OverlayManager(document, layout)
        self.scheduler = ScanScheduler(
            self.state,
            self.detector,
            document,
            layout,
            self.overlays,
            rescan_delay=rescan_delay,
            min_text_length=min_text_length,
        )
        self.scheduler.on_complete(self._report)
        self.last_result: ScanResult | None = None

        self._unobserve: Callable[[], None] | None = None
        self._reposition_pending = False
        self._handlers: dict[str, Handler] = {
            "get_status": self._get_status,
            "toggle": self._toggle,
            "rescan": self._rescan,
            "filter_change": self._filter_change,
            "settings_updated": self._settings_updated,
            "get_privacy_details": self._privacy_details,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> ScanResult | None:
        """Load settings, initialise the detector, watch for changes, then scan."""
        try:
            await self.reload_settings()
        except SettingsIOError as exc:
            logger.error("Error loading settings, using defaults: %s", exc)

        await self.detector.init()
        self.state.initialized = True
        logger.info("PII detector initialized (%s mode)", self.detector.mode)

        if self._unobserve is None:
            self._unobserve = self.document.observe(self.scheduler.notify_mutation)
        return await self.scheduler.scan("initial")

    async def shutdown(self) -> None:
        if self._unobserve is not None:
            self._unobserve()
            self._unobserve = None
        self.scheduler.debouncer.cancel()
        await self.scheduler.wait_idle()
        self.overlays.clear_all()
        await self.detector.destroy()

    async def reload_settings(self) -> Settings:
        """Re-read settings from the store and apply them.

        Raises SettingsIOError; the last known settings stay in effect.
        """
        if self.settings_store is None:
            return self.settings
        try:
            data = await self.settings_store.read()
        except SettingsIOError as exc:
            self.settings_error = str(exc)
            raise
        self.settings = Settings.from_mapping(data, fallback=self.settings)
        self.settings_error = None
        self.state.enabled = self.settings.enabled
        self.state.filters = dict(self.settings.filters)
        return self.settings

    # ------------------------------------------------------------------
    # Viewport events
    # ------------------------------------------------------------------

    def on_scroll(self) -> None:
        """Coalesce viewport changes into one reposition per loop iteration."""
        if self._reposition_pending:
            return
        self._reposition_pending = True
        asyncio.get_running_loop().call_soon(self._flush_reposition)

    on_resize = on_scroll

    def _flush_reposition(self) -> None:
        self._reposition_pending = False
        self.overlays.reposition_all()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle(self, message: Mapping[str, Any]) -> dict[str, Any]:
        """Answer one UI message.  Never waits for a scan to finish."""
        kind = message.get("type")
        logger.debug("Received message: %s", kind)
        handler = self._handlers.get(kind)
        if handler is None:
            return {"success": False, "error": f"unknown message type: {kind!r}"}
        return await handler(message)

    def status(self) -> dict[str, Any]:
        self.overlays.prune()
        return {
            "enabled": self.state.enabled,
            "initialized": self.state.initialized,
            "maskedCount": self.overlays.masked_count,
            "privacyScore": self.state.privacy.score,
            "piiCounts": self.state.privacy.counts_by_name(),
        }

    async def _get_status(self, message: Mapping[str, Any]) -> dict[str, Any]:
        return self.status()

    async def _toggle(self, message: Mapping[str, Any]) -> dict[str, Any]:
        if bool(message.get("enabled")):
            self.scheduler.enable()
            self.scheduler.request_scan("toggle")
        else:
            self.scheduler.disable()
        return {"success": True}

    async def _rescan(self, message: Mapping[str, Any]) -> dict[str, Any]:
        self.scheduler.request_scan("rescan")
        return {"success": True}

    async def _filter_change(self, message: Mapping[str, Any]) -> dict[str, Any]:
        category = PiiCategory.parse(message.get("piiType", ""))
        if category is None:
            return {"success": False, "error": f"unknown PII type: {message.get('piiType')!r}"}
        self.state.filters[category] = bool(message.get("enabled"))
        self.scheduler.request_scan("filter_change")
        return {"success": True}

    async def _settings_updated(self, message: Mapping[str, Any]) -> dict[str, Any]:
        try:
            await self.reload_settings()
        except SettingsIOError as exc:
            logger.error("Error reloading settings: %s", exc)
            return {"success": False, "error": str(exc)}
        if self.state.enabled:
            self.scheduler.request_scan("settings_updated")
        else:
            self.scheduler.disable()
        return {"success": True}

    async def _privacy_details(self, message: Mapping[str, Any]) -> dict[str, Any]:
        value = self.state.privacy.score
        return {
            "privacyScore": value,
            "label": label(value),
            "details": describe(self.state.privacy.counts, value),
        }

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def _report(self, result: ScanResult) -> None:
        self.last_result = result
        if self.telemetry is None:
            return
        try:
            self.telemetry({
                "type": "pii_detected",
                "count": result.found,
                "privacyScore": result.score,
                "piiCounts": {c.value: n for c, n in result.counts.items()},
            })
        except Exception as exc:
            logger.debug("Telemetry push failed: %s", exc)
