"""PiiDetector — model-backed detection with a deterministic fallback.

Usage:
    detector = PiiDetector(OllamaBackend(model="qwen2.5:3b"))
    await detector.init()                  # optional, detect() calls it lazily
    findings = await detector.detect("mail me at a@b.com")
    await detector.destroy()               # page teardown

``detect`` never raises.  If the backend cannot be acquired the detector
switches to pattern matching for the rest of its life; if a single model
call fails or times out, only that chunk falls back to patterns.
"""

from __future__ import annotations
import asyncio
import logging

from .backend import (
    PII_SCHEMA,
    PROMPT_PREFIX,
    SYSTEM_INSTRUCTION,
    BackendUnavailableError,
    ChunkDetectionError,
    DetectorBackend,
    Session,
    parse_report,
)
from .patterns import scan_patterns
from .types import Finding

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0


class PiiDetector:
    """Detects PII in text chunks.

    Parameters
    ----------
    backend:
        Model backend.  ``None`` means regex-only mode.
    timeout_s:
        Upper bound for one model call; a timeout counts as a chunk failure.
    """

    def __init__(
        self,
        backend: DetectorBackend | None = None,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.backend = backend
        self.timeout_s = timeout_s
        self._session: Session | None = None
        self._use_fallback = False
        self._initialized = False
        self._init_task: asyncio.Task | None = None

    # -- lifecycle ----------------------------------------------------------

    async def init(self) -> None:
        """Acquire a model session once.  Safe to call repeatedly."""
        if self._initialized:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._acquire())
        await asyncio.shield(self._init_task)

    async def _acquire(self) -> None:
        try:
            if self.backend is None:
                raise BackendUnavailableError("no model backend configured")
            availability = await self.backend.availability()
            if availability != "available":
                raise BackendUnavailableError(f"model availability: {availability}")
            self._session = await self.backend.create_session(SYSTEM_INSTRUCTION, PII_SCHEMA)
            self._use_fallback = False
            logger.info("Model-backed PII detection ready (%s)", type(self.backend).__name__)
        except Exception as exc:
            # Permanent for this detector: no per-call retry
            self._session = None
            self._use_fallback = True
            logger.warning("Model backend unavailable, using pattern fallback: %s", exc)
        finally:
            self._initialized = True

    async def destroy(self) -> None:
        """Release the model session, if one was acquired."""
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await session.destroy()
        except Exception as exc:
            logger.error("Error destroying detector session: %s", exc)

    # -- state --------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def uses_fallback(self) -> bool:
        return self._use_fallback or (self._initialized and self._session is None)

    @property
    def mode(self) -> str:
        if not self._initialized:
            return "uninitialised"
        return "fallback" if self.uses_fallback else "model"

    # -- detection ----------------------------------------------------------

    async def detect(self, text: str) -> list[Finding]:
        """Return PII findings for one text chunk.  Never raises."""
        if not self._initialized:
            await self.init()
        if not text or not text.strip():
            return []
        if self.uses_fallback:
            return scan_patterns(text)

        try:
            raw = await asyncio.wait_for(
                self._session.prompt(PROMPT_PREFIX + text, PII_SCHEMA),
                timeout=self.timeout_s,
            )
            return parse_report(raw, text)
        except asyncio.TimeoutError:
            logger.warning("PII detection timed out after %ss, using patterns for chunk", self.timeout_s)
        except ChunkDetectionError as exc:
            logger.warning("PII detection error, using patterns for chunk: %s", exc)
        except Exception as exc:
            logger.warning("PII detection error, using patterns for chunk: %s", type(exc).__name__)
        return scan_patterns(text)
