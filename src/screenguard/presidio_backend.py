"""NER backend — Presidio analyzer behind the detector backend contract.

Catches structured PII with context-aware recognizers instead of a
generative model.  Uses spaCy under the hood; the engine is loaded on
first session, not at import.
"""

from __future__ import annotations
import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .backend import PROMPT_PREFIX, Availability, BackendUnavailableError
from .types import PiiCategory

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

# Loaded on first session, not at import
_engine: AnalyzerEngine | None = None
_engine_lang: str = ""


def _get_engine(language: str = "en") -> AnalyzerEngine:
    """Lazy-init the Presidio analyzer engine."""
    global _engine, _engine_lang
    if _engine is None or _engine_lang != language:
        from presidio_analyzer import AnalyzerEngine
        from presidio_analyzer.nlp_engine import NlpEngineProvider

        provider = NlpEngineProvider(nlp_configuration={
            "nlp_engine_name": "spacy",
            "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
        })
        nlp_engine = provider.create_engine()
        _engine = AnalyzerEngine(nlp_engine=nlp_engine, supported_languages=[language])
        _engine_lang = language
    return _engine


# Presidio entity type → category
ENTITY_MAP: dict[str, PiiCategory] = {
    "EMAIL_ADDRESS": PiiCategory.EMAIL,
    "PHONE_NUMBER": PiiCategory.PHONE,
    "US_SSN": PiiCategory.SSN,
    "CREDIT_CARD": PiiCategory.CREDIT_CARD,
}


class PresidioSession:
    """Runs the analyzer off the event loop and emits ``pii_found`` dicts."""

    def __init__(self, engine: AnalyzerEngine, *, language: str, score_threshold: float) -> None:
        self._engine = engine
        self._language = language
        self._score_threshold = score_threshold

    def _analyze(self, text: str) -> dict[str, Any]:
        results = self._engine.analyze(
            text=text,
            language=self._language,
            entities=list(ENTITY_MAP),
            score_threshold=self._score_threshold,
        )
        found = []
        for r in sorted(results, key=lambda r: r.start):
            found.append({
                "type": ENTITY_MAP[r.entity_type].value,
                "value": text[r.start:r.end],
                "start": r.start,
                "end": r.end,
                "reason": f"presidio {r.entity_type} score={r.score:.2f}",
            })
        return {"pii_found": found}

    async def prompt(self, text: str, output_schema: Mapping[str, Any]) -> dict[str, Any]:
        # Offsets must index the analysed text, not the LLM prompt header
        if text.startswith(PROMPT_PREFIX):
            text = text[len(PROMPT_PREFIX):]
        return await asyncio.to_thread(self._analyze, text)

    async def destroy(self) -> None:
        # The engine is a process-wide singleton; nothing to release
        self._engine = None


class PresidioBackend:
    """Detector backend over Presidio's recognizers (optional dependency)."""

    def __init__(self, *, language: str = "en", score_threshold: float = 0.80) -> None:
        self.language = language
        self.score_threshold = score_threshold

    async def availability(self) -> Availability:
        try:
            import presidio_analyzer  # noqa: F401
        except ImportError:
            return "unavailable"
        return "available"

    async def create_session(
        self,
        system_instruction: str,
        schema: Mapping[str, Any],
    ) -> PresidioSession:
        if await self.availability() != "available":
            raise BackendUnavailableError("presidio-analyzer is not installed")
        try:
            engine = await asyncio.to_thread(_get_engine, self.language)
        except Exception as exc:
            raise BackendUnavailableError(f"Presidio engine failed to load: {exc}") from exc
        return PresidioSession(
            engine,
            language=self.language,
            score_threshold=self.score_threshold,
        )
