"""Tests for the Ollama and Presidio detector backends."""

import asyncio
import json
import sys
from types import SimpleNamespace

import httpx
import pytest

from screenguard.backend import (
    BackendUnavailableError,
    ChunkDetectionError,
    PII_SCHEMA,
    PROMPT_PREFIX,
    SYSTEM_INSTRUCTION,
    parse_report,
)
from screenguard.detector import PiiDetector
from screenguard.ollama_backend import OllamaBackend
from screenguard.presidio_backend import ENTITY_MAP, PresidioBackend, PresidioSession
from screenguard.types import PiiCategory

BASE_URL = "http://ollama.test"


def _ollama(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return OllamaBackend(base_url=BASE_URL, client=client, **kwargs), client


def _tags(*names):
    return httpx.Response(200, json={"models": [{"name": n} for n in names]})


# ── Ollama ───────────────────────────────────────────────────────────

def test_ollama_available_when_model_pulled():
    backend, _ = _ollama(lambda request: _tags("qwen2.5:3b", "llama3:latest"))
    assert asyncio.run(backend.availability()) == "available"


def test_ollama_latest_tag_matches_bare_name():
    backend, _ = _ollama(lambda request: _tags("llama3:latest"), model="llama3")
    assert asyncio.run(backend.availability()) == "available"


def test_ollama_downloadable_when_model_missing():
    backend, _ = _ollama(lambda request: _tags("llama3:latest"))
    assert asyncio.run(backend.availability()) == "downloadable"


def test_ollama_unavailable_when_unreachable():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend, _ = _ollama(refuse)
    assert asyncio.run(backend.availability()) == "unavailable"


def test_ollama_unavailable_on_server_error():
    backend, _ = _ollama(lambda request: httpx.Response(503))
    assert asyncio.run(backend.availability()) == "unavailable"


def test_ollama_create_session_requires_model():
    backend, _ = _ollama(lambda request: _tags())
    with pytest.raises(BackendUnavailableError):
        asyncio.run(backend.create_session(SYSTEM_INSTRUCTION, PII_SCHEMA))


def test_ollama_prompt_sends_schema_and_instruction():
    seen = []

    def handler(request):
        if request.url.path == "/api/tags":
            return _tags("qwen2.5:3b")
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"message": {"role": "assistant", "content": '{"pii_found": []}'}})

    backend, client = _ollama(handler)

    async def run():
        session = await backend.create_session(SYSTEM_INSTRUCTION, PII_SCHEMA)
        reply = await session.prompt("TEXT TO ANALYZE:\nhello", PII_SCHEMA)
        await session.destroy()
        return reply

    assert asyncio.run(run()) == '{"pii_found": []}'
    [payload] = seen
    assert payload["model"] == "qwen2.5:3b"
    assert payload["format"] == PII_SCHEMA
    assert payload["stream"] is False
    assert payload["messages"][0] == {"role": "system", "content": SYSTEM_INSTRUCTION}
    assert payload["messages"][1]["content"].endswith("hello")
    # Injected client belongs to the caller
    assert not client.is_closed


def test_ollama_http_error_is_a_chunk_failure():
    def handler(request):
        if request.url.path == "/api/tags":
            return _tags("qwen2.5:3b")
        return httpx.Response(500, json={"error": "model crashed"})

    backend, _ = _ollama(handler)

    async def run():
        session = await backend.create_session(SYSTEM_INSTRUCTION, PII_SCHEMA)
        await session.prompt("text", PII_SCHEMA)

    with pytest.raises(ChunkDetectionError):
        asyncio.run(run())


def test_ollama_detector_end_to_end():
    text = "my password: hunter22"

    def handler(request):
        if request.url.path == "/api/tags":
            return _tags("qwen2.5:3b")
        content = json.dumps({"pii_found": [
            {"type": "password", "value": "hunter22", "start": 13, "end": 21, "reason": "labelled"},
        ]})
        return httpx.Response(200, json={"message": {"content": content}})

    backend, _ = _ollama(handler)

    async def run():
        detector = PiiDetector(backend)
        findings = await detector.detect(text)
        mode = detector.mode
        await detector.destroy()
        return mode, findings

    mode, findings = asyncio.run(run())
    assert mode == "model"
    assert [(f.type, f.value, f.start, f.end) for f in findings] == [
        (PiiCategory.PASSWORD, "hunter22", 13, 21),
    ]


def test_ollama_outage_mid_session_falls_back_per_chunk():
    def handler(request):
        if request.url.path == "/api/tags":
            return _tags("qwen2.5:3b")
        raise httpx.ReadTimeout("timed out", request=request)

    backend, _ = _ollama(handler)

    async def run():
        detector = PiiDetector(backend)
        return detector, await detector.detect("SSN 123-45-6789")

    detector, findings = asyncio.run(run())
    assert detector.mode == "model"
    assert [f.value for f in findings if f.type is PiiCategory.SSN] == ["123-45-6789"]


# ── Presidio ─────────────────────────────────────────────────────────

class FakeEngine:
    def __init__(self, results):
        self.results = results
        self.calls = []
        self.texts = []

    def analyze(self, text, language, entities, score_threshold):
        self.calls.append((language, tuple(entities), score_threshold))
        self.texts.append(text)
        return self.results


def test_presidio_unavailable_without_package(monkeypatch):
    monkeypatch.setitem(sys.modules, "presidio_analyzer", None)
    backend = PresidioBackend()
    assert asyncio.run(backend.availability()) == "unavailable"
    with pytest.raises(BackendUnavailableError):
        asyncio.run(backend.create_session(SYSTEM_INSTRUCTION, PII_SCHEMA))


def test_presidio_unavailable_backend_means_pattern_fallback(monkeypatch):
    monkeypatch.setitem(sys.modules, "presidio_analyzer", None)

    async def run():
        detector = PiiDetector(PresidioBackend())
        return detector, await detector.detect("mail a@b.io")

    detector, findings = asyncio.run(run())
    assert detector.mode == "fallback"
    assert [f.value for f in findings] == ["a@b.io"]


def test_presidio_session_maps_entities():
    text = "Call 555-123-4567 or mail a@b.io"
    engine = FakeEngine([
        SimpleNamespace(entity_type="EMAIL_ADDRESS", start=26, end=32, score=1.0),
        SimpleNamespace(entity_type="PHONE_NUMBER", start=5, end=17, score=0.85),
    ])
    session = PresidioSession(engine, language="en", score_threshold=0.8)

    report = asyncio.run(session.prompt(text, PII_SCHEMA))

    assert [(i["type"], i["value"]) for i in report["pii_found"]] == [
        ("phone", "555-123-4567"),
        ("email", "a@b.io"),
    ]
    assert engine.calls == [("en", tuple(ENTITY_MAP), 0.8)]


def test_presidio_session_feeds_detector():
    text = "SSN on file 078-05-1120"
    engine = FakeEngine([SimpleNamespace(entity_type="US_SSN", start=12, end=23, score=0.9)])

    class Backend:
        async def availability(self):
            return "available"

        async def create_session(self, system_instruction, schema):
            return PresidioSession(engine, language="en", score_threshold=0.8)

    findings = asyncio.run(PiiDetector(Backend()).detect(text))
    assert engine.texts == [text]
    assert [(f.type, f.value, f.start, f.end) for f in findings] == [
        (PiiCategory.SSN, "078-05-1120", 12, 23),
    ]


def test_presidio_keeps_the_occurrence_it_reported():
    text = "old 078-05-1120, new 078-05-1120"
    engine = FakeEngine([SimpleNamespace(entity_type="US_SSN", start=21, end=32, score=0.9)])
    session = PresidioSession(engine, language="en", score_threshold=0.8)

    report = asyncio.run(session.prompt(PROMPT_PREFIX + text, PII_SCHEMA))

    assert engine.texts == [text]
    [finding] = parse_report(report, text)
    assert (finding.start, finding.end) == (21, 32)
