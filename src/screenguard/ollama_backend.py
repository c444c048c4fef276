"""On-device LLM backend — a local Ollama server with structured output.

Availability is probed through ``GET /api/tags``; each detection is one
``POST /api/chat`` call whose ``format`` field carries the PII JSON schema,
so the model can only answer with a ``{"pii_found": [...]}`` object.

The client uses ``httpx.AsyncClient``: detection calls are suspension
points on the scan loop, never blocking calls.
"""

from __future__ import annotations
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .backend import Availability, BackendUnavailableError, ChunkDetectionError

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:11434"
DEFAULT_MODEL = "qwen2.5:3b"


class OllamaSession:
    """A chat session pinned to one system instruction."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        model: str,
        system_instruction: str,
        owns_client: bool = True,
    ) -> None:
        self._client = client
        self._model = model
        self._system = system_instruction
        self._owns_client = owns_client
        self._closed = False

    async def prompt(self, text: str, output_schema: Mapping[str, Any]) -> str:
        if self._closed:
            raise ChunkDetectionError("session already destroyed")
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": self._system},
                {"role": "user", "content": text},
            ],
            "format": dict(output_schema),
            "stream": False,
            "options": {"temperature": 0},
        }
        try:
            response = await self._client.post("/api/chat", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ChunkDetectionError(f"Ollama request failed: {exc}") from exc

        data = response.json()
        return data.get("message", {}).get("content", "")

    async def destroy(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            await self._client.aclose()


class OllamaBackend:
    """Detector backend for a local Ollama server.

    Parameters
    ----------
    base_url:
        Ollama base URL.
    model:
        Model tag that must already be pulled on the server.
    timeout_s:
        Per-request HTTP timeout.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests pass one with a
        ``MockTransport``).  A supplied client is not closed by sessions.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_URL,
        model: str = DEFAULT_MODEL,
        timeout_s: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_s = timeout_s
        self._client = client

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s)

    async def availability(self) -> Availability:
        """Return whether the configured model can serve requests.

        Never raises: an unreachable server is ``"unavailable"``, a reachable
        server without the model is ``"downloadable"``.
        """
        client = self._client or self._new_client()
        try:
            resp = await client.get("/api/tags")
            if resp.status_code != 200:
                return "unavailable"
            names = {m.get("name") for m in resp.json().get("models", [])}
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Ollama availability probe failed: %s", type(exc).__name__)
            return "unavailable"
        finally:
            if self._client is None:
                await client.aclose()

        if self.model in names or f"{self.model}:latest" in names:
            return "available"
        return "downloadable"

    async def create_session(
        self,
        system_instruction: str,
        schema: Mapping[str, Any],
    ) -> OllamaSession:
        if await self.availability() != "available":
            raise BackendUnavailableError(
                f"Ollama model {self.model!r} is not available at {self.base_url}"
            )
        if self._client is not None:
            return OllamaSession(
                self._client,
                model=self.model,
                system_instruction=system_instruction,
                owns_client=False,
            )
        return OllamaSession(
            self._new_client(),
            model=self.model,
            system_instruction=system_instruction,
        )
