"""YAML/dict config loader for screenguard.

Supports loading from a YAML file or a plain dict (for embedding in a
host's larger config).

Example YAML:

    screenguard:
      enabled: true
      rescan_delay_ms: 2000
      min_text_length: 5
      log_level: INFO
      filters:
        email: true
        phone: false
      detector:
        backend: ollama          # "regex", "ollama" or "presidio"
        timeout_s: 10
        ollama_url: http://localhost:11434
        ollama_model: qwen2.5:3b
        score_threshold: 0.80    # presidio only
        language: en
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any

import yaml

from .backend import DetectorBackend
from .content import Document
from .coordinator import Coordinator, TelemetrySink
from .detector import DEFAULT_TIMEOUT_S, PiiDetector
from .layout import Layout
from .ollama_backend import DEFAULT_MODEL, DEFAULT_URL, OllamaBackend
from .presidio_backend import PresidioBackend
from .settings import Settings, SettingsStore

BACKENDS = ("regex", "ollama", "presidio")


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "screenguard" key or flat
    if "screenguard" in data:
        data = data["screenguard"] or {}

    detector = data.get("detector", {}) or {}
    backend = os.environ.get("SCREENGUARD_BACKEND") or detector.get("backend", "regex")
    if backend not in BACKENDS:
        raise ValueError(f"Unknown detector backend {backend!r} (expected one of {BACKENDS})")

    return {
        "enabled": data.get("enabled", True),
        "filters": dict(data.get("filters", {}) or {}),
        "rescan_delay_ms": int(data.get("rescan_delay_ms", 2000)),
        "min_text_length": int(data.get("min_text_length", 5)),
        "log_level": os.environ.get("SCREENGUARD_LOG_LEVEL") or data.get("log_level", "INFO"),
        "backend": backend,
        "timeout_s": float(detector.get("timeout_s", DEFAULT_TIMEOUT_S)),
        "ollama_url": os.environ.get("SCREENGUARD_OLLAMA_URL") or detector.get("ollama_url", DEFAULT_URL),
        "ollama_model": os.environ.get("SCREENGUARD_OLLAMA_MODEL") or detector.get("ollama_model", DEFAULT_MODEL),
        "score_threshold": float(detector.get("score_threshold", 0.80)),
        "language": detector.get("language", "en"),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    with open(Path(path).expanduser()) as f:
        return load_config(yaml.safe_load(f))


def _normalized(cfg: dict[str, Any]) -> dict[str, Any]:
    return cfg if "backend" in cfg else load_config(cfg)


def create_backend(cfg: dict[str, Any]) -> DetectorBackend | None:
    """Backend for the configured name; None for regex-only mode."""
    cfg = _normalized(cfg)
    if cfg["backend"] == "ollama":
        return OllamaBackend(
            base_url=cfg["ollama_url"],
            model=cfg["ollama_model"],
            timeout_s=cfg["timeout_s"],
        )
    if cfg["backend"] == "presidio":
        return PresidioBackend(
            language=cfg["language"],
            score_threshold=cfg["score_threshold"],
        )
    return None


def create_detector(cfg: dict[str, Any]) -> PiiDetector:
    cfg = _normalized(cfg)
    return PiiDetector(create_backend(cfg), timeout_s=cfg["timeout_s"])


def create_coordinator(
    cfg: dict[str, Any],
    document: Document,
    layout: Layout,
    *,
    settings_store: SettingsStore | None = None,
    telemetry: TelemetrySink | None = None,
) -> Coordinator:
    """Create a fully configured coordinator for one page."""
    cfg = _normalized(cfg)
    defaults = Settings.from_mapping({"enabled": cfg["enabled"], "filters": cfg["filters"]})
    return Coordinator(
        document,
        layout,
        detector=create_detector(cfg),
        settings_store=settings_store,
        defaults=defaults,
        telemetry=telemetry,
        rescan_delay=cfg["rescan_delay_ms"] / 1000,
        min_text_length=cfg["min_text_length"],
    )
