"""Tests for config loading, component factories and the CLI."""

import io
import json
import sys

import pytest

from conftest import make_page

from screenguard import cli
from screenguard.config import create_backend, create_coordinator, create_detector, load_config, load_from_yaml
from screenguard.layout import FlowLayout
from screenguard.ollama_backend import OllamaBackend
from screenguard.presidio_backend import PresidioBackend
from screenguard.types import PiiCategory


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SCREENGUARD_BACKEND", "SCREENGUARD_LOG_LEVEL",
                 "SCREENGUARD_OLLAMA_URL", "SCREENGUARD_OLLAMA_MODEL"):
        monkeypatch.delenv(name, raising=False)


# ── Config ───────────────────────────────────────────────────────────

def test_defaults():
    cfg = load_config(None)
    assert cfg["backend"] == "regex"
    assert cfg["enabled"] is True
    assert cfg["rescan_delay_ms"] == 2000
    assert cfg["min_text_length"] == 5
    assert cfg["timeout_s"] == 10.0
    assert cfg["ollama_url"] == "http://localhost:11434"
    assert cfg["log_level"] == "INFO"


def test_nested_and_flat_forms_agree():
    body = {"rescan_delay_ms": 500, "detector": {"backend": "ollama", "ollama_model": "llama3"}}
    assert load_config({"screenguard": body}) == load_config(body)
    assert load_config(body)["ollama_model"] == "llama3"


def test_unknown_backend_rejected():
    with pytest.raises(ValueError):
        load_config({"detector": {"backend": "cloud"}})


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SCREENGUARD_BACKEND", "ollama")
    monkeypatch.setenv("SCREENGUARD_OLLAMA_URL", "http://gpu-box:11434")
    cfg = load_config({"detector": {"backend": "regex"}})
    assert cfg["backend"] == "ollama"
    assert cfg["ollama_url"] == "http://gpu-box:11434"


def test_load_from_yaml(tmp_path):
    path = tmp_path / "screenguard.yaml"
    path.write_text(
        "screenguard:\n"
        "  min_text_length: 8\n"
        "  filters:\n"
        "    phone: false\n"
        "  detector:\n"
        "    backend: presidio\n"
        "    score_threshold: 0.6\n"
    )
    cfg = load_from_yaml(path)
    assert cfg["min_text_length"] == 8
    assert cfg["filters"] == {"phone": False}
    assert cfg["backend"] == "presidio"
    assert cfg["score_threshold"] == 0.6


def test_backend_factory():
    assert create_backend({"detector": {"backend": "regex"}}) is None
    ollama = create_backend({"detector": {"backend": "ollama", "ollama_url": "http://x:1/"}})
    assert isinstance(ollama, OllamaBackend)
    assert ollama.base_url == "http://x:1"
    assert isinstance(create_backend({"detector": {"backend": "presidio"}}), PresidioBackend)
    assert create_detector({"detector": {"timeout_s": 3}}).timeout_s == 3.0


def test_coordinator_factory():
    doc = make_page("some text")
    cfg = load_config({"rescan_delay_ms": 750, "filters": {"email": False}, "min_text_length": 3})
    coordinator = create_coordinator(cfg, doc, FlowLayout(doc))
    assert coordinator.scheduler.debouncer.delay == 0.75
    assert coordinator.scheduler.min_text_length == 3
    assert coordinator.state.filters[PiiCategory.EMAIL] is False
    assert coordinator.state.filters[PiiCategory.SSN] is True


# ── CLI ──────────────────────────────────────────────────────────────

@pytest.fixture()
def run_cli(monkeypatch, capsys):
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)

    def run(*argv, stdin=""):
        monkeypatch.setattr(sys, "argv", ["screenguard", *argv])
        monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
        cli.main()
        return capsys.readouterr().out

    return run


def test_cli_score(run_cli):
    out = json.loads(run_cli("score", "email=2,ssn=1"))
    assert out == {"privacyScore": 67, "label": "MODERATE"}


def test_cli_score_unknown_type(run_cli, capsys):
    with pytest.raises(SystemExit) as exc:
        run_cli("score", "passport=1")
    assert exc.value.code == 2
    assert "passport" in capsys.readouterr().err


def test_cli_detect(run_cli):
    out = json.loads(run_cli("detect", stdin="write to a.b@example.com"))
    assert out["mode"] == "fallback"
    assert out["findings"] == [
        {"type": "email", "value": "a.b@example.com", "start": 9, "end": 24},
    ]


def test_cli_scan(run_cli, tmp_path):
    page = tmp_path / "page.html"
    page.write_text(
        "<html><body>"
        "<p>Contact me at a.b@example.com please</p>"
        "<script>var ssn = '123-45-6789';</script>"
        "<p>SSN on file: 123-45-6789</p>"
        "</body></html>"
    )
    settings = tmp_path / "settings.yaml"
    settings.write_text("filters:\n  email: false\n")

    out = json.loads(run_cli("scan", str(page), "--width", "400", "--settings", str(settings)))

    assert out["mode"] == "fallback"
    assert out["found"] == 1
    assert out["privacyScore"] == 80
    assert out["label"] == "SAFE"
    assert out["masks"] == [
        {"type": "ssn", "rect": {"left": 104, "top": 16, "width": 88, "height": 16}},
    ]
    assert out["maskedCount"] == 1
