"""CLI interface for screenguard.

Usage:
    # Detect PII in text (stdin: plain text, stdout: JSON findings)
    echo 'mail me at a.b@example.com' | python -m screenguard.cli detect

    # Run one scan pass over an HTML page and report masks + privacy score
    python -m screenguard.cli --backend ollama scan page.html --width 1024

    # Score a set of counts
    python -m screenguard.cli score email=2,ssn=1
"""

from __future__ import annotations
import argparse
import asyncio
import json
import sys

from .config import create_coordinator, create_detector, load_config, load_from_yaml
from .html_loader import load_html_file
from .layout import FlowLayout
from .logging import setup_logging
from .scoring import label, score
from .settings import YamlSettingsStore
from .types import PiiCategory


def _load_cfg(args: argparse.Namespace) -> dict:
    raw = load_from_yaml(args.config) if args.config else load_config({})
    if args.backend:
        raw["backend"] = args.backend
    if args.log_level:
        raw["log_level"] = args.log_level
    return raw


def cmd_detect(args: argparse.Namespace) -> None:
    """Detect PII in plain text on stdin."""
    cfg = _load_cfg(args)
    text = sys.stdin.read()

    async def run() -> dict:
        detector = create_detector(cfg)
        try:
            findings = await detector.detect(text)
            return {"mode": detector.mode, "findings": [f.to_dict() for f in findings]}
        finally:
            await detector.destroy()

    json.dump(asyncio.run(run()), sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_scan(args: argparse.Namespace) -> None:
    """Run one scan pass over an HTML file."""
    cfg = _load_cfg(args)
    document = load_html_file(args.file)
    layout = FlowLayout(document, width=args.width, height=args.height)
    store = YamlSettingsStore(args.settings) if args.settings else None

    async def run() -> dict:
        coordinator = create_coordinator(cfg, document, layout, settings_store=store)
        try:
            result = await coordinator.start()
            masks = [
                {
                    "type": m.category.value,
                    "rect": {
                        "left": m.rect.left,
                        "top": m.rect.top,
                        "width": m.rect.width,
                        "height": m.rect.height,
                    },
                }
                for m in coordinator.overlays.all_masks()
            ]
            out = coordinator.status()
            out["mode"] = coordinator.detector.mode
            out["found"] = result.found if result else 0
            out["label"] = label(coordinator.state.privacy.score)
            out["masks"] = masks
            return out
        finally:
            await coordinator.shutdown()

    json.dump(asyncio.run(run()), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_score(args: argparse.Namespace) -> None:
    """Score comma-separated ``type=count`` pairs."""
    counts: dict[PiiCategory, int] = {}
    for pair in filter(None, args.counts.split(",")):
        name, _, count = pair.partition("=")
        category = PiiCategory.parse(name.strip())
        if category is None:
            sys.stderr.write(f"Unknown PII type: {name.strip()}\n")
            sys.exit(2)
        counts[category] = int(count or 1)
    value = score(counts)
    json.dump({"privacyScore": value, "label": label(value)}, sys.stdout)
    sys.stdout.write("\n")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="screenguard",
        description="Real-time PII detection and masking",
    )
    parser.add_argument("--config", default="", help="YAML config file")
    parser.add_argument("--backend", choices=["regex", "ollama", "presidio"], help="Detector backend")
    parser.add_argument("--log-level", default="", help="Log level (default from config)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("detect", help="Detect PII in text (stdin)")

    scan = sub.add_parser("scan", help="Scan an HTML file and report masks")
    scan.add_argument("file", help="HTML file")
    scan.add_argument("--width", type=int, default=1280, help="Viewport width (px)")
    scan.add_argument("--height", type=int, default=800, help="Viewport height (px)")
    scan.add_argument("--settings", default="", help="YAML settings file (enabled/filters)")

    score_p = sub.add_parser("score", help="Score type=count pairs")
    score_p.add_argument("counts", help="e.g. email=2,ssn=1")

    args = parser.parse_args()
    if args.command != "score":
        setup_logging(_load_cfg(args)["log_level"])

    cmds = {
        "detect": cmd_detect,
        "scan": cmd_scan,
        "score": cmd_score,
    }
    cmds[args.command](args)


if __name__ == "__main__":
    main()
