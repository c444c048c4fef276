"""Shared fixtures: a deterministic detector backend and small pages."""

import inspect
import json
import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from screenguard.backend import PROMPT_PREFIX
from screenguard.content import Document, Element
from screenguard.layout import FlowLayout
from screenguard.patterns import scan_patterns

_PASSWORD = re.compile(r"password:\s*(\S+)", re.IGNORECASE)


def model_like(text: str) -> str:
    """Answer like a well-behaved model: patterns plus labelled passwords."""
    found = [f.to_dict() for f in scan_patterns(text)]
    for m in _PASSWORD.finditer(text):
        found.append({
            "type": "password",
            "value": m.group(1),
            "start": m.start(1),
            "end": m.end(1),
            "reason": "labelled password",
        })
    return json.dumps({"pii_found": found})


class StubSession:
    def __init__(self, responder) -> None:
        self.responder = responder
        self.prompts: list[str] = []
        self.destroyed = 0
        self.fail_destroy = False

    async def prompt(self, text, output_schema):
        self.prompts.append(text)
        result = self.responder(text[len(PROMPT_PREFIX):])
        if inspect.isawaitable(result):
            result = await result
        return result

    async def destroy(self):
        self.destroyed += 1
        if self.fail_destroy:
            raise RuntimeError("release failed")


class StubBackend:
    """Backend contract implementation with scripted behaviour."""

    def __init__(self, responder=model_like, *, availability="available", fail_create=False) -> None:
        self.responder = responder
        self._availability = availability
        self.fail_create = fail_create
        self.availability_calls = 0
        self.create_calls = 0
        self.session: StubSession | None = None
        self.instruction: str | None = None

    async def availability(self):
        self.availability_calls += 1
        return self._availability

    async def create_session(self, system_instruction, schema):
        self.create_calls += 1
        if self.fail_create:
            raise RuntimeError("session refused")
        self.instruction = system_instruction
        self.session = StubSession(self.responder)
        return self.session


@pytest.fixture()
def stub_backend():
    return StubBackend()


def make_page(*texts: str) -> Document:
    """A body with one <p> per text."""
    doc = Document()
    for text in texts:
        p = Element("p")
        p.append_text(text)
        doc.body.append(p)
    return doc


@pytest.fixture()
def page():
    doc = make_page(
        "Contact me at a.b@example.com please",
        "Nothing to see in this paragraph",
        "SSN on file: 123-45-6789",
    )
    return doc, FlowLayout(doc, width=400, height=300)
