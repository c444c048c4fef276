"""Fallback detector — one compiled regex per structured PII category.

Used whenever the model-backed path is unavailable or a single model call
fails.  Only the structured categories have a pattern: ``password`` and
``address`` are found exclusively by the model backend.
"""

from __future__ import annotations
import re

from .types import Finding, PiiCategory

# ASCII mode: \d and \b match the same characters a browser regex engine does
_PATTERNS: list[tuple[PiiCategory, re.Pattern]] = [
    (PiiCategory.EMAIL, re.compile(
        r"\b[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}\b",
        re.ASCII,
    )),

    # (+1) 555-123-4567, 555.123.4567, (555) 123 4567
    (PiiCategory.PHONE, re.compile(
        r"(\+?\d{1,3}[\-.\s]?)?\(?\d{3}\)?[\-.\s]?\d{3}[\-.\s]?\d{4}\b",
        re.ASCII,
    )),

    (PiiCategory.SSN, re.compile(
        r"\b\d{3}-\d{2}-\d{4}\b",
        re.ASCII,
    )),

    # Four groups of four digits, optional space/dash separators
    (PiiCategory.CREDIT_CARD, re.compile(
        r"\b(?:\d{4}[\-\s]?){3}\d{4}\b",
        re.ASCII,
    )),

    # Long opaque alphanumeric tokens
    (PiiCategory.API_KEY, re.compile(
        r"\b[A-Za-z0-9]{32,}\b",
        re.ASCII,
    )),
]

PATTERN_CATEGORIES = frozenset(category for category, _ in _PATTERNS)
# Same regexes without their categories, for scrubbing free text
PATTERNS = tuple(pattern for _, pattern in _PATTERNS)


def scan_patterns(text: str) -> list[Finding]:
    """Run every category pattern against text.

    Matches from different categories are independent and may overlap;
    no de-duplication is performed.
    """
    findings: list[Finding] = []
    if not text:
        return findings
    for category, pattern in _PATTERNS:
        for m in pattern.finditer(text):
            if m.end() == m.start():
                continue
            findings.append(Finding(
                type=category,
                value=m.group(),
                start=m.start(),
                end=m.end(),
            ))
    return findings
