"""Privacy scorer — per-category finding counts to a 0-100 risk score.

Every category present costs its weight once; repeats of the same category
cost 30% of the weight each, capped at one more full weight.

    >>> score({PiiCategory.SSN: 2})
    74
    >>> label(74)
    'MODERATE'
"""

from __future__ import annotations
import math
from collections.abc import Mapping

from .types import CATEGORY_GLYPHS, PiiCategory

CATEGORY_WEIGHTS: dict[PiiCategory, int] = {
    PiiCategory.PASSWORD: 25,
    PiiCategory.SSN: 20,
    PiiCategory.CREDIT_CARD: 20,
    PiiCategory.API_KEY: 15,
    PiiCategory.ADDRESS: 10,
    PiiCategory.EMAIL: 10,
    PiiCategory.PHONE: 8,
}

REPEAT_FACTOR = 0.3
SAFE_THRESHOLD = 80
MODERATE_THRESHOLD = 50


def score(counts: Mapping[PiiCategory | str, int]) -> int:
    """Return the privacy score for the given counts, in [0, 100]."""
    total = 100.0
    for key, count in counts.items():
        category = PiiCategory.parse(key)
        weight = CATEGORY_WEIGHTS.get(category) if category else None
        if not weight or count <= 0:
            continue
        total -= weight
        if count > 1:
            total -= min((count - 1) * weight * REPEAT_FACTOR, weight)
    # Round half up, then clamp
    return max(0, min(100, math.floor(total + 0.5)))


def label(value: int) -> str:
    if value >= SAFE_THRESHOLD:
        return "SAFE"
    if value >= MODERATE_THRESHOLD:
        return "MODERATE"
    return "HIGH RISK"


def describe(counts: Mapping[PiiCategory, int], value: int) -> str:
    """Human-readable breakdown, one line per category found."""
    lines = [
        f"{CATEGORY_GLYPHS.get(category, '•')} {count} {category.value.replace('_', ' ')}"
        for category, count in counts.items()
        if count > 0
    ]
    if not lines:
        return "No PII detected on this page"
    header = f"Privacy Score: {value}/100 ({label(value)})"
    return header + "\n\n" + "\n".join(lines)
