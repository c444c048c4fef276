"""Core types."""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class PiiCategory(str, Enum):
    """Closed set of PII categories; values are the wire names."""
    EMAIL = "email"
    PHONE = "phone"
    SSN = "ssn"
    CREDIT_CARD = "credit_card"
    ADDRESS = "address"
    PASSWORD = "password"
    API_KEY = "api_key"

    @classmethod
    def parse(cls, value: str | PiiCategory) -> PiiCategory | None:
        """Return the category for a wire name, or None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


# Display glyph per category (badge details, mask tooltips)
CATEGORY_GLYPHS: dict[PiiCategory, str] = {
    PiiCategory.EMAIL: "📧",
    PiiCategory.PHONE: "📱",
    PiiCategory.SSN: "🔢",
    PiiCategory.CREDIT_CARD: "💳",
    PiiCategory.ADDRESS: "📍",
    PiiCategory.PASSWORD: "🔒",
    PiiCategory.API_KEY: "🔑",
}


@dataclass(frozen=True, slots=True)
class Finding:
    """A single detected PII value inside a text unit."""
    type: PiiCategory
    value: str
    start: int
    end: int
    reason: str | None = None     # model-provided justification

    def is_valid_for(self, text: str) -> bool:
        return (
            0 <= self.start < self.end <= len(text)
            and text[self.start:self.end] == self.value
        )

    def to_dict(self) -> dict:
        out = {
            "type": self.type.value,
            "value": self.value,
            "start": self.start,
            "end": self.end,
        }
        if self.reason:
            out["reason"] = self.reason
        return out


@dataclass(frozen=True, slots=True)
class Rect:
    """Axis-aligned rectangle in viewport coordinates (px)."""
    left: float
    top: float
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def union(self, other: Rect) -> Rect:
        left = min(self.left, other.left)
        top = min(self.top, other.top)
        return Rect(
            left=left,
            top=top,
            width=max(self.right, other.right) - left,
            height=max(self.bottom, other.bottom) - top,
        )
