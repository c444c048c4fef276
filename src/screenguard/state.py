"""Process-wide scan state with explicit reset points."""

from __future__ import annotations
import weakref
from dataclasses import dataclass, field

from .content import TextNode
from .types import PiiCategory


def _zero_counts() -> dict[PiiCategory, int]:
    return {category: 0 for category in PiiCategory}


def default_filters() -> dict[PiiCategory, bool]:
    return {category: True for category in PiiCategory}


@dataclass
class PrivacyState:
    """Score and per-category counts of the current page."""
    score: int = 100
    counts: dict[PiiCategory, int] = field(default_factory=_zero_counts)

    def reset(self) -> None:
        self.score = 100
        self.counts = _zero_counts()

    def record(self, category: PiiCategory) -> None:
        self.counts[category] = self.counts.get(category, 0) + 1

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def counts_by_name(self) -> dict[str, int]:
        return {category.value: count for category, count in self.counts.items()}


@dataclass
class ScanState:
    """Everything a scan pass reads or writes, owned by the coordinator.

    ``processed`` holds text nodes weakly: a node removed from the page is
    collectable even while it is still a member.
    """
    enabled: bool = True
    initialized: bool = False
    filters: dict[PiiCategory, bool] = field(default_factory=default_filters)
    processed: weakref.WeakSet[TextNode] = field(default_factory=weakref.WeakSet)
    privacy: PrivacyState = field(default_factory=PrivacyState)

    def reset_processed(self) -> None:
        """Invalidate the processed registry wholesale (full rescan)."""
        self.processed = weakref.WeakSet()

    def is_enabled(self, category: PiiCategory) -> bool:
        return self.filters.get(category, False)

    def filters_by_name(self) -> dict[str, bool]:
        return {category.value: on for category, on in self.filters.items()}
