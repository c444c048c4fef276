"""Settings boundary — read-only view of the user's toggle and filters.

The settings UI owns persistence; the core only reads ``{enabled, filters}``
on startup and when told settings changed.

Example settings file (YAML):

    enabled: true
    filters:
      email: true
      phone: false
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import yaml

from .state import default_filters
from .types import PiiCategory


class SettingsIOError(RuntimeError):
    """Settings could not be read.  Surfaced to the UI, never fatal to the core."""


@dataclass
class Settings:
    enabled: bool = True
    filters: dict[PiiCategory, bool] = field(default_factory=default_filters)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], fallback: Settings | None = None) -> Settings:
        """Merge partial settings over ``fallback``; unknown filter names are ignored."""
        base = fallback or cls()
        filters = dict(base.filters)
        for name, on in (data.get("filters") or {}).items():
            category = PiiCategory.parse(name)
            if category is not None:
                filters[category] = bool(on)
        enabled = data.get("enabled")
        return cls(
            enabled=base.enabled if enabled is None else bool(enabled),
            filters=filters,
        )


class SettingsStore(Protocol):
    async def read(self) -> Mapping[str, Any]:
        ...


class MemorySettingsStore:
    """In-process store (embedding hosts, tests)."""

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = dict(data or {})

    async def read(self) -> Mapping[str, Any]:
        return dict(self.data)


class YamlSettingsStore:
    """Settings written by the UI collaborator to a YAML file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    async def read(self) -> Mapping[str, Any]:
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise SettingsIOError(f"Cannot read settings from {self.path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, Mapping):
            raise SettingsIOError(f"Settings file {self.path} is not a mapping")
        return data
