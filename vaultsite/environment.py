"""Environment capabilities injected into a build session.

Editor extensions installed next to a vault change how some documents
should be exported. The build never inspects the host itself; callers
describe what is installed with an :class:`EnvironmentCapabilities` value,
and the session turns it into advisory warnings.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vaultsite.errors import ConfigError
from vaultsite.lib.json import JSONDecodeError, loads

ICON_PACK = "obsidian-icon-folder"
DRAWING = "obsidian-excalidraw-plugin"
BANNERS = "obsidian-banners"

MIN_BANNERS_VERSION = (2, 0, 5)

_VERSION_PART_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class ExtensionInfo:
    name: str
    version: str = "0.0.0"
    settings: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EnvironmentCapabilities:
    extensions: Mapping[str, ExtensionInfo] = field(default_factory=dict)

    def has(self, name: str) -> bool:
        return name in self.extensions

    def get(self, name: str) -> ExtensionInfo | None:
        return self.extensions.get(name)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> EnvironmentCapabilities:
        """Build capabilities from ``{name: {"version": ..., "settings": {...}}}``."""
        extensions: dict[str, ExtensionInfo] = {}
        for name, payload in raw.items():
            payload = payload or {}
            if not isinstance(payload, Mapping):
                raise ConfigError(f"Extension '{name}' must be a mapping")
            settings = payload.get("settings") or {}
            if not isinstance(settings, Mapping):
                raise ConfigError(f"Extension '{name}' settings must be a mapping")
            extensions[name] = ExtensionInfo(
                name=name,
                version=str(payload.get("version") or "0.0.0"),
                settings=dict(settings),
            )
        return cls(extensions=extensions)

    @classmethod
    def load(cls, path: Path) -> EnvironmentCapabilities:
        try:
            raw = loads(Path(path).read_bytes())
        except OSError as exc:
            raise ConfigError(f"Cannot read capabilities file {path}: {exc}") from exc
        except JSONDecodeError as exc:
            raise ConfigError(f"Capabilities file {path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, Mapping):
            raise ConfigError("Capabilities payload must be a JSON object")
        return cls.from_mapping(raw)


def parse_version(raw: str) -> tuple[int, ...]:
    """Parse the leading numeric components of a version string."""
    parts = _VERSION_PART_RE.findall(raw)[:3]
    return tuple(int(part) for part in parts) or (0,)


def _icon_pack_advisory(caps: EnvironmentCapabilities) -> str | None:
    ext = caps.get(ICON_PACK)
    if ext is None:
        return None
    if not ext.settings.get("iconsInNotesEnabled", False):
        return 'For icon pack support, enable "Toggle icons while editing notes" in the icon pack settings.'
    return None


def _drawing_advisory(caps: EnvironmentCapabilities) -> str | None:
    ext = caps.get(DRAWING)
    if ext is None:
        return None
    if ext.settings.get("previewImageType", "") != "SVG":
        return 'For drawing embed support, set the embed mode to "Native SVG" in the drawing extension settings.'
    return None


def _banners_advisory(caps: EnvironmentCapabilities) -> str | None:
    ext = caps.get(BANNERS)
    if ext is None:
        return None
    if parse_version(ext.version) < MIN_BANNERS_VERSION:
        required = ".".join(str(part) for part in MIN_BANNERS_VERSION)
        return f"The banners extension version {required} or higher is required for full support. You have version {ext.version}."
    return None


ADVISORY_RULES: tuple[Callable[[EnvironmentCapabilities], str | None], ...] = (
    _icon_pack_advisory,
    _drawing_advisory,
    _banners_advisory,
)


def advisories(caps: EnvironmentCapabilities) -> list[str]:
    """Warnings about installed extensions whose settings limit the export."""
    messages = []
    for rule in ADVISORY_RULES:
        message = rule(caps)
        if message:
            messages.append(message)
    return messages


__all__ = [
    "ADVISORY_RULES",
    "BANNERS",
    "DRAWING",
    "EnvironmentCapabilities",
    "ExtensionInfo",
    "ICON_PACK",
    "advisories",
    "parse_version",
]
