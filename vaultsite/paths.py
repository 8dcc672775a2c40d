"""Shared filesystem paths and helpers for vaultsite."""

from __future__ import annotations

import os
import re
from pathlib import Path, PurePosixPath


def _xdg_path(env_var: str, fallback: Path) -> Path:
    raw = os.environ.get(env_var)
    if raw:
        return Path(raw).expanduser()
    return fallback


CONFIG_ROOT = _xdg_path("XDG_CONFIG_HOME", Path.home() / ".config")
CONFIG_HOME = CONFIG_ROOT / "vaultsite"

INDEX_FILENAME = "site-index.json"
CONFIG_FILENAME = "vaultsite.json"

_WEB_STYLE_RE = re.compile(r"[\s_]+")
_WEB_STYLE_STRIP_RE = re.compile(r"[^\w./-]")


def normalize_relative_path(raw: str | PurePosixPath | Path) -> str:
    """Return a slash-style relative path with empty and ``.`` segments removed.

    Raises ValueError for paths that would escape the destination root.
    """
    text = str(raw).replace("\\", "/")
    parts: list[str] = []
    for part in text.split("/"):
        if part in {"", "."}:
            continue
        if part == "..":
            raise ValueError(f"Path escapes destination root: {raw}")
        parts.append(part)
    if not parts:
        raise ValueError("Path cannot be empty")
    return "/".join(parts)


def web_style(path: str) -> str:
    """Lower-case a relative path and replace whitespace with dashes."""
    lowered = _WEB_STYLE_RE.sub("-", path.strip().lower())
    return _WEB_STYLE_STRIP_RE.sub("", lowered)


def is_within_root(path: Path, root: Path) -> bool:
    """Return True if path resolves within root."""
    try:
        path.resolve(strict=False).relative_to(root.resolve(strict=False))
    except ValueError:
        return False
    return True


__all__ = [
    "CONFIG_HOME",
    "CONFIG_ROOT",
    "CONFIG_FILENAME",
    "INDEX_FILENAME",
    "normalize_relative_path",
    "web_style",
    "is_within_root",
]
