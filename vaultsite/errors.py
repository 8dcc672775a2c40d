"""vaultsite error hierarchy.

All project exceptions inherit from VaultsiteError, so the CLI can catch
one type at its boundary while deeper layers catch the specific ones.

Hierarchy:
    VaultsiteError
    ├── ConfigError          # config.py
    ├── BuildError           # website.py
    ├── GenerationError      # rendering/page.py
    └── ExportIndexError     # index.py
"""

from __future__ import annotations


class VaultsiteError(Exception):
    """Base class for all vaultsite errors."""


class ConfigError(VaultsiteError):
    """Invalid or unreadable export configuration."""


class BuildError(VaultsiteError):
    """A build session could not start or finish."""


class GenerationError(VaultsiteError):
    """A single source file could not be turned into a page."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class ExportIndexError(VaultsiteError):
    """The persisted export index could not be read or written."""


__all__ = [
    "VaultsiteError",
    "ConfigError",
    "BuildError",
    "GenerationError",
    "ExportIndexError",
]
