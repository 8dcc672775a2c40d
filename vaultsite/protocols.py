"""Protocol definitions for the collaborators of a build session.

The build engine only talks to page generation, global assets,
cancellation, icon lookup and progress reporting through these
interfaces, so tests can drive it with small fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from vaultsite.artifacts import Artifact
    from vaultsite.models import GeneratedPage, GenerationContext
    from vaultsite.sources import SourceFile


@runtime_checkable
class PageGenerator(Protocol):
    """Turns one input file into an output document and its dependencies."""

    def generate(self, file: SourceFile, context: GenerationContext) -> GeneratedPage | None:
        """Generate the page for ``file``.

        Returns:
            The generated page, or None when the file produces no output

        Raises:
            GenerationError: If the file cannot be converted
        """
        ...


@runtime_checkable
class GlobalAssetSource(Protocol):
    """Provides artifacts shared by every page (styles, scripts, navigation aids)."""

    def collect_global_artifacts(self) -> list[Artifact]: ...


@runtime_checkable
class CancellationSource(Protocol):
    def is_cancelled(self) -> bool: ...


@runtime_checkable
class IconSource(Protocol):
    """Looks up an icon name for a vault path from an external icon pack."""

    def lookup(self, path: str) -> str | None: ...


class ProgressCallback(Protocol):
    def __call__(self, current: int, total: int, label: str) -> None: ...


__all__ = [
    "CancellationSource",
    "GlobalAssetSource",
    "IconSource",
    "PageGenerator",
    "ProgressCallback",
]
