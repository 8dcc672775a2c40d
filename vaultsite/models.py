"""Values passed between the build session and its collaborators."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from vaultsite.artifacts import Artifact
from vaultsite.config import ExportConfig
from vaultsite.environment import EnvironmentCapabilities
from vaultsite.protocols import IconSource
from vaultsite.sources import SourceFile, output_path_for


@dataclass
class GenerationContext:
    """Global, precomputed context shared by every page generated in a session."""

    config: ExportConfig
    destination: Path
    sources: Mapping[str, SourceFile] = field(default_factory=dict)
    capabilities: EnvironmentCapabilities = field(default_factory=EnvironmentCapabilities)
    icon_source: IconSource | None = None

    @classmethod
    def for_batch(
        cls,
        files: list[SourceFile],
        destination: Path,
        config: ExportConfig,
        *,
        capabilities: EnvironmentCapabilities | None = None,
        icon_source: IconSource | None = None,
    ) -> GenerationContext:
        return cls(
            config=config,
            destination=destination,
            sources={file.path: file for file in files},
            capabilities=capabilities or EnvironmentCapabilities(),
            icon_source=icon_source,
        )

    def output_path(self, source_path: str) -> str:
        return output_path_for(source_path, web_style_names=self.config.web_style_names)


@dataclass
class GeneratedPage:
    """Result of generating one input file."""

    output: Artifact
    dependencies: list[Artifact] = field(default_factory=list)
    title: str | None = None


@dataclass
class BuildResult:
    """Outcome of one build session.

    ``write_set`` is what should be persisted. A cancelled result carries
    only the artifacts gathered before cancellation and was never recorded
    in the export index.
    """

    write_set: list[Artifact] = field(default_factory=list)
    dependencies: list[Artifact] = field(default_factory=list)
    cancelled: bool = False
    incremental: bool = False
    generated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def pages(self) -> list[Artifact]:
        return [artifact for artifact in self.write_set if artifact.is_page]

    def summary(self) -> dict[str, int]:
        return {
            "written": len(self.write_set),
            "pages": len(self.pages),
            "generated": len(self.generated),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "removed": len(self.removed),
        }


__all__ = ["BuildResult", "GeneratedPage", "GenerationContext"]
