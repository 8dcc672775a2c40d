"""Build orchestrator: turns a batch of vault files into a website write-set."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

from vaultsite.artifacts import Artifact
from vaultsite.cancellation import NeverCancelled
from vaultsite.config import ExportConfig
from vaultsite.environment import EnvironmentCapabilities, advisories
from vaultsite.errors import BuildError, GenerationError
from vaultsite.filtering import filter_artifacts
from vaultsite.index import ExportIndex
from vaultsite.lib.log import export_session, get_logger
from vaultsite.models import BuildResult, GeneratedPage, GenerationContext
from vaultsite.protocols import CancellationSource, GlobalAssetSource, IconSource, PageGenerator, ProgressCallback
from vaultsite.sources import SourceFile

logger = get_logger(__name__)

ResultWriter = Callable[[BuildResult, Path], None]


class Website:
    """One export session.

    The session owns two accumulating artifact lists: ``dependencies``
    (assets required by pages) and ``artifacts`` (everything to download,
    pages included). Both are deduplicated before the export index is
    rebuilt and filtered for staleness afterwards.
    """

    def __init__(
        self,
        generator: PageGenerator,
        *,
        index: ExportIndex | None = None,
        assets: GlobalAssetSource | None = None,
        config: ExportConfig | None = None,
        cancellation: CancellationSource | None = None,
        progress: ProgressCallback | None = None,
        capabilities: EnvironmentCapabilities | None = None,
        icon_source: IconSource | None = None,
        writer: ResultWriter | None = None,
        persist_index: bool = True,
    ) -> None:
        self.generator = generator
        self.index = index
        self.assets = assets
        self.config = config or ExportConfig()
        self.cancellation = cancellation or NeverCancelled()
        self.progress_callback = progress
        self.capabilities = capabilities or EnvironmentCapabilities()
        self.icon_source = icon_source
        self.writer = writer
        self.persist_index = persist_index

        self.batch_files: list[SourceFile] = []
        self.webpages: list[GeneratedPage] = []
        self.artifacts: list[Artifact] = []
        self.dependencies: list[Artifact] = []
        self.progress = 0
        self.uses_incremental_mode = False

    def _report(self, current: int, total: int, label: str) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(current, total, label)
        except Exception as exc:
            logger.debug("Progress callback failed", error=str(exc))

    def _init_export(self, files: Sequence[SourceFile], destination: Path) -> tuple[GenerationContext, ExportIndex]:
        self.batch_files = list(files)
        self.webpages = []
        self.artifacts = []
        self.dependencies = []
        self.progress = 0

        for message in advisories(self.capabilities):
            logger.warning(message)

        index = self.index
        if index is None:
            index = ExportIndex.for_destination(destination, incremental_enabled=self.config.incremental)
            self.index = index
        self.uses_incremental_mode = index.global_incremental_eligible() and self.config.incremental

        context = GenerationContext.for_batch(
            self.batch_files,
            destination,
            self.config,
            capabilities=self.capabilities,
            icon_source=self.icon_source,
        )
        return context, index

    def build(self, input_files: Sequence[SourceFile], destination: Path) -> BuildResult:
        """Run the export loop and return the write-set.

        Raises:
            BuildError: If there is nothing to export or the destination
                cannot be created
        """
        if not input_files:
            raise BuildError("No input files to export")
        destination = Path(destination)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildError(f"Cannot create destination {destination}: {exc}") from exc

        context, index = self._init_export(input_files, destination)
        with export_session(destination=str(destination), incremental=self.uses_incremental_mode):
            return self._export(context, index, destination)

    def _export(self, context: GenerationContext, index: ExportIndex, destination: Path) -> BuildResult:
        total = len(self.batch_files)
        logger.info("Creating website", files=total)

        generated: dict[SourceFile, list[str]] = {}
        skipped: list[SourceFile] = []
        failed: list[SourceFile] = []

        for file in self.batch_files:
            if self.cancellation.is_cancelled():
                return self._cancelled(index, generated, skipped, failed)
            self._report(self.progress, total, f"Exporting: {file.path}")
            self.progress += 1

            if self.uses_incremental_mode and not index.is_source_changed(file):
                skipped.append(file)
                continue

            page = self._generate(file, context, failed)
            if page is None:
                continue

            self.webpages.append(page)
            self.artifacts.extend(page.dependencies)
            self.artifacts.append(page.output)
            self.dependencies.extend(page.dependencies)
            generated[file] = [page.output.relative_path, *(dep.relative_path for dep in page.dependencies)]

        if self.assets is not None:
            self._report(total, total, "Loading global assets")
            global_artifacts = self.assets.collect_global_artifacts()
            self.dependencies.extend(global_artifacts)
            self.artifacts.extend(global_artifacts)

        self._filter(index, only_duplicates=True)
        index.rebuild(self.artifacts, generated=generated, skipped=skipped, failed=failed)
        self._filter(index)

        result = BuildResult(
            write_set=list(self.artifacts),
            dependencies=list(self.dependencies),
            incremental=self.uses_incremental_mode,
            generated=[file.path for file in generated],
            skipped=[file.path for file in skipped],
            failed=[file.path for file in failed],
            removed=index.removed_outputs(),
        )

        if self.writer is not None:
            try:
                self.writer(result, destination)
            except Exception:
                index.discard()
                raise
        if self.persist_index:
            index.commit()
        else:
            index.discard()

        self._report(total, total, "Export complete")
        logger.info("Website created", **result.summary())
        return result

    def _generate(self, file: SourceFile, context: GenerationContext, failed: list[SourceFile]) -> GeneratedPage | None:
        try:
            page = self.generator.generate(file, context)
        except GenerationError as exc:
            logger.warning("Failed to generate page", path=file.path, error=str(exc))
            failed.append(file)
            return None
        except Exception as exc:
            logger.error("Unexpected error generating page", path=file.path, error=str(exc), exc_info=True)
            failed.append(file)
            return None
        if page is None:
            logger.debug("No output for file", path=file.path)
        return page

    def _filter(self, index: ExportIndex, only_duplicates: bool = False) -> None:
        self.dependencies = filter_artifacts(
            self.dependencies,
            index,
            only_duplicates=only_duplicates,
            incremental=self.uses_incremental_mode,
        )
        self.artifacts = filter_artifacts(
            self.artifacts,
            index,
            only_duplicates=only_duplicates,
            incremental=self.uses_incremental_mode,
        )

    def _cancelled(
        self,
        index: ExportIndex,
        generated: dict[SourceFile, list[str]],
        skipped: list[SourceFile],
        failed: list[SourceFile],
    ) -> BuildResult:
        index.discard()
        self._filter(index, only_duplicates=True)
        logger.info("Export cancelled", processed=self.progress, total=len(self.batch_files))
        return BuildResult(
            write_set=list(self.artifacts),
            dependencies=list(self.dependencies),
            cancelled=True,
            incremental=self.uses_incremental_mode,
            generated=[file.path for file in generated],
            skipped=[file.path for file in skipped],
            failed=[file.path for file in failed],
        )


__all__ = ["ResultWriter", "Website"]
