"""Export index: what the previous export produced.

The index is persisted beside the exported site as ``site-index.json``.
It answers change queries against the *previous* export only; a session
stages the next snapshot with :meth:`ExportIndex.rebuild` and persists it
with :meth:`ExportIndex.commit` once the session has completed.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from vaultsite.artifacts import Artifact
from vaultsite.errors import ExportIndexError
from vaultsite.lib.json import JSONDecodeError, dumps_bytes, loads
from vaultsite.lib.log import get_logger
from vaultsite.paths import INDEX_FILENAME, normalize_relative_path
from vaultsite.sources import SourceFile

logger = get_logger(__name__)

INDEX_VERSION = 1


class IndexEntry(BaseModel):
    """Metadata recorded for one exported artifact."""

    path: str
    modified_time: float
    source_size: int

    @field_validator("path")
    @classmethod
    def normalize_path(cls, v: str) -> str:
        return normalize_relative_path(v)


class SourceRecord(BaseModel):
    """Metadata recorded for one input file and the outputs it produced."""

    path: str
    modified_time: float
    size: int
    outputs: list[str] = Field(default_factory=list)


class IndexSnapshot(BaseModel):
    version: int = INDEX_VERSION
    complete: bool = False
    exported_at: str | None = None
    entries: dict[str, IndexEntry] = Field(default_factory=dict)
    sources: dict[str, SourceRecord] = Field(default_factory=dict)


class ExportIndex:
    """Persisted record of the previous export, keyed by destination path."""

    def __init__(self, path: Path, *, incremental_enabled: bool = True) -> None:
        self.path = Path(path)
        self.incremental_enabled = incremental_enabled
        self._previous = IndexSnapshot()
        self._available = False
        self._staged: IndexSnapshot | None = None
        self._removed: list[str] = []

    @classmethod
    def for_destination(cls, destination: Path, *, incremental_enabled: bool = True) -> ExportIndex:
        """Open (and load) the index stored in an export destination."""
        index = cls(Path(destination) / INDEX_FILENAME, incremental_enabled=incremental_enabled)
        index.load()
        return index

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Read the persisted snapshot.

        Any problem with the stored file leaves the index empty and
        ineligible for incremental export instead of failing the build.
        """
        self._previous = IndexSnapshot()
        self._available = False
        if not self.path.exists():
            logger.debug("No export index found", path=str(self.path))
            return
        try:
            self._previous = self._read()
        except ExportIndexError as exc:
            logger.warning("Export index unusable, falling back to full export", path=str(self.path), error=str(exc))
            return
        self._available = self._previous.complete

    def _read(self) -> IndexSnapshot:
        try:
            raw = loads(self.path.read_bytes())
        except OSError as exc:
            raise ExportIndexError(f"Cannot read {self.path}: {exc}") from exc
        except JSONDecodeError as exc:
            raise ExportIndexError(f"Corrupted index {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ExportIndexError(f"Corrupted index {self.path}: expected an object")
        if raw.get("version") != INDEX_VERSION:
            raise ExportIndexError(f"Unsupported index version {raw.get('version')!r}")
        try:
            return IndexSnapshot.model_validate(raw)
        except ValidationError as exc:
            raise ExportIndexError(f"Corrupted index {self.path}: {exc.error_count()} invalid field(s)") from exc

    def commit(self) -> None:
        """Persist the snapshot staged by :meth:`rebuild`."""
        if self._staged is None:
            raise ExportIndexError("Nothing to commit: rebuild() was not called")
        staged = self._staged.model_copy(
            update={
                "complete": True,
                "exported_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            }
        )
        payload = dumps_bytes(staged.model_dump(mode="json"), indent=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise ExportIndexError(f"Cannot write {self.path}: {exc}") from exc
        logger.info("Export index written", path=str(self.path), entries=len(staged.entries))
        self._previous = staged
        self._available = True
        self._staged = None

    def discard(self) -> None:
        """Drop a staged snapshot without touching the persisted one."""
        self._staged = None
        self._removed = []

    # ------------------------------------------------------------------
    # Change queries (previous export only)
    # ------------------------------------------------------------------

    def global_incremental_eligible(self) -> bool:
        return self.incremental_enabled and self._available

    def is_source_changed(self, file: SourceFile) -> bool:
        record = self._previous.sources.get(file.path)
        if record is None:
            return True
        return record.modified_time != file.modified_time or record.size != file.size

    def has_entry(self, path: str) -> bool:
        return self._key(path) in self._previous.entries

    def entry_for(self, path: str) -> IndexEntry | None:
        return self._previous.entries.get(self._key(path))

    @property
    def entries(self) -> Mapping[str, IndexEntry]:
        return self._previous.entries

    @property
    def sources(self) -> Mapping[str, SourceRecord]:
        return self._previous.sources

    @property
    def exported_at(self) -> str | None:
        return self._previous.exported_at

    @staticmethod
    def _key(path: str) -> str:
        try:
            return normalize_relative_path(path)
        except ValueError:
            return path

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    def rebuild(
        self,
        artifacts: Iterable[Artifact],
        *,
        generated: Mapping[SourceFile, Iterable[str]] | None = None,
        skipped: Iterable[SourceFile] = (),
        failed: Iterable[SourceFile] = (),
    ) -> IndexSnapshot:
        """Stage the next snapshot from a session's final artifact set.

        ``generated`` maps each regenerated source to the output paths it
        produced. ``skipped`` (unchanged) and ``failed`` sources keep their
        previous record, so published outputs of a source that failed to
        regenerate stay in place; the record no longer matches the source
        on disk, so the next session retries it. Sources in none of these
        (removed from the batch, or producing no output) are dropped, and
        outputs that only they referenced are reported by
        :meth:`removed_outputs`.
        """
        generated = generated or {}
        previous = self._previous

        sources: dict[str, SourceRecord] = {}
        for file in (*skipped, *failed):
            record = previous.sources.get(file.path)
            if record is not None:
                sources[file.path] = record
        for file, outputs in generated.items():
            sources[file.path] = SourceRecord(
                path=file.path,
                modified_time=file.modified_time,
                size=file.size,
                outputs=sorted({self._key(p) for p in outputs}),
            )

        current: dict[str, IndexEntry] = {}
        for artifact in artifacts:
            if artifact.relative_path in current:
                continue
            current[artifact.relative_path] = IndexEntry(
                path=artifact.relative_path,
                modified_time=artifact.modified_time,
                source_size=artifact.size,
            )

        referenced = set(current)
        for record in sources.values():
            referenced.update(record.outputs)

        orphaned: set[str] = set()
        for path, record in previous.sources.items():
            if path in sources and sources[path] is record:
                continue
            orphaned.update(output for output in record.outputs if output not in referenced)

        entries = {path: entry for path, entry in previous.entries.items() if path not in orphaned}
        entries.update(current)

        self._removed = sorted(path for path in orphaned if path in previous.entries)
        self._staged = IndexSnapshot(entries=entries, sources=sources)
        logger.debug(
            "Export index rebuilt",
            entries=len(entries),
            sources=len(sources),
            removed=len(self._removed),
        )
        return self._staged

    def removed_outputs(self) -> list[str]:
        """Output paths of the previous export that the staged snapshot dropped."""
        return list(self._removed)


__all__ = ["ExportIndex", "IndexEntry", "IndexSnapshot", "SourceRecord", "INDEX_VERSION"]
