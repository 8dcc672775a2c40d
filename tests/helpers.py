"""Builders and fakes shared by the test suite."""

from __future__ import annotations

import os
from pathlib import Path

from vaultsite.artifacts import Artifact
from vaultsite.errors import GenerationError
from vaultsite.models import GeneratedPage
from vaultsite.sources import SourceFile

BASE_MTIME = 1_700_000_000.0


# =============================================================================
# On-disk vaults
# =============================================================================


def write_vault(root: Path, files: dict[str, str | bytes], mtime: float = BASE_MTIME) -> Path:
    """Write ``files`` under ``root`` with a fixed modification time."""
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        os.utime(path, (mtime, mtime))
    return root


def touch(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


# =============================================================================
# Build collaborators
# =============================================================================


def source(path: str, mtime: float = 100.0, size: int = 10, root: Path = Path("/vault")) -> SourceFile:
    """An in-memory source file; the fakes below never read it."""
    return SourceFile(path=path, root=root, modified_time=mtime, size=size)


class FakeGenerator:
    """Page generator that renders ``<html>path</html>`` for every file.

    ``dependencies`` maps a source path to the artifacts its page needs.
    Paths in ``fail`` raise GenerationError, paths in ``crash`` raise an
    unexpected error and paths in ``empty`` produce no output.
    """

    def __init__(self, dependencies=None, fail=(), empty=(), crash=()):
        self.dependencies = dependencies or {}
        self.fail = set(fail)
        self.empty = set(empty)
        self.crash = set(crash)
        self.calls: list[str] = []

    def generate(self, file, context):
        self.calls.append(file.path)
        if file.path in self.fail:
            raise GenerationError(file.path, "cannot convert")
        if file.path in self.crash:
            raise RuntimeError("generator bug")
        if file.path in self.empty:
            return None
        page = Artifact.from_text(
            context.output_path(file.path),
            f"<html>{file.path}</html>",
            modified_time=file.modified_time,
        )
        return GeneratedPage(output=page, dependencies=list(self.dependencies.get(file.path, [])))


class StaticAssets:
    def __init__(self, artifacts=()):
        self.artifacts = list(artifacts)
        self.calls = 0

    def collect_global_artifacts(self):
        self.calls += 1
        return list(self.artifacts)


class CancelAfter:
    """Cancellation source that reports cancelled after ``polls`` checks."""

    def __init__(self, polls: int):
        self.polls = polls
        self.count = 0

    def is_cancelled(self) -> bool:
        self.count += 1
        return self.count > self.polls


class RecordingProgress:
    def __init__(self):
        self.events: list[tuple[int, int, str]] = []

    def __call__(self, current, total, label):
        self.events.append((current, total, label))


def paths(artifacts) -> list[str]:
    return [artifact.relative_path for artifact in artifacts]
