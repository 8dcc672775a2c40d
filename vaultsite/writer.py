"""Persist a build session's write-set to the destination directory."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from vaultsite.artifacts import Artifact
from vaultsite.lib.log import get_logger
from vaultsite.models import BuildResult
from vaultsite.paths import is_within_root

logger = get_logger(__name__)


def _target(destination: Path, relative_path: str) -> Path:
    target = destination / relative_path
    if not is_within_root(target, destination):
        raise ValueError(f"Refusing to write outside destination: {relative_path}")
    return target


def write_artifacts(artifacts: Iterable[Artifact], destination: Path) -> int:
    """Write each artifact's bytes under ``destination``; returns the count."""
    destination = Path(destination)
    written = 0
    for artifact in artifacts:
        target = _target(destination, artifact.relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.tmp")
        tmp.write_bytes(artifact.content)
        os.replace(tmp, target)
        if artifact.modified_time > 0:
            os.utime(target, (artifact.modified_time, artifact.modified_time))
        written += 1
    logger.debug("Artifacts written", count=written, destination=str(destination))
    return written


def remove_outputs(paths: Iterable[str], destination: Path) -> int:
    """Delete outputs that no longer belong to the export."""
    destination = Path(destination)
    removed = 0
    for relative_path in paths:
        target = _target(destination, relative_path)
        try:
            target.unlink()
        except FileNotFoundError:
            continue
        removed += 1
        parent = target.parent
        while parent != destination and is_within_root(parent, destination):
            try:
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent
    if removed:
        logger.info("Removed stale outputs", count=removed)
    return removed


def write_result(result: BuildResult, destination: Path) -> None:
    """Write a completed session's write-set and drop its removed outputs."""
    if result.cancelled:
        return
    write_artifacts(result.write_set, destination)
    remove_outputs(result.removed, destination)


__all__ = ["remove_outputs", "write_artifacts", "write_result"]
