"""Deduplication and staleness filtering of a session's artifacts."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from vaultsite.artifacts import Artifact

if TYPE_CHECKING:
    from vaultsite.index import IndexEntry


class IndexLookup(Protocol):
    """The part of the export index the filter reads."""

    def has_entry(self, path: str) -> bool: ...

    def entry_for(self, path: str) -> IndexEntry | None: ...


def dedupe(artifacts: Iterable[Artifact]) -> list[Artifact]:
    """Keep the first artifact for each destination path, in first-seen order."""
    seen: set[str] = set()
    unique: list[Artifact] = []
    for artifact in artifacts:
        if artifact.relative_path in seen:
            continue
        seen.add(artifact.relative_path)
        unique.append(artifact)
    return unique


def should_write(artifact: Artifact, index: IndexLookup) -> bool:
    """Decide whether an artifact differs from what the previous export wrote.

    Pages are always written. Fonts are never rewritten once published.
    Everything else is written when it is new, newer, or a different size.
    """
    if artifact.is_page:
        return True

    if artifact.is_font and index.has_entry(artifact.relative_path):
        return False

    entry = index.entry_for(artifact.relative_path)
    if entry is None:
        return True
    return artifact.modified_time > entry.modified_time or artifact.size != entry.source_size


def filter_artifacts(
    artifacts: Iterable[Artifact],
    index: IndexLookup,
    *,
    only_duplicates: bool = False,
    incremental: bool = True,
) -> list[Artifact]:
    unique = dedupe(artifacts)
    if only_duplicates or not incremental:
        return unique
    return [artifact for artifact in unique if should_write(artifact, index)]


__all__ = ["IndexLookup", "dedupe", "filter_artifacts", "should_write"]
