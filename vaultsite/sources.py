"""Input discovery: the files of a vault that make up one export batch."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from vaultsite.artifacts import PAGE_EXTENSION
from vaultsite.lib.log import get_logger
from vaultsite.paths import CONFIG_FILENAME, is_within_root, web_style

logger = get_logger(__name__)

CONVERTIBLE_EXTENSIONS = frozenset({"md", "markdown"})


@dataclass(frozen=True)
class SourceFile:
    """One input file, identified by its slash-style path inside the vault."""

    path: str
    root: Path
    modified_time: float = field(compare=False, default=0.0)
    size: int = field(compare=False, default=0)

    @classmethod
    def from_path(cls, absolute: Path, root: Path) -> SourceFile:
        stat = absolute.stat()
        relative = absolute.resolve().relative_to(root.resolve()).as_posix()
        return cls(path=relative, root=root, modified_time=stat.st_mtime, size=stat.st_size)

    @property
    def absolute_path(self) -> Path:
        return self.root / self.path

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip(".").lower()

    @property
    def parent(self) -> str:
        parent = PurePosixPath(self.path).parent.as_posix()
        return "" if parent == "." else parent

    @property
    def is_convertible(self) -> bool:
        return self.extension in CONVERTIBLE_EXTENSIONS

    def read_text(self) -> str:
        return self.absolute_path.read_text(encoding="utf-8")

    def read_bytes(self) -> bytes:
        return self.absolute_path.read_bytes()


def output_path_for(path: str, *, web_style_names: bool = False) -> str:
    """Destination path of a source: convertible files become pages."""
    posix = PurePosixPath(path)
    if posix.suffix.lstrip(".").lower() in CONVERTIBLE_EXTENSIONS:
        posix = posix.with_suffix(PAGE_EXTENSION)
    result = posix.as_posix()
    return web_style(result) if web_style_names else result


def discover_sources(
    root: Path,
    *,
    exclude: Path | None = None,
    include_hidden: bool = False,
) -> list[SourceFile]:
    """Walk a vault directory and return its files in a stable order.

    Dot-directories and dot-files are skipped unless ``include_hidden`` is
    set; ``exclude`` (typically the export destination) is never entered.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Vault directory not found: {root}")

    found: list[SourceFile] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        kept = []
        for name in sorted(dirnames):
            if not include_hidden and name.startswith("."):
                continue
            if exclude is not None and is_within_root(current / name, exclude):
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            if not include_hidden and name.startswith("."):
                continue
            if current == root and name == CONFIG_FILENAME:
                continue
            try:
                found.append(SourceFile.from_path(current / name, root))
            except OSError as exc:
                logger.warning("Skipping unreadable source", path=str(current / name), error=str(exc))

    found.sort(key=lambda source: source.path)
    logger.debug("Discovered sources", root=str(root), count=len(found))
    return found


__all__ = ["CONVERTIBLE_EXTENSIONS", "SourceFile", "discover_sources", "output_path_for"]
