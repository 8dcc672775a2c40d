"""Artifact value type: one unit of build output."""

from __future__ import annotations

from enum import Enum
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, field_validator

from vaultsite.paths import normalize_relative_path

PAGE_EXTENSION = ".html"
FONT_EXTENSIONS = (".woff", ".woff2", ".otf", ".ttf")
MEDIA_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".bmp", ".ico",
    ".mp3", ".wav", ".ogg", ".flac", ".m4a",
    ".mp4", ".webm", ".mov", ".mkv",
    ".pdf",
)


class ArtifactKind(str, Enum):
    """Output categories, derived from the destination filename."""

    PAGE = "page"
    SCRIPT = "script"
    STYLE = "style"
    FONT = "font"
    MEDIA = "media"
    DATA = "data"
    OTHER = "other"

    @classmethod
    def from_filename(cls, filename: str) -> ArtifactKind:
        suffix = PurePosixPath(filename.lower()).suffix
        if suffix == PAGE_EXTENSION:
            return cls.PAGE
        if suffix == ".js":
            return cls.SCRIPT
        if suffix == ".css":
            return cls.STYLE
        if suffix in FONT_EXTENSIONS:
            return cls.FONT
        if suffix in MEDIA_EXTENSIONS:
            return cls.MEDIA
        if suffix in {".json", ".xml", ".txt"}:
            return cls.DATA
        return cls.OTHER

    def __str__(self) -> str:
        return self.value


class Artifact(BaseModel):
    """A named, positioned, byte-bearing unit of output.

    ``relative_path`` is the identity key: two artifacts with the same
    destination are the same artifact, whatever their content.
    """

    model_config = ConfigDict(frozen=True)

    relative_path: str
    content: bytes
    modified_time: float = 0.0

    @field_validator("relative_path", mode="before")
    @classmethod
    def normalize_path(cls, v: object) -> str:
        if isinstance(v, (str, PurePosixPath, Path)):
            return normalize_relative_path(v)
        raise ValueError("relative_path must be a string or path")

    @property
    def filename(self) -> str:
        return PurePosixPath(self.relative_path).name

    @property
    def kind(self) -> ArtifactKind:
        return ArtifactKind.from_filename(self.filename)

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_page(self) -> bool:
        return self.filename.lower().endswith(PAGE_EXTENSION)

    @property
    def is_font(self) -> bool:
        return self.filename.lower().endswith(FONT_EXTENSIONS)

    @classmethod
    def from_text(cls, relative_path: str, text: str, modified_time: float = 0.0) -> Artifact:
        return cls(relative_path=relative_path, content=text.encode("utf-8"), modified_time=modified_time)

    @classmethod
    def from_file(cls, relative_path: str, path: Path) -> Artifact:
        """Load an artifact from disk, stamping it with the file's mtime."""
        stat = path.stat()
        return cls(relative_path=relative_path, content=path.read_bytes(), modified_time=stat.st_mtime)

    def __repr__(self) -> str:
        return f"Artifact({self.relative_path!r}, size={self.size}, mtime={self.modified_time})"


__all__ = [
    "Artifact",
    "ArtifactKind",
    "FONT_EXTENSIONS",
    "MEDIA_EXTENSIONS",
    "PAGE_EXTENSION",
]
