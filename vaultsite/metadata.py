"""Display identity (title and icon) of vault documents.

Titles and icons are resolved by ordered strategies, first match wins:

    title: configured frontmatter property -> banner_header -> file stem
    icon:  icon -> sticker -> banner_icon -> icon source -> category default

All resolvers are pure functions over :class:`DocumentMeta`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

import frontmatter
import yaml

from vaultsite.artifacts import MEDIA_EXTENSIONS
from vaultsite.environment import ICON_PACK, EnvironmentCapabilities
from vaultsite.lib.log import get_logger

if TYPE_CHECKING:
    from vaultsite.config import ExportConfig
    from vaultsite.protocols import IconSource
    from vaultsite.sources import SourceFile

logger = get_logger(__name__)

CANVAS_ICON = "lucide//layout-dashboard"
_DRAWING_SUFFIX = ".excalidraw"


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Return (metadata, body); malformed frontmatter yields empty metadata."""
    try:
        post = frontmatter.loads(text)
    except (yaml.YAMLError, ValueError) as exc:
        logger.debug("Ignoring malformed frontmatter", error=str(exc))
        return {}, text
    metadata = post.metadata if isinstance(post.metadata, dict) else {}
    return metadata, post.content


@dataclass(frozen=True)
class DocumentMeta:
    path: str
    is_folder: bool = False
    frontmatter: Mapping[str, Any] = field(default_factory=dict)

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem if not self.is_folder else self.name

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def extension(self) -> str:
        return "" if self.is_folder else PurePosixPath(self.path).suffix.lstrip(".").lower()

    @classmethod
    def for_source(cls, file: SourceFile) -> DocumentMeta:
        data: Mapping[str, Any] = {}
        if file.is_convertible:
            try:
                data, _ = split_frontmatter(file.read_text())
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("Cannot read frontmatter", path=file.path, error=str(exc))
        return cls(path=file.path, frontmatter=data)

    @classmethod
    def for_folder(cls, path: str) -> DocumentMeta:
        return cls(path=path, is_folder=True)


@dataclass(frozen=True)
class DisplayIdentity:
    title: str
    icon: str
    is_default_title: bool
    is_default_icon: bool


TitleResolver = Callable[[DocumentMeta, "ExportConfig"], "str | None"]
IconResolver = Callable[[DocumentMeta, "ExportConfig", "IconSource | None"], "str | None"]


def _string_field(meta: DocumentMeta, key: str) -> str | None:
    value = meta.frontmatter.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _title_from_property(meta: DocumentMeta, config: ExportConfig) -> str | None:
    return _string_field(meta, config.title_property)


def _title_from_banner_header(meta: DocumentMeta, config: ExportConfig) -> str | None:
    return _string_field(meta, "banner_header")


TITLE_RESOLVERS: tuple[TitleResolver, ...] = (
    _title_from_property,
    _title_from_banner_header,
)


def _frontmatter_icon(key: str) -> IconResolver:
    def resolve(meta: DocumentMeta, config: ExportConfig, icons: IconSource | None) -> str | None:
        return _string_field(meta, key)

    resolve.__name__ = f"_icon_from_{key}"
    return resolve


def _icon_from_source(meta: DocumentMeta, config: ExportConfig, icons: IconSource | None) -> str | None:
    if icons is None:
        return None
    return icons.lookup(meta.path)


ICON_RESOLVERS: tuple[IconResolver, ...] = (
    _frontmatter_icon("icon"),
    _frontmatter_icon("sticker"),
    _frontmatter_icon("banner_icon"),
    _icon_from_source,
)


def default_icon(meta: DocumentMeta, config: ExportConfig) -> str:
    if meta.is_folder:
        return config.default_folder_icon
    if meta.extension == "canvas":
        return CANVAS_ICON
    if f".{meta.extension}" in MEDIA_EXTENSIONS:
        return config.default_media_icon
    return config.default_file_icon


def resolve_title(meta: DocumentMeta, config: ExportConfig) -> tuple[str, bool]:
    """Return (title, is_default)."""
    title = None
    if not meta.is_folder:
        for resolver in TITLE_RESOLVERS:
            title = resolver(meta, config)
            if title:
                break
    is_default = not title or title == meta.stem
    title = title or meta.stem
    if title.endswith(_DRAWING_SUFFIX):
        title = title[: -len(_DRAWING_SUFFIX)]
    return title, is_default


def resolve_icon(meta: DocumentMeta, config: ExportConfig, icons: IconSource | None = None) -> tuple[str, bool]:
    """Return (icon, is_default); an empty icon means none should be shown."""
    resolvers = ICON_RESOLVERS if not meta.is_folder else (_icon_from_source,)
    for resolver in resolvers:
        icon = resolver(meta, config, icons)
        if icon:
            return icon, False
    if config.show_default_icons:
        return default_icon(meta, config), True
    return "", False


def resolve_identity(meta: DocumentMeta, config: ExportConfig, icons: IconSource | None = None) -> DisplayIdentity:
    title, default_title = resolve_title(meta, config)
    icon, default_icon_used = resolve_icon(meta, config, icons)
    return DisplayIdentity(
        title=title,
        icon=icon,
        is_default_title=default_title,
        is_default_icon=default_icon_used,
    )


class IconPackSource:
    """Icon lookup backed by an icon pack's path-to-icon table."""

    def __init__(self, icons: Mapping[str, Any], identifier: str = ":") -> None:
        self._icons = icons
        self.identifier = identifier

    @classmethod
    def from_capabilities(cls, caps: EnvironmentCapabilities) -> IconPackSource | None:
        """Return a source when the icon pack is installed with note icons enabled."""
        ext = caps.get(ICON_PACK)
        if ext is None or not ext.settings.get("iconsInNotesEnabled", False):
            return None
        icons = ext.settings.get("icons") or {}
        if not isinstance(icons, Mapping):
            return None
        return cls(icons, identifier=str(ext.settings.get("iconIdentifier") or ":"))

    def lookup(self, path: str) -> str | None:
        value = self._icons.get(path)
        if isinstance(value, Mapping):
            value = value.get("iconName")
        if not isinstance(value, str) or not value.strip():
            return None
        return f"{self.identifier}{value.strip()}{self.identifier}"


__all__ = [
    "DisplayIdentity",
    "DocumentMeta",
    "ICON_RESOLVERS",
    "IconPackSource",
    "TITLE_RESOLVERS",
    "default_icon",
    "resolve_icon",
    "resolve_identity",
    "resolve_title",
    "split_frontmatter",
]
