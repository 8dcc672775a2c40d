from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Iterable, Optional

from .errors import ConfigError
from .lib.json import JSONDecodeError, dumps, loads
from .paths import CONFIG_FILENAME, CONFIG_HOME

_ALLOWED_THEMES = {"light", "dark"}
_BOOL_KEYS = {
    "incremental",
    "include_graph_view",
    "include_file_tree",
    "web_style_names",
    "show_default_icons",
}
_STR_KEYS = {
    "title",
    "title_property",
    "default_file_icon",
    "default_media_icon",
    "default_folder_icon",
    "theme",
}


@dataclass
class ExportConfig:
    title: str = "Vault"
    incremental: bool = True
    include_graph_view: bool = True
    include_file_tree: bool = True
    web_style_names: bool = False
    title_property: str = "title"
    show_default_icons: bool = False
    default_file_icon: str = "lucide//file"
    default_media_icon: str = "lucide//file-image"
    default_folder_icon: str = "lucide//folder"
    theme: str = "light"
    asset_dir: Optional[Path] = None
    path: Optional[Path] = None

    def as_dict(self) -> dict:
        payload = asdict(self)
        payload.pop("path")
        payload["asset_dir"] = str(self.asset_dir) if self.asset_dir is not None else None
        return payload

    def with_overrides(self, **overrides: Any) -> ExportConfig:
        """Return a copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


def _allowed_keys() -> set[str]:
    return {f.name for f in fields(ExportConfig)} - {"path"}


def _ensure_keys(data: dict, *, allowed: Iterable[str], context: str) -> None:
    unknown = set(data.keys()) - set(allowed)
    if unknown:
        keys = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown {context} key(s): {keys}")


def config_path(vault_root: Optional[Path] = None, explicit: Optional[Path] = None) -> Optional[Path]:
    """Locate the config file: $VAULTSITE_CONFIG, explicit path, vault file, user file."""
    env_path = os.environ.get("VAULTSITE_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    if explicit:
        return explicit.expanduser()
    if vault_root is not None:
        candidate = vault_root / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    user_config = CONFIG_HOME / CONFIG_FILENAME
    if user_config.exists():
        return user_config
    return None


def parse_config(raw: Any, *, source: Optional[Path] = None) -> ExportConfig:
    if not isinstance(raw, dict):
        raise ConfigError("Config payload must be a JSON object")
    _ensure_keys(raw, allowed=_allowed_keys(), context="config")
    for key in _BOOL_KEYS & raw.keys():
        if not isinstance(raw[key], bool):
            raise ConfigError(f"Config '{key}' must be true or false")
    for key in _STR_KEYS & raw.keys():
        if not isinstance(raw[key], str) or not raw[key].strip():
            raise ConfigError(f"Config '{key}' must be a non-empty string")
    theme = raw.get("theme", "light")
    if theme not in _ALLOWED_THEMES:
        raise ConfigError(f"Invalid theme '{theme}'")
    asset_dir = raw.get("asset_dir")
    if asset_dir is not None and (not isinstance(asset_dir, str) or not asset_dir.strip()):
        raise ConfigError("Config 'asset_dir' must be a non-empty string")

    values = {key: value for key, value in raw.items() if key != "asset_dir"}
    config = ExportConfig(**values, path=source)
    if asset_dir is not None:
        resolved = Path(asset_dir).expanduser()
        if not resolved.is_absolute() and source is not None:
            resolved = source.parent / resolved
        config.asset_dir = resolved
    return config


def load_config(vault_root: Optional[Path] = None, explicit: Optional[Path] = None) -> ExportConfig:
    path = config_path(vault_root, explicit)
    if path is None:
        config = ExportConfig()
    else:
        config = _read_config(path)
    if os.environ.get("VAULTSITE_FULL_EXPORT"):
        config.incremental = False
    return config


def _read_config(path: Path) -> ExportConfig:
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    try:
        raw = loads(path.read_bytes())
    except JSONDecodeError as exc:
        raise ConfigError(f"Config {path} is not valid JSON: {exc}") from exc
    return parse_config(raw, source=path)


def write_config(config: ExportConfig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps(config.as_dict(), indent=True), encoding="utf-8")
    config.path = path


__all__ = [
    "ConfigError",
    "ExportConfig",
    "config_path",
    "load_config",
    "parse_config",
    "write_config",
]
