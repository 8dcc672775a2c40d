import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vaultsite import config as config_module
from vaultsite import paths as paths_module

from tests.helpers import FakeGenerator, write_vault


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep user config and export overrides out of every test."""
    config_home = tmp_path / "config-home" / "vaultsite"
    monkeypatch.delenv("VAULTSITE_CONFIG", raising=False)
    monkeypatch.delenv("VAULTSITE_FULL_EXPORT", raising=False)
    monkeypatch.setattr(paths_module, "CONFIG_HOME", config_home, raising=False)
    monkeypatch.setattr(config_module, "CONFIG_HOME", config_home, raising=False)
    return config_home


@pytest.fixture
def vault(tmp_path):
    """A small vault: two linked notes in different folders and an image."""
    return write_vault(
        tmp_path / "vault",
        {
            "index.md": "---\ntitle: Home\n---\n# Welcome\n\nSee [the guide](notes/guide.md).\n",
            "notes/guide.md": "# Guide\n\n![diagram](../images/diagram.png)\n\nBack [home](../index.md#top).\n",
            "images/diagram.png": b"\x89PNG\r\n\x1a\nfake-image",
        },
    )


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def destination(tmp_path):
    path = tmp_path / "site"
    path.mkdir()
    return path
