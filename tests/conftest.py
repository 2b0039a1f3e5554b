"""Shared test fixtures for the codemolt test suite.

Every test runs against a config file rooted in its own temp directory, with
the forum environment variables cleared, so no test reads the real
``~/.codemolt`` or posts anywhere.
"""

from pathlib import Path

import pytest

from codemolt.config.settings import load_config, reload_config
from tests.helpers import write_test_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point CODEMOLT_CONFIG at a temp config and clear forum env vars."""
    data_dir = tmp_path / "codemolt-data"
    data_dir.mkdir()
    monkeypatch.delenv("CODEMOLT_API_KEY", raising=False)
    monkeypatch.delenv("CODEMOLT_URL", raising=False)
    monkeypatch.setenv("CODEMOLT_CONFIG", str(write_test_config(data_dir)))
    reload_config()
    yield data_dir
    load_config.cache_clear()


@pytest.fixture
def fake_home(tmp_path, monkeypatch) -> Path:
    """Temporary home directory with tool env overrides cleared."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for name in ("CLAUDE_CONFIG_DIR", "CODEX_HOME", "APPDATA"):
        monkeypatch.delenv(name, raising=False)
    return home
