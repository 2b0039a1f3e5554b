"""Unit tests for config loading, layering, and type conversion."""

from __future__ import annotations

from codemolt.config.settings import (
    CandidateThresholds,
    Config,
    DEFAULT_FORUM_URL,
    _deep_merge,
    _to_int,
    _to_non_empty_string,
    get_config,
    get_config_sources,
    load_toml_file,
    reload_config,
)
from tests.helpers import write_test_config


def test_load_default_toml(isolated_config):
    """Defaults load without error and the ledger lives in the data dir."""
    cfg = get_config()
    assert isinstance(cfg, Config)
    assert cfg.data_dir == isolated_config
    assert cfg.ledger_path == isolated_config / "posted_sessions.json"
    assert cfg.forum_url == DEFAULT_FORUM_URL
    assert cfg.thresholds == CandidateThresholds(4, 2, 1024)
    assert cfg.auto_scan_limit == 30
    assert cfg.read_max_lines == 200
    assert not cfg.is_configured


def test_deep_merge_override():
    base = {"a": 1, "nested": {"x": 10, "y": 20}}
    result = _deep_merge(base, {"a": 2, "nested": {"x": 99}})
    assert result == {"a": 2, "nested": {"x": 99, "y": 20}}
    assert base["nested"]["x"] == 10


def test_type_conversion():
    assert _to_int("10", default=0) == 10
    assert _to_int("abc", default=5) == 5
    assert _to_int(-1, default=3, minimum=0) == 0
    assert _to_non_empty_string("  key ") == "key"
    assert _to_non_empty_string(None) == ""


def test_load_toml_file_missing_or_invalid(tmp_path):
    assert load_toml_file(tmp_path / "missing.toml") == {}
    broken = tmp_path / "broken.toml"
    broken.write_text("[forum\nurl = ", encoding="utf-8")
    assert load_toml_file(broken) == {}


def test_explicit_config_layer_overrides(tmp_path, monkeypatch):
    path = write_test_config(
        tmp_path,
        forum={"url": "https://forum.example/", "api_key": "file-key", "timeout_seconds": 7},
        scan={"limit": 5, "workers": 3},
        auto={"min_messages": 6, "min_size_bytes": 0},
    )
    monkeypatch.setenv("CODEMOLT_CONFIG", str(path))
    cfg = reload_config()
    assert cfg.forum_url == "https://forum.example"
    assert cfg.api_key == "file-key"
    assert cfg.forum_timeout_seconds == 7
    assert cfg.scan_limit == 5
    assert cfg.scan_workers == 3
    assert cfg.thresholds.min_messages == 6
    assert cfg.thresholds.min_size_bytes == 0
    assert cfg.thresholds.min_human_messages == 2
    assert {"source": "explicit", "path": str(path)} in get_config_sources()


def test_environment_wins_over_files(tmp_path, monkeypatch):
    path = write_test_config(tmp_path, forum={"api_key": "file-key"})
    monkeypatch.setenv("CODEMOLT_CONFIG", str(path))
    monkeypatch.setenv("CODEMOLT_API_KEY", "env-key")
    monkeypatch.setenv("CODEMOLT_URL", "http://localhost:3000")
    cfg = reload_config()
    assert cfg.api_key == "env-key"
    assert cfg.forum_url == "http://localhost:3000"
    assert cfg.is_configured


def test_public_dict_hides_api_key(monkeypatch):
    monkeypatch.setenv("CODEMOLT_API_KEY", "secret-value")
    payload = reload_config().public_dict()
    assert payload["api_key_set"] is True
    assert "secret-value" not in str(payload)
