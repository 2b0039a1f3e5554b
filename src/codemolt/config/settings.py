"""Central config loading from layered TOML files.

Layers (low to high priority):
1. codemolt/config/default.toml
2. ~/.codemolt/config.toml
3. CODEMOLT_CONFIG env path (optional explicit override)

``CODEMOLT_API_KEY`` and ``CODEMOLT_URL`` environment variables win over
any file value.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).parent
DEFAULT_CONFIG_PATH = PACKAGE_DIR / "default.toml"
GLOBAL_DATA_DIR = Path.home() / ".codemolt"
USER_CONFIG_PATH = GLOBAL_DATA_DIR / "config.toml"
LEDGER_FILENAME = "posted_sessions.json"
DEFAULT_FORUM_URL = "https://codeblog.ai"

_LAST_CONFIG_SOURCES: list[dict[str, str]] = []


@dataclass(frozen=True)
class CandidateThresholds:
    """Minimum substance a discovered session needs to be an auto-publish candidate."""

    min_messages: int = 4
    min_human_messages: int = 2
    min_size_bytes: int = 1024


def load_toml_file(path: Path | None) -> dict[str, Any]:
    """Load TOML file into a dict; return empty dict on failures."""
    if not path or not path.exists():
        return {}
    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge dict values with override precedence."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _expand(value: Any, default: Path) -> Path:
    """Expand user path with fallback to default path."""
    if value in (None, ""):
        return default
    try:
        return Path(str(value)).expanduser()
    except (TypeError, OSError, ValueError):
        return default


def _to_non_empty_string(value: Any) -> str:
    """Convert value to stripped string, defaulting to empty string."""
    if value is None:
        return ""
    return str(value).strip()


def _to_int(value: Any, default: int, minimum: int = 1) -> int:
    """Convert value to bounded integer with fallback default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = default
    return max(minimum, parsed)


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    """Return one TOML table, or an empty dict when missing or mistyped."""
    value = payload.get(name, {})
    return value if isinstance(value, dict) else {}


def _load_layers() -> tuple[dict[str, Any], list[dict[str, str]]]:
    """Load and merge all configuration layers in precedence order."""
    merged: dict[str, Any] = {}
    sources: list[dict[str, str]] = []

    layers: list[tuple[str, Path]] = [
        ("package_default", DEFAULT_CONFIG_PATH),
        ("user", USER_CONFIG_PATH),
    ]
    explicit = os.getenv("CODEMOLT_CONFIG")
    if explicit:
        layers.append(("explicit", Path(explicit).expanduser()))

    for source_name, path in layers:
        payload = load_toml_file(path)
        if payload:
            merged = _deep_merge(merged, payload)
            sources.append({"source": source_name, "path": str(path)})

    return merged, sources


def get_config_sources() -> list[dict[str, str]]:
    """Return last-computed config source list."""
    return [dict(item) for item in _LAST_CONFIG_SOURCES]


@dataclass(frozen=True)
class Config:
    """Effective runtime configuration from TOML layers and environment."""

    data_dir: Path
    ledger_path: Path

    forum_url: str
    forum_timeout_seconds: int
    api_key: str | None

    scan_limit: int
    scan_workers: int
    read_max_lines: int

    auto_scan_limit: int
    thresholds: CandidateThresholds

    @property
    def is_configured(self) -> bool:
        """Return whether an API key is available for posting."""
        return bool(self.api_key)

    def public_dict(self) -> dict[str, Any]:
        """Return safe serialized config for CLI visibility (no secrets)."""
        return {
            "data_dir": str(self.data_dir),
            "ledger_path": str(self.ledger_path),
            "forum_url": self.forum_url,
            "forum_timeout_seconds": self.forum_timeout_seconds,
            "api_key_set": self.is_configured,
            "scan_limit": self.scan_limit,
            "scan_workers": self.scan_workers,
            "read_max_lines": self.read_max_lines,
            "auto_scan_limit": self.auto_scan_limit,
            "min_messages": self.thresholds.min_messages,
            "min_human_messages": self.thresholds.min_human_messages,
            "min_size_bytes": self.thresholds.min_size_bytes,
        }


@lru_cache(maxsize=1)
def load_config() -> Config:
    """Load effective config from TOML layers plus environment overrides."""
    load_dotenv()
    toml_data, sources = _load_layers()

    global _LAST_CONFIG_SOURCES
    _LAST_CONFIG_SOURCES = sources

    data = _section(toml_data, "data")
    forum = _section(toml_data, "forum")
    scan = _section(toml_data, "scan")
    auto = _section(toml_data, "auto")

    data_dir = _expand(data.get("dir"), GLOBAL_DATA_DIR)
    forum_url = (
        _to_non_empty_string(os.environ.get("CODEMOLT_URL"))
        or _to_non_empty_string(forum.get("url"))
        or DEFAULT_FORUM_URL
    )
    api_key = _to_non_empty_string(
        os.environ.get("CODEMOLT_API_KEY")
    ) or _to_non_empty_string(forum.get("api_key"))

    return Config(
        data_dir=data_dir,
        ledger_path=data_dir / LEDGER_FILENAME,
        forum_url=forum_url.rstrip("/"),
        forum_timeout_seconds=_to_int(forum.get("timeout_seconds"), 30, minimum=1),
        api_key=api_key or None,
        scan_limit=_to_int(scan.get("limit"), 20, minimum=1),
        scan_workers=_to_int(scan.get("workers"), 1, minimum=1),
        read_max_lines=_to_int(scan.get("read_max_lines"), 200, minimum=1),
        auto_scan_limit=_to_int(auto.get("scan_limit"), 30, minimum=1),
        thresholds=CandidateThresholds(
            min_messages=_to_int(auto.get("min_messages"), 4, minimum=0),
            min_human_messages=_to_int(auto.get("min_human_messages"), 2, minimum=0),
            min_size_bytes=_to_int(auto.get("min_size_bytes"), 1024, minimum=0),
        ),
    )


def get_config() -> Config:
    """Return cached effective configuration."""
    return load_config()


def reload_config() -> Config:
    """Clear config cache and return reloaded configuration."""
    load_config.cache_clear()
    return load_config()
