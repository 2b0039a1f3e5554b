"""Shared scanner helpers: safe filesystem reads, JSONL decoding, timestamps, project lookup.

Every helper that touches the filesystem returns ``None`` or an empty result
on failure. Callers treat "missing" and "unreadable" the same way.
"""

from __future__ import annotations

import json
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import unquote, urlparse

MIN_SESSION_BYTES = 100

_README_NAMES = ("README.md", "readme.md", "Readme.md", "README.rst")
_MANIFEST_DESCRIPTION_RE = re.compile(r'description\s*=\s*"([^"]+)"')
_FLATTENED_PATH_PREFIXES = ("Users-", "home-", "-")


def platform_family() -> str:
    """Return ``macos``, ``windows`` or ``linux`` for the running interpreter."""
    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("win"):
        return "windows"
    return "linux"


def home_dir() -> Path:
    """Return the current user's home directory."""
    return Path.home()


def existing_dirs(candidates: list[Path]) -> list[Path]:
    """Keep only candidate paths that are existing directories, order preserved."""
    results: list[Path] = []
    for candidate in candidates:
        try:
            if candidate.is_dir() and candidate not in results:
                results.append(candidate)
        except OSError:
            continue
    return results


def vscode_user_dir(app_name: str) -> Path:
    """Return the ``<app>/User`` settings directory of a VS Code based editor."""
    family = platform_family()
    home = home_dir()
    if family == "macos":
        return home / "Library" / "Application Support" / app_name / "User"
    if family == "windows":
        appdata = os.environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        return Path(appdata) / app_name / "User"
    return home / ".config" / app_name / "User"


def safe_read_text(path: Path) -> str | None:
    """Read a UTF-8 text file, replacing invalid bytes; ``None`` when unreadable."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def safe_read_json(path: Path) -> Any | None:
    """Read and decode a JSON document, returning ``None`` on any failure."""
    content = safe_read_text(path)
    if not content:
        return None
    try:
        return json.loads(content)
    except (ValueError, RecursionError):
        return None


def safe_stat(path: Path) -> os.stat_result | None:
    """Return ``stat`` for ``path`` or ``None`` when it cannot be read."""
    try:
        return path.stat()
    except OSError:
        return None


def list_files(
    directory: Path, extensions: tuple[str, ...] | None = None, recursive: bool = False
) -> list[Path]:
    """List files under ``directory`` filtered by filename suffix, sorted by name."""
    results: list[Path] = []
    try:
        entries = sorted(directory.iterdir())
    except OSError:
        return results
    for entry in entries:
        try:
            if entry.is_file():
                if extensions is None or entry.name.endswith(extensions):
                    results.append(entry)
            elif recursive and entry.is_dir():
                results.extend(list_files(entry, extensions, recursive=True))
        except OSError:
            continue
    return results


def list_dirs(directory: Path) -> list[Path]:
    """List immediate subdirectories of ``directory``, sorted by name."""
    try:
        return sorted(entry for entry in directory.iterdir() if entry.is_dir())
    except OSError:
        return []


@dataclass
class JsonlLine:
    """Outcome of decoding one non-blank JSONL line."""

    line_no: int
    payload: dict[str, Any] | None


def iter_jsonl(path: Path) -> Iterator[JsonlLine]:
    """Yield one outcome per non-blank line; ``payload`` is ``None`` for malformed rows.

    Rows that decode to something other than a JSON object count as malformed.
    An unreadable file yields nothing.
    """
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            for line_no, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except (ValueError, RecursionError):
                    yield JsonlLine(line_no, None)
                    continue
                yield JsonlLine(line_no, payload if isinstance(payload, dict) else None)
    except OSError:
        return


@dataclass
class JsonlRead:
    """Accumulated JSONL decode: the good rows and the line numbers skipped."""

    records: list[dict[str, Any]] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


def read_jsonl(path: Path) -> JsonlRead:
    """Fold :func:`iter_jsonl` into decoded rows plus skipped line numbers."""
    result = JsonlRead()
    for line in iter_jsonl(path):
        if line.payload is None:
            result.skipped.append(line.line_no)
        else:
            result.records.append(line.payload)
    return result


def parse_timestamp(value: Any) -> datetime | None:
    """Parse many timestamp shapes into a timezone-aware UTC datetime."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        timestamp = float(value)
        if abs(timestamp) > 1e10:
            timestamp /= 1000.0
        try:
            parsed = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        except (ValueError, OSError, OverflowError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def mtime_of(stats: os.stat_result) -> datetime:
    """Return a file's modification time as an aware UTC datetime."""
    return datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc)


def decode_folder_uri(uri: str) -> str | None:
    """Decode a ``file://`` workspace folder URI into a filesystem path."""
    try:
        parsed = urlparse(uri)
    except ValueError:
        return None
    if parsed.scheme and parsed.scheme != "file":
        return None
    path = unquote(parsed.path)
    if re.match(r"^/[A-Za-z]:/", path):
        path = path[1:]
    return path or None


def decode_flattened_path(dir_name: str) -> str | None:
    """Decode a hyphen-joined absolute path such as ``Users-me-app`` to ``/Users/me/app``."""
    if not dir_name.startswith(_FLATTENED_PATH_PREFIXES):
        return None
    return "/" + dir_name.lstrip("-").replace("-", "/")


def resolve_project(project_dir: Path) -> tuple[str, str | None]:
    """Resolve ``(project name, absolute project path)`` for one tool project directory.

    Prefers ``workspace.json``'s folder URI, then a flattened absolute path in
    the directory name, else falls back to the raw directory name.
    """
    project_path: str | None = None
    workspace = safe_read_json(project_dir / "workspace.json")
    if isinstance(workspace, dict) and isinstance(workspace.get("folder"), str):
        project_path = decode_folder_uri(workspace["folder"])
    if not project_path:
        project_path = decode_flattened_path(project_dir.name)
    if project_path:
        name = Path(project_path.rstrip("/")).name or project_dir.name
        return name, project_path
    return project_dir.name, None


def extract_project_description(project_path: str | Path | None) -> str | None:
    """Return a short human description of a project from its manifest or README."""
    if not project_path:
        return None
    root = Path(project_path)
    try:
        if not root.is_dir():
            return None
    except OSError:
        return None

    package = safe_read_json(root / "package.json")
    if isinstance(package, dict):
        description = package.get("description")
        if isinstance(description, str) and description.strip():
            return description.strip()[:200]

    for readme_name in _README_NAMES:
        content = safe_read_text(root / readme_name)
        if not content:
            continue
        paragraph = _first_readme_paragraph(content)
        if len(paragraph) > 10:
            return paragraph[:300]

    for manifest_name in ("Cargo.toml", "pyproject.toml"):
        content = safe_read_text(root / manifest_name)
        if not content:
            continue
        match = _MANIFEST_DESCRIPTION_RE.search(content)
        if match:
            return match.group(1)[:200]

    return None


def _first_readme_paragraph(content: str) -> str:
    """Return the first paragraph that is not a heading, rule, list or image."""
    desc = ""
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            if desc:
                break
            continue
        if stripped.startswith(("#", "=", "-")):
            if desc:
                break
            continue
        if stripped.startswith(("![", "<img")):
            continue
        desc = f"{desc} {stripped}" if desc else stripped
        if len(desc) > 200:
            break
    return desc
