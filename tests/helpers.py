"""Shared test utilities: session fixtures on disk, config, and CLI runners."""

from __future__ import annotations

import io
import json
import os
from contextlib import redirect_stdout
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from codemolt.config.settings import CandidateThresholds, Config
from codemolt.scanners.base import ConversationTurn, ParsedSession, Role, Session, SourceType


def make_config(base: Path, api_key: str | None = None) -> Config:
    """Build a deterministic Config object rooted at ``base`` for tests."""
    return Config(
        data_dir=base,
        ledger_path=base / "posted_sessions.json",
        forum_url="https://forum.test",
        forum_timeout_seconds=5,
        api_key=api_key,
        scan_limit=20,
        scan_workers=1,
        read_max_lines=200,
        auto_scan_limit=30,
        thresholds=CandidateThresholds(),
    )


def write_test_config(tmp_path: Path, **sections: dict[str, Any]) -> Path:
    """Write a test config.toml pointing data dir to ``tmp_path``.

    Usage::

        write_test_config(tmp_path, forum={"api_key": "k"})
    """
    all_sections: dict[str, dict[str, Any]] = {"data": {"dir": str(tmp_path)}}
    for name, payload in sections.items():
        if isinstance(payload, dict):
            all_sections.setdefault(name, {}).update(payload)

    lines: list[str] = []
    for section_name, fields in all_sections.items():
        lines.append(f"[{section_name}]")
        for key, value in fields.items():
            if isinstance(value, bool):
                lines.append(f"{key} = {'true' if value else 'false'}")
            elif isinstance(value, (int, float)):
                lines.append(f"{key} = {value}")
            else:
                lines.append(f'{key} = "{value}"')
        lines.append("")

    config_path = tmp_path / "test_config.toml"
    config_path.write_text("\n".join(lines), encoding="utf-8")
    return config_path


def write_jsonl(path: Path, entries: list[Any], raw_lines: dict[int, str] | None = None) -> Path:
    """Write JSONL entries; ``raw_lines`` inserts literal lines at given indexes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [json.dumps(entry) for entry in entries]
    for index, raw in sorted((raw_lines or {}).items()):
        lines.insert(index, raw)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def set_mtime(path: Path, when: datetime) -> Path:
    """Pin a file's modification time."""
    stamp = when.timestamp()
    os.utime(path, (stamp, stamp))
    return path


def claude_entry(kind: str, text: str, **extra: Any) -> dict[str, Any]:
    """One Claude Code log event with a text body."""
    content: Any = text if kind == "user" else [{"type": "text", "text": text}]
    entry = {
        "type": kind,
        "sessionId": "sess-1",
        "timestamp": "2026-02-20T10:00:00Z",
        "message": {"role": kind, "content": content},
    }
    entry.update(extra)
    return entry


def claude_conversation(exchanges: list[tuple[str, str]], **extra: Any) -> list[dict[str, Any]]:
    """Alternate user/assistant events for each ``(prompt, reply)`` pair."""
    entries: list[dict[str, Any]] = []
    for prompt, reply in exchanges:
        entries.append(claude_entry("user", prompt, **extra))
        entries.append(claude_entry("assistant", reply, **extra))
    return entries


def make_session(
    session_id: str = "s1",
    *,
    source: SourceType = SourceType.claude_code,
    message_count: int = 6,
    human_messages: int = 3,
    size_bytes: int = 4096,
    modified_at: datetime | None = None,
    file_path: str = "/tmp/s1.jsonl",
    project: str = "app",
) -> Session:
    """Build a discovery-time Session with overridable counters."""
    return Session(
        id=session_id,
        source=source,
        project=project,
        title="Fix the failing build",
        message_count=message_count,
        human_messages=human_messages,
        ai_messages=message_count - human_messages,
        preview="Fix the failing build",
        file_path=file_path,
        modified_at=modified_at or datetime(2026, 2, 20, tzinfo=timezone.utc),
        size_bytes=size_bytes,
    )


def make_parsed(turns: list[tuple[Role, str]], **overrides: Any) -> ParsedSession:
    """Build a ParsedSession from ``(role, text)`` pairs."""
    conversation = tuple(ConversationTurn(role=role, content=text) for role, text in turns)
    fields: dict[str, Any] = {
        "id": "s1",
        "source": SourceType.claude_code,
        "project": "app",
        "title": "t",
        "message_count": len(conversation),
        "human_messages": sum(1 for turn in conversation if turn.role is Role.human),
        "ai_messages": sum(1 for turn in conversation if turn.role is Role.assistant),
        "preview": "",
        "file_path": "/tmp/s1.jsonl",
        "modified_at": datetime(2026, 2, 20, tzinfo=timezone.utc),
        "size_bytes": 4096,
    }
    fields.update(overrides)
    return ParsedSession(**fields, turns=conversation)


def run_cli(args: list[str]) -> tuple[int, str]:
    """Run CLI command and return ``(exit_code, stdout_text)``."""
    from codemolt.app import cli

    out = io.StringIO()
    with redirect_stdout(out):
        code = cli.main(args)
    return code, out.getvalue()


def run_cli_json(args: list[str]) -> tuple[int, Any]:
    """Run CLI command and parse stdout JSON payload."""
    code, output = run_cli(args)
    return code, json.loads(output)
