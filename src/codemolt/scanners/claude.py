"""Claude Code scanner for per-project JSONL session logs.

Layout: ``~/.claude/projects/<flattened-project-path>/<session-id>.jsonl``.
Each line is one event; ``user`` and ``assistant`` events carry a
``message`` whose ``content`` is a string or a list of typed blocks.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from codemolt.config.logging import logger
from codemolt.scanners.base import (
    ConversationTurn,
    ParsedSession,
    Role,
    Session,
    SourceType,
    TurnTally,
    append_turn,
    newest_first,
    session_fields,
    tally_turns,
)
from codemolt.scanners.common import (
    MIN_SESSION_BYTES,
    existing_dirs,
    extract_project_description,
    home_dir,
    iter_jsonl,
    list_dirs,
    list_files,
    mtime_of,
    parse_timestamp,
    resolve_project,
    safe_stat,
)

_ROLES = {"user": Role.human, "assistant": Role.assistant}


@dataclass
class _LogState:
    """Session-level facts gathered while streaming one log."""

    session_id: str | None = None
    cwd: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    skipped: int = 0


def _message_body(content: Any) -> tuple[str, str | None]:
    """Return ``(text, tool name)`` for one message body."""
    if isinstance(content, str):
        return content.strip(), None
    if not isinstance(content, list):
        return "", None
    parts: list[str] = []
    tool_name: str | None = None
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text" and isinstance(block.get("text"), str):
            parts.append(block["text"])
        elif block_type == "tool_use" and block.get("name"):
            tool_name = str(block["name"])
    return "\n".join(parts).strip(), tool_name


def _iter_turns(path: Path, state: _LogState) -> Iterator[ConversationTurn]:
    """Stream turns from one log, recording malformed lines in ``state``."""
    for line in iter_jsonl(path):
        entry = line.payload
        if entry is None:
            state.skipped += 1
            continue

        if not state.session_id and entry.get("sessionId"):
            state.session_id = str(entry["sessionId"])
        if not state.cwd and isinstance(entry.get("cwd"), str):
            state.cwd = entry["cwd"]
        timestamp = parse_timestamp(entry.get("timestamp"))
        if timestamp:
            if state.started_at is None:
                state.started_at = timestamp
            state.ended_at = timestamp

        role = _ROLES.get(str(entry.get("type") or ""))
        message = entry.get("message")
        if role is None or not isinstance(message, dict):
            continue
        text, tool_name = _message_body(message.get("content"))
        if text or tool_name:
            yield ConversationTurn(
                role=role, content=text, timestamp=timestamp, tool_name=tool_name
            )


class ClaudeCodeScanner:
    """Discover and decode Claude Code sessions."""

    name = "Claude Code"
    source_type = SourceType.claude_code
    description = "Claude Code CLI sessions (~/.claude/projects)"

    def __init__(self, roots: list[Path] | None = None) -> None:
        self._roots = roots

    def get_session_dirs(self) -> list[Path]:
        """Return existing Claude projects roots."""
        if self._roots is not None:
            return existing_dirs(self._roots)
        candidates = [home_dir() / ".claude" / "projects"]
        config_dir = os.environ.get("CLAUDE_CONFIG_DIR")
        if config_dir:
            candidates.insert(0, Path(config_dir).expanduser() / "projects")
        return existing_dirs(candidates)

    def scan(self, limit: int) -> list[Session]:
        """List Claude sessions with at least one human turn, newest first."""
        sessions: list[Session] = []
        for root in self.get_session_dirs():
            for project_dir in list_dirs(root):
                for path in list_files(project_dir, (".jsonl",)):
                    session = self._summarize(path)
                    if session is not None:
                        sessions.append(session)
        return newest_first(sessions, limit)

    def parse(self, path: Path, max_turns: int | None = None) -> ParsedSession | None:
        """Decode one Claude log into its ordered user/assistant turns."""
        path = Path(path)
        stats = safe_stat(path)
        if stats is None:
            return None
        state = _LogState()
        turns: list[ConversationTurn] = []
        for turn in _iter_turns(path, state):
            append_turn(turns, turn, max_turns)
        if state.skipped:
            logger.debug("Skipped {} malformed lines in {}", state.skipped, path)
        if not turns:
            return None
        tally = tally_turns(turns)
        return ParsedSession(
            **self._fields(path, stats, state, tally),
            turns=tuple(turns),
            started_at=state.started_at,
            ended_at=state.ended_at,
            skipped_lines=state.skipped,
        )

    def _summarize(self, path: Path) -> Session | None:
        """Count one log's turns without keeping them."""
        stats = safe_stat(path)
        if stats is None or stats.st_size < MIN_SESSION_BYTES:
            return None
        state = _LogState()
        tally = TurnTally()
        for turn in _iter_turns(path, state):
            tally.add(turn)
        if tally.human == 0:
            return None
        return Session(**self._fields(path, stats, state, tally))

    def _fields(
        self, path: Path, stats: os.stat_result, state: _LogState, tally: TurnTally
    ) -> dict[str, Any]:
        """Build the shared ``Session`` fields for a decoded log."""
        if state.cwd:
            project_path: str | None = state.cwd
            project = Path(state.cwd.rstrip("/")).name or path.parent.name
        else:
            project, project_path = resolve_project(path.parent)
        return session_fields(
            session_id=state.session_id or path.stem,
            source=self.source_type,
            project=project,
            project_path=project_path,
            project_description=extract_project_description(project_path),
            path=path,
            size_bytes=stats.st_size,
            modified_at=mtime_of(stats),
            tally=tally,
            fallback_title=f"Claude Code session in {project}",
        )
