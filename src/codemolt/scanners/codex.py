"""Codex CLI scanner for rollout JSONL session logs.

Current rollouts wrap every row as ``{"type": ..., "payload": {...}}``:
``session_meta`` carries the id and cwd, ``response_item`` rows carry
messages and tool calls, and ``event_msg`` rows mirror the user/agent
messages. Older rollouts write bare ``message`` rows with a header line.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
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
    list_files,
    mtime_of,
    parse_timestamp,
    safe_stat,
)

_MESSAGE_ROLES = {
    "user": Role.human,
    "assistant": Role.assistant,
    "developer": Role.system,
    "system": Role.system,
}
_TOOL_CALL_TYPES = {"function_call", "custom_tool_call", "local_shell_call"}
_LEGACY_ROW_TYPES = {"message"} | _TOOL_CALL_TYPES


@dataclass
class _RolloutState:
    """Session-level facts gathered while streaming one rollout."""

    session_id: str | None = None
    cwd: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    skipped: int = 0
    has_response_items: bool = False
    event_turns: list[ConversationTurn] = field(default_factory=list)


def _message_text(content: Any) -> str:
    """Normalize message payload content to plain text."""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [
            block["text"]
            for block in content
            if isinstance(block, dict) and isinstance(block.get("text"), str)
        ]
        return "\n".join(parts).strip()
    return ""


def _item_turn(item: dict[str, Any], timestamp: datetime | None) -> ConversationTurn | None:
    """Convert one response item into a turn, if it is a message or tool call."""
    item_type = item.get("type")
    if item_type == "message":
        role = _MESSAGE_ROLES.get(str(item.get("role") or ""))
        text = _message_text(item.get("content"))
        if role is None or not text:
            return None
        return ConversationTurn(role=role, content=text, timestamp=timestamp)
    if item_type in _TOOL_CALL_TYPES:
        tool_name = str(item.get("name") or item_type)
        return ConversationTurn(
            role=Role.tool, content="", timestamp=timestamp, tool_name=tool_name
        )
    return None


def _iter_turns(path: Path, state: _RolloutState) -> Iterator[ConversationTurn]:
    """Stream turns from one rollout, recording malformed lines in ``state``."""
    for line in iter_jsonl(path):
        entry = line.payload
        if entry is None:
            state.skipped += 1
            continue

        entry_type = entry.get("type")
        payload = entry.get("payload")
        if not isinstance(payload, dict):
            payload = {}
        timestamp = parse_timestamp(entry.get("timestamp") or payload.get("timestamp"))
        if timestamp:
            if state.started_at is None:
                state.started_at = timestamp
            state.ended_at = timestamp

        if entry_type == "session_meta":
            state.session_id = state.session_id or _str_or_none(payload.get("id"))
            state.cwd = state.cwd or _str_or_none(payload.get("cwd"))
            continue
        if entry_type is None and line.line_no == 1 and entry.get("id"):
            state.session_id = state.session_id or str(entry["id"])
            continue

        if entry_type == "event_msg":
            event_type = payload.get("type")
            text = payload.get("message")
            if event_type in ("user_message", "agent_message") and isinstance(text, str):
                if text.strip():
                    role = Role.human if event_type == "user_message" else Role.assistant
                    state.event_turns.append(
                        ConversationTurn(role=role, content=text.strip(), timestamp=timestamp)
                    )
            continue

        if entry_type == "response_item":
            item = payload
        elif entry_type in _LEGACY_ROW_TYPES:
            item = entry
        else:
            continue
        state.has_response_items = True
        turn = _item_turn(item, timestamp)
        if turn is not None:
            yield turn

    if not state.has_response_items:
        yield from state.event_turns


def _str_or_none(value: Any) -> str | None:
    """Return a non-empty string value or ``None``."""
    if isinstance(value, str) and value.strip():
        return value
    return None


class CodexScanner:
    """Discover and decode Codex CLI sessions."""

    name = "Codex"
    source_type = SourceType.codex
    description = "OpenAI Codex CLI sessions (~/.codex/sessions)"

    def __init__(self, roots: list[Path] | None = None) -> None:
        self._roots = roots

    def get_session_dirs(self) -> list[Path]:
        """Return existing Codex session roots (live and archived)."""
        if self._roots is not None:
            return existing_dirs(self._roots)
        base = Path(os.environ.get("CODEX_HOME") or home_dir() / ".codex").expanduser()
        return existing_dirs([base / "sessions", base / "archived_sessions"])

    def scan(self, limit: int) -> list[Session]:
        """List Codex rollouts with at least one human turn, newest first."""
        sessions: list[Session] = []
        for root in self.get_session_dirs():
            for path in list_files(root, (".jsonl",), recursive=True):
                session = self._summarize(path)
                if session is not None:
                    sessions.append(session)
        return newest_first(sessions, limit)

    def parse(self, path: Path, max_turns: int | None = None) -> ParsedSession | None:
        """Decode one rollout into ordered turns."""
        path = Path(path)
        stats = safe_stat(path)
        if stats is None:
            return None
        state = _RolloutState()
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
        """Count one rollout's turns without keeping them."""
        stats = safe_stat(path)
        if stats is None or stats.st_size < MIN_SESSION_BYTES:
            return None
        state = _RolloutState()
        tally = TurnTally()
        for turn in _iter_turns(path, state):
            tally.add(turn)
        if tally.human == 0:
            return None
        return Session(**self._fields(path, stats, state, tally))

    def _fields(
        self, path: Path, stats: os.stat_result, state: _RolloutState, tally: TurnTally
    ) -> dict[str, Any]:
        """Build the shared ``Session`` fields for a decoded rollout."""
        project = Path(state.cwd.rstrip("/")).name if state.cwd else ""
        project = project or path.parent.name
        return session_fields(
            session_id=state.session_id or path.stem,
            source=self.source_type,
            project=project,
            project_path=state.cwd,
            project_description=extract_project_description(state.cwd),
            path=path,
            size_bytes=stats.st_size,
            modified_at=mtime_of(stats),
            tally=tally,
            fallback_title=f"Codex session in {project}",
        )
