"""Unified session model and the scanner capability contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Protocol


class SourceType(str, Enum):
    """Stable tag of the coding tool a session came from."""

    claude_code = "claude-code"
    cursor = "cursor"
    windsurf = "windsurf"
    codex = "codex"
    warp = "warp"
    vscode_copilot = "vscode-copilot"
    aider = "aider"
    continue_dev = "continue"
    zed = "zed"
    unknown = "unknown"


class Role(str, Enum):
    """Speaker of one conversation turn."""

    human = "human"
    assistant = "assistant"
    system = "system"
    tool = "tool"


@dataclass(frozen=True)
class ConversationTurn:
    """One message of a session, in recorded order."""

    role: Role
    content: str
    timestamp: datetime | None = None
    tool_name: str | None = None


@dataclass(frozen=True)
class Session:
    """Discovery-time summary of one session file."""

    id: str
    source: SourceType
    project: str
    title: str
    message_count: int
    human_messages: int
    ai_messages: int
    preview: str
    file_path: str
    modified_at: datetime
    size_bytes: int
    project_path: str | None = None
    project_description: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly dict for CLI output."""
        return {
            "id": self.id,
            "source": self.source.value,
            "project": self.project,
            "project_path": self.project_path,
            "project_description": self.project_description,
            "title": self.title,
            "message_count": self.message_count,
            "human_messages": self.human_messages,
            "ai_messages": self.ai_messages,
            "preview": self.preview,
            "file_path": self.file_path,
            "modified_at": self.modified_at.isoformat(),
            "size_bytes": self.size_bytes,
        }


@dataclass(frozen=True)
class ParsedSession(Session):
    """A session together with its full ordered conversation."""

    turns: tuple[ConversationTurn, ...] = ()
    started_at: datetime | None = None
    ended_at: datetime | None = None
    skipped_lines: int = 0

    @property
    def human_turns(self) -> list[ConversationTurn]:
        """Return the human turns in order."""
        return [turn for turn in self.turns if turn.role is Role.human]

    @property
    def assistant_turns(self) -> list[ConversationTurn]:
        """Return the assistant turns in order."""
        return [turn for turn in self.turns if turn.role is Role.assistant]


@dataclass
class TurnTally:
    """Running counts of a turn stream, used by scans that never keep the turns."""

    total: int = 0
    human: int = 0
    assistant: int = 0
    first_human: str = ""

    def add(self, turn: ConversationTurn) -> None:
        """Count one turn and remember the first substantive human message."""
        self.total += 1
        if turn.role is Role.human:
            self.human += 1
            if not self.first_human and is_substantive(turn.content):
                self.first_human = turn.content
        elif turn.role is Role.assistant:
            self.assistant += 1


def is_substantive(text: str) -> bool:
    """Return whether a human message reads like a real request.

    Tools inject wrapper messages (``<command-name>``, ``<environment_context>``)
    that should never become a preview or a title.
    """
    stripped = text.strip()
    return bool(stripped) and not stripped.startswith("<")


def append_turn(
    turns: list[ConversationTurn], turn: ConversationTurn, max_turns: int | None
) -> bool:
    """Append ``turn`` unless the cap is reached; return ``False`` once it is."""
    if max_turns is not None and len(turns) >= max_turns:
        return False
    turns.append(turn)
    return True


class Scanner(Protocol):
    """Capability set every per-tool scanner provides."""

    name: str
    source_type: SourceType
    description: str

    def get_session_dirs(self) -> list[Path]:
        """Return existing candidate root directories for this platform."""

    def scan(self, limit: int) -> list[Session]:
        """Return up to ``limit`` sessions, newest first by modification time."""

    def parse(self, path: Path, max_turns: int | None = None) -> ParsedSession | None:
        """Decode one session file, or return ``None`` if it is not understood."""


def newest_first(sessions: list[Session], limit: int) -> list[Session]:
    """Sort sessions by modification time, newest first, and keep ``limit``.

    The sort is stable so equal timestamps keep their discovery order.
    """
    ordered = sorted(sessions, key=lambda session: session.modified_at, reverse=True)
    return ordered[: max(0, limit)]


def session_fields(
    *,
    session_id: str,
    source: SourceType,
    project: str,
    project_path: str | None,
    project_description: str | None,
    path: Path,
    size_bytes: int,
    modified_at: datetime,
    tally: TurnTally,
    fallback_title: str,
) -> dict[str, object]:
    """Assemble the keyword arguments shared by ``Session`` and ``ParsedSession``."""
    first = " ".join(tally.first_human.split())
    return {
        "id": session_id,
        "source": source,
        "project": project,
        "project_path": project_path,
        "project_description": project_description,
        "title": first[:80] or fallback_title,
        "message_count": tally.total,
        "human_messages": tally.human,
        "ai_messages": tally.assistant,
        "preview": first[:200],
        "file_path": str(path),
        "modified_at": modified_at,
        "size_bytes": size_bytes,
    }


def tally_turns(turns: list[ConversationTurn]) -> TurnTally:
    """Count a materialized turn list."""
    tally = TurnTally()
    for turn in turns:
        tally.add(turn)
    return tally
