"""VS Code Copilot Chat scanner for workspace chat session documents."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from codemolt.scanners.base import (
    ConversationTurn,
    ParsedSession,
    Session,
    SourceType,
    TurnTally,
    append_turn,
    newest_first,
    session_fields,
    tally_turns,
)
from codemolt.scanners.chat_sessions import (
    ChatFormat,
    iter_request_turns,
    load_chat_document,
    message_as_text,
)
from codemolt.scanners.common import (
    MIN_SESSION_BYTES,
    existing_dirs,
    extract_project_description,
    list_dirs,
    list_files,
    mtime_of,
    resolve_project,
    safe_stat,
    vscode_user_dir,
)

_EDITIONS = ("Code", "Code - Insiders")


def _copilot_message(message: Any) -> str:
    """Copilot wraps the prompt as ``{"text": ..., "parts": [...]}``."""
    if isinstance(message, dict) and isinstance(message.get("text"), str):
        return message["text"]
    return message_as_text(message)


def _copilot_response(response: Any) -> str:
    """Concatenate markdown chunks; Copilot stores them under ``value``."""
    if isinstance(response, str):
        return response
    if not isinstance(response, list):
        return ""
    chunks: list[str] = []
    for item in response:
        if isinstance(item, str):
            chunks.append(item)
        elif isinstance(item, dict):
            value = item.get("value", item.get("text"))
            if isinstance(value, str):
                chunks.append(value)
    return "".join(chunks)


COPILOT_FORMAT = ChatFormat(
    message_text=_copilot_message, response_text=_copilot_response
)


class CopilotScanner:
    """Discover and decode VS Code Copilot chat sessions."""

    name = "VS Code Copilot"
    source_type = SourceType.vscode_copilot
    description = "GitHub Copilot Chat in VS Code (workspaceStorage chat sessions)"

    def __init__(self, roots: list[Path] | None = None) -> None:
        self._roots = roots

    def get_session_dirs(self) -> list[Path]:
        """Return existing workspaceStorage roots of installed VS Code editions."""
        if self._roots is not None:
            return existing_dirs(self._roots)
        return existing_dirs(
            [vscode_user_dir(edition) / "workspaceStorage" for edition in _EDITIONS]
        )

    def scan(self, limit: int) -> list[Session]:
        """List chat sessions with at least one prompt, newest first."""
        sessions: list[Session] = []
        for root in self.get_session_dirs():
            for workspace_dir in list_dirs(root):
                files = list_files(workspace_dir / "chatSessions", (".json",))
                if not files:
                    continue
                project = self._project(workspace_dir)
                for path in files:
                    session = self._summarize(path, project)
                    if session is not None:
                        sessions.append(session)
        return newest_first(sessions, limit)

    def parse(self, path: Path, max_turns: int | None = None) -> ParsedSession | None:
        """Decode one chat session document."""
        path = Path(path)
        stats = safe_stat(path)
        document = load_chat_document(path) if stats is not None else None
        if document is None:
            return None
        turns: list[ConversationTurn] = []
        for turn in iter_request_turns(document.requests, COPILOT_FORMAT):
            if not append_turn(turns, turn, max_turns):
                break
        if not turns:
            return None
        fields = self._fields(
            path,
            stats,
            document.session_id,
            tally_turns(turns),
            self._project(path.parent.parent),
        )
        return ParsedSession(**fields, turns=tuple(turns))

    def _project(self, workspace_dir: Path) -> tuple[str, str | None, str | None]:
        """Resolve ``(name, path, description)`` from ``workspace.json``."""
        project, project_path = resolve_project(workspace_dir)
        return project, project_path, extract_project_description(project_path)

    def _summarize(
        self, path: Path, project: tuple[str, str | None, str | None]
    ) -> Session | None:
        """Count one document's turns without keeping them."""
        stats = safe_stat(path)
        if stats is None or stats.st_size < MIN_SESSION_BYTES:
            return None
        document = load_chat_document(path)
        if document is None:
            return None
        tally = TurnTally()
        for turn in iter_request_turns(document.requests, COPILOT_FORMAT):
            tally.add(turn)
        if tally.human == 0:
            return None
        return Session(**self._fields(path, stats, document.session_id, tally, project))

    def _fields(
        self,
        path: Path,
        stats: os.stat_result,
        session_id: str | None,
        tally: TurnTally,
        project: tuple[str, str | None, str | None],
    ) -> dict[str, Any]:
        """Build the shared ``Session`` fields for a decoded document."""
        name, project_path, description = project
        return session_fields(
            session_id=session_id or path.stem,
            source=self.source_type,
            project=name,
            project_path=project_path,
            project_description=description,
            path=path,
            size_bytes=stats.st_size,
            modified_at=mtime_of(stats),
            tally=tally,
            fallback_title=f"Copilot chat in {name}",
        )
