"""Cursor scanner for agent transcripts and workspace chat sessions.

Cursor keeps conversations in two places:

1. Agent transcripts, plain text with tag-delimited queries:
   ``~/.cursor/projects/<project>/agent-transcripts/*.txt``::

       user:
       <user_query>
       ...
       </user_query>

       A:
       ...

2. Chat sessions, JSON request lists:
   ``<Cursor user dir>/workspaceStorage/<hash>/chatSessions/*.json``
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Iterator

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
from codemolt.scanners.chat_sessions import iter_request_turns, load_chat_document
from codemolt.scanners.common import (
    MIN_SESSION_BYTES,
    existing_dirs,
    extract_project_description,
    home_dir,
    list_dirs,
    list_files,
    mtime_of,
    resolve_project,
    safe_read_text,
    safe_stat,
    vscode_user_dir,
)

_USER_MARKER = re.compile(r"^user:\s*$", re.MULTILINE)
_USER_QUERY = re.compile(r"<user_query>\n?(.*?)\n?</user_query>", re.DOTALL)
_ANSWER_MARKER = re.compile(r"^\s*A:[ \t]*\n?")


def transcript_turns(content: str) -> Iterator[ConversationTurn]:
    """Yield human/assistant turns from an agent transcript.

    The text is split into blocks on ``user:`` lines. Each ``<user_query>``
    span is a human turn and the text after its closing tag, minus a leading
    ``A:`` marker, is the assistant reply.
    """
    for block in _USER_MARKER.split(content):
        if not block.strip():
            continue
        matches = list(_USER_QUERY.finditer(block))
        for index, match in enumerate(matches):
            query = match.group(1).strip()
            if query:
                yield ConversationTurn(role=Role.human, content=query)
            end = matches[index + 1].start() if index + 1 < len(matches) else len(block)
            answer = _ANSWER_MARKER.sub("", block[match.end() : end], count=1).strip()
            if answer:
                yield ConversationTurn(role=Role.assistant, content=answer)


def _decode(path: Path) -> tuple[str | None, Iterator[ConversationTurn]] | None:
    """Return ``(session id, turn stream)`` for a transcript or chat file."""
    if path.suffix == ".txt":
        content = safe_read_text(path)
        if not content:
            return None
        return None, transcript_turns(content)
    if path.suffix == ".json":
        document = load_chat_document(path)
        if document is None:
            return None
        return document.session_id, iter_request_turns(document.requests)
    return None


class CursorScanner:
    """Discover and decode Cursor sessions."""

    name = "Cursor"
    source_type = SourceType.cursor
    description = "Cursor AI IDE sessions (agent transcripts + chat sessions)"

    def __init__(self, roots: list[Path] | None = None) -> None:
        self._roots = roots

    def get_session_dirs(self) -> list[Path]:
        """Return existing transcript and workspaceStorage roots."""
        if self._roots is not None:
            return existing_dirs(self._roots)
        return existing_dirs(
            [
                home_dir() / ".cursor" / "projects",
                vscode_user_dir("Cursor") / "workspaceStorage",
            ]
        )

    def scan(self, limit: int) -> list[Session]:
        """List transcripts and chat sessions with a human turn, newest first."""
        sessions: list[Session] = []
        for root in self.get_session_dirs():
            for project_dir in list_dirs(root):
                files = list_files(project_dir / "agent-transcripts", (".txt",))
                files += list_files(project_dir / "chatSessions", (".json",))
                if not files:
                    continue
                project = self._project(project_dir)
                for path in files:
                    session = self._summarize(path, project)
                    if session is not None:
                        sessions.append(session)
        return newest_first(sessions, limit)

    def parse(self, path: Path, max_turns: int | None = None) -> ParsedSession | None:
        """Decode one transcript (``.txt``) or chat session (``.json``)."""
        path = Path(path)
        stats = safe_stat(path)
        decoded = _decode(path) if stats is not None else None
        if decoded is None:
            return None
        session_id, stream = decoded
        turns: list[ConversationTurn] = []
        for turn in stream:
            if not append_turn(turns, turn, max_turns):
                break
        if not turns:
            return None
        fields = self._fields(
            path, stats, session_id, tally_turns(turns), self._project(path.parent.parent)
        )
        return ParsedSession(**fields, turns=tuple(turns))

    def _project(self, project_dir: Path) -> tuple[str, str | None, str | None]:
        """Resolve ``(name, path, description)`` for a Cursor project directory."""
        project, project_path = resolve_project(project_dir)
        return project, project_path, extract_project_description(project_path)

    def _summarize(
        self, path: Path, project: tuple[str, str | None, str | None]
    ) -> Session | None:
        """Count one file's turns without keeping them."""
        stats = safe_stat(path)
        if stats is None or stats.st_size < MIN_SESSION_BYTES:
            return None
        decoded = _decode(path)
        if decoded is None:
            return None
        session_id, stream = decoded
        tally = TurnTally()
        for turn in stream:
            tally.add(turn)
        if tally.human == 0:
            return None
        return Session(**self._fields(path, stats, session_id, tally, project))

    def _fields(
        self,
        path: Path,
        stats: os.stat_result,
        session_id: str | None,
        tally: TurnTally,
        project: tuple[str, str | None, str | None],
    ) -> dict[str, Any]:
        """Build the shared ``Session`` fields for a decoded file."""
        name, project_path, description = project
        kind = "session" if path.suffix == ".txt" else "chat"
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
            fallback_title=f"Cursor {kind} in {name}",
        )
