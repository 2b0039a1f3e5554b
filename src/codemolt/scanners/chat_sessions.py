"""Decoder for JSON session-list documents written by VS Code based editors.

Both Cursor and VS Code Copilot keep chats under
``workspaceStorage/<hash>/chatSessions/<id>.json`` as
``{"sessionId": ..., "requests": [{"message": ..., "response": ...}]}``.
The editors disagree on the shape of ``message`` and of response items,
so the text extractors are passed in by each scanner.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator

from codemolt.scanners.base import ConversationTurn, Role
from codemolt.scanners.common import safe_read_json


def message_as_text(message: Any) -> str:
    """Return a string message as-is, anything else JSON-encoded."""
    if isinstance(message, str):
        return message
    return json.dumps(message, ensure_ascii=False)


def response_as_text(response: Any) -> str:
    """Concatenate a string response or a list of strings / ``{"text"}`` chunks."""
    if isinstance(response, str):
        return response
    if not isinstance(response, list):
        return ""
    chunks: list[str] = []
    for item in response:
        if isinstance(item, str):
            chunks.append(item)
        elif isinstance(item, dict):
            chunks.append(str(item.get("text") or ""))
    return "".join(chunks)


@dataclass(frozen=True)
class ChatFormat:
    """Text extractors for one editor's request objects."""

    message_text: Callable[[Any], str] = message_as_text
    response_text: Callable[[Any], str] = response_as_text


@dataclass(frozen=True)
class ChatDocument:
    """A decoded chat session document."""

    session_id: str | None
    requests: list[Any]


def load_chat_document(path: Path) -> ChatDocument | None:
    """Read a chat session JSON file; ``None`` unless it has a request list."""
    data = safe_read_json(path)
    if not isinstance(data, dict) or not isinstance(data.get("requests"), list):
        return None
    session_id = data.get("sessionId")
    return ChatDocument(
        session_id=str(session_id) if session_id else None,
        requests=data["requests"],
    )


def iter_request_turns(
    requests: list[Any], chat_format: ChatFormat = ChatFormat()
) -> Iterator[ConversationTurn]:
    """Yield one human turn per request and one assistant turn per non-empty response."""
    for request in requests:
        if not isinstance(request, dict):
            continue
        message = request.get("message")
        if message:
            text = chat_format.message_text(message).strip()
            if text:
                yield ConversationTurn(role=Role.human, content=text)
        response = request.get("response")
        if response:
            answer = chat_format.response_text(response).strip()
            if answer:
                yield ConversationTurn(role=Role.assistant, content=answer)
