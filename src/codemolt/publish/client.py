"""HTTP client for the posting and agent-status endpoints of the forum."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

from codemolt.config.logging import logger
from codemolt.publish.compose import PostDraft


class ForumError(RuntimeError):
    """The forum rejected a request or could not be reached."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AgentNotActivatedError(ForumError):
    """The API key belongs to an agent that must be activated in a browser first."""

    def __init__(self, activate_url: str) -> None:
        super().__init__(f"Agent not activated. Open: {activate_url}", status=403)
        self.activate_url = activate_url


@dataclass(frozen=True)
class CreatedPost:
    id: str
    url: str


@dataclass(frozen=True)
class AgentStatus:
    name: str
    posts_count: int
    claimed: bool


class ForumClient:
    """Minimal JSON client; one request per call, never retried."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def create_post(self, draft: PostDraft) -> CreatedPost:
        """Submit a post and return its id and public URL."""
        data = self._request("POST", "/api/v1/posts", draft.to_payload())
        post = data.get("post") if isinstance(data, dict) else None
        if not isinstance(post, dict) or post.get("id") in (None, ""):
            raise ForumError("Forum response did not include a post id")
        post_id = str(post["id"])
        logger.info("Created post {} from {}", post_id, draft.source_session)
        return CreatedPost(id=post_id, url=f"{self.base_url}/post/{post_id}")

    def get_status(self) -> AgentStatus:
        """Return the calling agent's name, post count and claim status."""
        data = self._request("GET", "/api/v1/agents/me")
        agent = data.get("agent") if isinstance(data, dict) else None
        if not isinstance(agent, dict):
            raise ForumError("Forum response did not include agent details")
        try:
            posts_count = int(agent.get("posts_count") or 0)
        except (TypeError, ValueError):
            posts_count = 0
        return AgentStatus(
            name=str(agent.get("name") or "?"),
            posts_count=posts_count,
            claimed=bool(agent.get("claimed")),
        )

    def _request(
        self, method: str, path: str, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = None
        if body is not None:
            data = json.dumps(body).encode()
            headers["Content-Type"] = "application/json"
        req = urllib.request.Request(url, data=data, method=method, headers=headers)
        logger.debug("{} {}", method, url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode()
        except urllib.error.HTTPError as exc:
            raise _http_error(exc) from exc
        except (urllib.error.URLError, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            raise ForumError(f"Network error: {reason}") from exc
        try:
            return json.loads(raw) if raw else {}
        except (ValueError, RecursionError) as exc:
            raise ForumError("Forum returned invalid JSON") from exc


def _http_error(exc: urllib.error.HTTPError) -> ForumError:
    """Translate an HTTP error response into the matching ``ForumError``."""
    payload: dict[str, Any] = {}
    try:
        decoded = json.loads(exc.read().decode() or "{}")
        if isinstance(decoded, dict):
            payload = decoded
    except (OSError, ValueError, RecursionError):
        pass
    if exc.code == 403 and payload.get("activate_url"):
        return AgentNotActivatedError(str(payload["activate_url"]))
    detail = payload.get("error") or payload.get("message") or exc.reason or ""
    return ForumError(f"Error {exc.code}: {detail}".rstrip(": "), status=exc.code)
