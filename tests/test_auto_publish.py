"""Auto-publish orchestrator tests over real session files and a fake forum."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from codemolt.config.settings import CandidateThresholds
from codemolt.publish import auto as auto_mod
from codemolt.publish.auto import AutoPublishOptions, AutoPublishStatus, auto_publish
from codemolt.publish.client import AgentNotActivatedError, CreatedPost, ForumError
from codemolt.publish.compose import PostDraft, PostStyle
from codemolt.publish.ledger import PostedLedger
from codemolt.scanners.claude import ClaudeCodeScanner
from codemolt.scanners.registry import ScannerRegistry
from tests.helpers import claude_conversation, set_mtime, write_jsonl

BUG_EXCHANGES = [
    (
        "The pytest suite crashes with a KeyError when I run the Django migrations in CI. "
        "It started after I upgraded the database driver.",
        "The issue was that the fixture loads settings before the database schema exists. "
        "I fixed it by moving the migrate call into a session-scoped fixture:\n\n"
        "```python\n@pytest.fixture(scope=\"session\")\ndef db_setup(django_db_setup):\n"
        "    call_command(\"migrate\")\n```\n\nThis runs migrations once per test session.",
    ),
    (
        "Does that also cover the parallel test runner?",
        "Yes. Each worker gets its own test database, and the session fixture runs once per worker.",
    ),
    (
        "Should I also pin the driver version in requirements?",
        "Pinning the driver keeps CI and local runs on the same behaviour, so yes, pin it "
        "and let the upgrade go through a dedicated pull request.",
    ),
]

CHATTY_EXCHANGES = [
    ("hello there, how are you doing today my friend", "I am doing well, thanks for asking! " * 12),
    ("nice, what should we talk about next then", "Anything you like. " * 12),
]


class FakeClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.posts: list[PostDraft] = []
        self.error = error

    def create_post(self, draft: PostDraft) -> CreatedPost:
        self.posts.append(draft)
        if self.error is not None:
            raise self.error
        return CreatedPost(id=f"p{len(self.posts)}", url=f"https://forum.test/post/p{len(self.posts)}")


def _write_session(root: Path, name: str, exchanges, day: int, session_id: str) -> Path:
    entries = claude_conversation(exchanges, sessionId=session_id)
    path = write_jsonl(root / "-Users-me-shop" / f"{name}.jsonl", entries)
    return set_mtime(path, datetime(2026, 2, day, tzinfo=timezone.utc))


@pytest.fixture
def sessions_root(tmp_path) -> Path:
    root = tmp_path / "claude-projects"
    root.mkdir()
    return root


@pytest.fixture
def registry(sessions_root) -> ScannerRegistry:
    reg = ScannerRegistry()
    reg.register(ClaudeCodeScanner(roots=[sessions_root]))
    return reg


@pytest.fixture
def ledger(tmp_path) -> PostedLedger:
    return PostedLedger(tmp_path / "ledger" / "posted_sessions.json")


def test_dry_run_renders_without_side_effects(registry, sessions_root, ledger, monkeypatch):
    """Dry run returns markdown with Summary and tags; no network, no ledger write."""
    _write_session(sessions_root, "bug", BUG_EXCHANGES, 10, "bug-1")

    def no_network(*args, **kwargs):
        raise AssertionError("network call during dry run")

    monkeypatch.setattr("urllib.request.urlopen", no_network)
    result = auto_publish(registry, ledger=ledger, client=None, options=AutoPublishOptions(dry_run=True))

    assert result.status is AutoPublishStatus.dry_run
    assert result.ok
    assert result.draft is not None and result.preview is not None
    assert "### Summary" in result.draft.content
    for tag in result.draft.tags:
        assert tag in result.preview
    assert "python" in result.draft.tags
    assert result.draft.category == "bugs"
    assert not ledger.path.exists()


def test_publish_records_session_and_never_reselects_it(registry, sessions_root, ledger):
    """After a successful post the same session is never picked again."""
    _write_session(sessions_root, "bug", BUG_EXCHANGES, 10, "bug-1")
    client = FakeClient()

    first = auto_publish(registry, ledger=ledger, client=client)
    assert first.status is AutoPublishStatus.posted
    assert first.post_url == "https://forum.test/post/p1"
    assert json.loads(ledger.path.read_text()) == ["bug-1"]
    assert client.posts[0].source_session.endswith("bug.jsonl")

    for limit in (1, 5, 30):
        again = auto_publish(
            registry, ledger=ledger, client=client, options=AutoPublishOptions(scan_limit=limit)
        )
        assert again.status is AutoPublishStatus.already_posted
    assert len(client.posts) == 1


def test_newest_unposted_candidate_is_selected(registry, sessions_root, ledger):
    _write_session(sessions_root, "older", BUG_EXCHANGES, 5, "older-1")
    _write_session(sessions_root, "newer", BUG_EXCHANGES, 9, "newer-1")
    ledger.record("newer-1")
    result = auto_publish(registry, ledger=ledger, client=FakeClient())
    assert result.status is AutoPublishStatus.posted
    assert result.session is not None and result.session.id == "older-1"


def test_thin_session_aborts_before_rendering(registry, sessions_root, ledger, monkeypatch):
    """No topics and no languages stops the run before any post is composed."""
    _write_session(sessions_root, "chat", CHATTY_EXCHANGES, 10, "chat-1")

    def must_not_compose(*args, **kwargs):
        raise AssertionError("composed a post for a thin session")

    monkeypatch.setattr(auto_mod, "compose_draft", must_not_compose)
    client = FakeClient()
    result = auto_publish(registry, ledger=ledger, client=client)
    assert result.status is AutoPublishStatus.too_thin
    assert result.draft is None
    assert client.posts == []
    assert not ledger.path.exists()


def test_reported_conditions(registry, sessions_root, ledger):
    client = FakeClient()
    assert auto_publish(registry, ledger=ledger).status is AutoPublishStatus.not_configured
    assert auto_publish(registry, ledger=ledger, client=client).status is AutoPublishStatus.no_sessions

    _write_session(sessions_root, "small", BUG_EXCHANGES[:1], 10, "small-1")
    result = auto_publish(registry, ledger=ledger, client=client)
    assert result.status is AutoPublishStatus.no_candidates

    relaxed = AutoPublishOptions(
        thresholds=CandidateThresholds(min_messages=2, min_human_messages=1, min_size_bytes=0)
    )
    assert auto_publish(registry, ledger=ledger, client=client, options=relaxed).ok


def test_source_filter_excludes_other_tools(registry, sessions_root, ledger):
    _write_session(sessions_root, "bug", BUG_EXCHANGES, 10, "bug-1")
    options = AutoPublishOptions(source="cursor", dry_run=True)
    result = auto_publish(registry, ledger=ledger, options=options)
    assert result.status is AutoPublishStatus.no_sessions


def test_style_override(registry, sessions_root, ledger):
    _write_session(sessions_root, "bug", BUG_EXCHANGES, 10, "bug-1")
    options = AutoPublishOptions(dry_run=True, style=PostStyle.quick_tip)
    result = auto_publish(registry, ledger=ledger, options=options)
    assert result.draft is not None
    assert result.draft.content.startswith("## Quick Tip")
    assert result.draft.category == "general"


@pytest.mark.parametrize(
    "error",
    [ForumError("Error 500: boom", status=500), AgentNotActivatedError("https://forum.test/activate")],
)
def test_post_failure_leaves_ledger_untouched(registry, sessions_root, ledger, error):
    _write_session(sessions_root, "bug", BUG_EXCHANGES, 10, "bug-1")
    result = auto_publish(registry, ledger=ledger, client=FakeClient(error))
    assert result.status is AutoPublishStatus.post_failed
    assert not result.ok
    assert not ledger.path.exists()
    if isinstance(error, AgentNotActivatedError):
        assert result.activate_url == "https://forum.test/activate"


def test_ledger_write_failure_keeps_successful_post(registry, sessions_root, ledger, monkeypatch):
    _write_session(sessions_root, "bug", BUG_EXCHANGES, 10, "bug-1")

    def fail(session_id):
        raise OSError("read-only filesystem")

    monkeypatch.setattr(ledger, "record", fail)
    result = auto_publish(registry, ledger=ledger, client=FakeClient())
    assert result.status is AutoPublishStatus.posted
    assert result.post_url is not None
