"""Auto-publish: scan, filter, dedup, analyze, render, then dry-run or post.

One call is one run. Every outcome is an :class:`AutoPublishResult` with a
status; nothing in here raises for an expected condition. The only network
call is the final ``create_post`` and the ledger is touched only after it
succeeds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from codemolt.analysis.analyzer import SessionAnalysis, analyze_session
from codemolt.analysis.vocabulary import DEFAULT_VOCABULARY, Vocabulary
from codemolt.config.logging import logger
from codemolt.config.settings import CandidateThresholds
from codemolt.publish.client import AgentNotActivatedError, CreatedPost, ForumError
from codemolt.publish.compose import (
    PostDraft,
    PostStyle,
    choose_style,
    compose_draft,
    render_preview,
)
from codemolt.publish.ledger import PostedLedger
from codemolt.scanners.base import Session
from codemolt.scanners.registry import ScannerRegistry


class PostClient(Protocol):
    def create_post(self, draft: PostDraft) -> CreatedPost: ...


class AutoPublishStatus(str, Enum):
    """Terminal state of one auto-publish run."""

    posted = "posted"
    dry_run = "dry_run"
    not_configured = "not_configured"
    no_sessions = "no_sessions"
    no_candidates = "no_candidates"
    already_posted = "already_posted"
    unparsable = "unparsable"
    too_thin = "too_thin"
    post_failed = "post_failed"


SUCCESS_STATUSES = frozenset({AutoPublishStatus.posted, AutoPublishStatus.dry_run})


@dataclass(frozen=True)
class AutoPublishOptions:
    """Caller choices for one run."""

    source: str | None = None
    style: PostStyle | None = None
    dry_run: bool = False
    scan_limit: int = 30
    thresholds: CandidateThresholds = field(default_factory=CandidateThresholds)


@dataclass(frozen=True)
class AutoPublishResult:
    """What happened, plus whatever was produced before the run stopped."""

    status: AutoPublishStatus
    message: str
    session: Session | None = None
    analysis: SessionAnalysis | None = None
    draft: PostDraft | None = None
    preview: str | None = None
    post_url: str | None = None
    activate_url: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in SUCCESS_STATUSES


def is_candidate(session: Session, thresholds: CandidateThresholds) -> bool:
    """Return whether a session has enough substance to write about."""
    return (
        session.message_count >= thresholds.min_messages
        and session.human_messages >= thresholds.min_human_messages
        and session.size_bytes > thresholds.min_size_bytes
    )


def auto_publish(
    registry: ScannerRegistry,
    *,
    ledger: PostedLedger,
    client: PostClient | None = None,
    options: AutoPublishOptions | None = None,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> AutoPublishResult:
    """Run the full pipeline once and report the outcome.

    ``client`` may be ``None`` for a dry run; a real run without one stops
    with ``not_configured`` before scanning.
    """
    options = options or AutoPublishOptions()
    if client is None and not options.dry_run:
        return AutoPublishResult(
            AutoPublishStatus.not_configured,
            "No API key configured. Set CODEMOLT_API_KEY or [forum] api_key in config.toml.",
        )

    sessions = registry.scan_all(options.scan_limit, options.source)
    if not sessions:
        return AutoPublishResult(
            AutoPublishStatus.no_sessions,
            "No coding sessions found. Use an AI coding tool (Claude Code, Cursor, ...) first.",
        )

    thresholds = options.thresholds
    candidates = [session for session in sessions if is_candidate(session, thresholds)]
    logger.debug("{} of {} sessions pass the candidate filter", len(candidates), len(sessions))
    if not candidates:
        return AutoPublishResult(
            AutoPublishStatus.no_candidates,
            "No sessions with enough content to post about. Need at least "
            f"{thresholds.min_messages} messages and {thresholds.min_human_messages} human messages.",
        )

    posted_ids = ledger.load()
    unposted = [session for session in candidates if session.id not in posted_ids]
    if not unposted:
        return AutoPublishResult(
            AutoPublishStatus.already_posted,
            "All recent sessions have already been posted about. Come back after more coding sessions.",
        )

    best = unposted[0]
    parsed = registry.parse_session(best.file_path, best.source.value)
    if parsed is None or not parsed.turns:
        return AutoPublishResult(
            AutoPublishStatus.unparsable,
            f"Could not parse session: {best.file_path}",
            session=best,
        )

    analysis = analyze_session(parsed, vocabulary)
    if analysis.too_thin:
        return AutoPublishResult(
            AutoPublishStatus.too_thin,
            "Session doesn't contain enough technical content to post. Try a different session.",
            session=best,
            analysis=analysis,
        )

    style = choose_style(analysis, options.style)
    draft = compose_draft(best, analysis, style)
    preview = render_preview(draft, best)

    if options.dry_run or client is None:
        return AutoPublishResult(
            AutoPublishStatus.dry_run,
            f"Dry run: would post {draft.title!r}",
            session=best,
            analysis=analysis,
            draft=draft,
            preview=preview,
        )

    try:
        created = client.create_post(draft)
    except AgentNotActivatedError as exc:
        logger.warning("Post rejected: agent not activated")
        return AutoPublishResult(
            AutoPublishStatus.post_failed,
            str(exc),
            session=best,
            analysis=analysis,
            draft=draft,
            activate_url=exc.activate_url,
        )
    except ForumError as exc:
        logger.warning("Posting session {} failed: {}", best.id, exc)
        return AutoPublishResult(
            AutoPublishStatus.post_failed,
            str(exc),
            session=best,
            analysis=analysis,
            draft=draft,
        )

    try:
        ledger.record(best.id)
    except OSError as exc:
        logger.warning(
            "Post {} created but session {} was not recorded in {}: {}",
            created.id,
            best.id,
            ledger.path,
            exc,
        )

    return AutoPublishResult(
        AutoPublishStatus.posted,
        f"Posted {draft.title!r}: {created.url}",
        session=best,
        analysis=analysis,
        draft=draft,
        preview=preview,
        post_url=created.url,
    )
