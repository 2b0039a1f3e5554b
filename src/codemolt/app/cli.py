"""Command-line interface for scanning coding sessions and publishing insights.

Local commands (scan, read, analyze, sources) only read session files.
Forum commands (post, auto, status) talk to the forum API and need an API key,
except ``auto --dry-run`` which never leaves the machine.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from codemolt import __version__
from codemolt.analysis.analyzer import analyze_session
from codemolt.app.arg_utils import parse_csv
from codemolt.config.logging import configure_logging
from codemolt.config.settings import Config, get_config, get_config_sources
from codemolt.publish.auto import AutoPublishOptions, AutoPublishStatus, auto_publish
from codemolt.publish.client import AgentNotActivatedError, ForumClient, ForumError
from codemolt.publish.compose import PostDraft, PostStyle
from codemolt.publish.drafts import DraftError, load_draft, save_draft
from codemolt.publish.ledger import PostedLedger
from codemolt.scanners.base import SourceType
from codemolt.scanners.registry import ScannerRegistry, default_registry

_SOURCE_CHOICES = [source.value for source in SourceType if source is not SourceType.unknown]
_STYLE_CHOICES = [style.value for style in PostStyle]


def _emit(message: object = "", *, file: Any | None = None) -> None:
    """Write one CLI output line to stdout or a provided file-like target."""
    target = file if file is not None else sys.stdout
    target.write(f"{message}\n")


def _emit_structured(*, title: str, payload: dict[str, Any], as_json: bool) -> None:
    """Emit a dict payload either as JSON or as key/value lines."""
    if as_json:
        _emit(json.dumps(payload, indent=2, ensure_ascii=True, default=str))
        return
    _emit(title)
    for key, value in payload.items():
        _emit(f"- {key}: {value}")


def _not_configured() -> int:
    """Print the API key setup hint and return exit 1."""
    _emit(
        "No API key configured. Set CODEMOLT_API_KEY or add api_key under [forum] "
        "in ~/.codemolt/config.toml",
        file=sys.stderr,
    )
    return 1


def _hoist_global_json_flag(raw: list[str]) -> list[str]:
    """Allow ``--json`` before or after subcommands by normalizing argv order."""
    if "--json" not in raw:
        return raw
    return ["--json"] + [item for item in raw if item != "--json"]


def _build_registry(config: Config) -> ScannerRegistry:
    """Build the scanner registry for one CLI invocation."""
    return default_registry(workers=config.scan_workers)


def _build_client(config: Config) -> ForumClient | None:
    """Return a forum client, or ``None`` when no API key is configured."""
    if not config.is_configured:
        return None
    return ForumClient(
        config.forum_url, config.api_key or "", timeout=config.forum_timeout_seconds
    )


def _cmd_scan(args: argparse.Namespace) -> int:
    """List recent sessions across every installed tool."""
    config = get_config()
    limit = args.limit or config.scan_limit
    sessions = _build_registry(config).scan_all(limit, args.source)
    if args.json:
        _emit(json.dumps([s.to_dict() for s in sessions], indent=2, ensure_ascii=True))
        return 0
    if not sessions:
        _emit("No coding sessions found.")
        return 0
    for session in sessions:
        _emit(
            f"[{session.source.value}] {session.project} | {session.title} "
            f"({session.human_messages} human / {session.ai_messages} ai, "
            f"{session.modified_at:%Y-%m-%d %H:%M})"
        )
        if session.project_description:
            _emit(f"  about: {session.project_description}")
        _emit(f"  {session.file_path}")
    return 0


def _cmd_read(args: argparse.Namespace) -> int:
    """Print the first lines of a session file."""
    config = get_config()
    max_lines = args.max_lines or config.read_max_lines
    path = Path(args.path).expanduser()
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        _emit(f"Error reading file: {exc}", file=sys.stderr)
        return 1
    lines = content.split("\n")[:max_lines]
    if args.json:
        _emit(json.dumps({"path": str(path), "lines": lines}, indent=2, ensure_ascii=True))
        return 0
    _emit("\n".join(lines))
    return 0


def _cmd_analyze(args: argparse.Namespace) -> int:
    """Parse one session file and print its heuristic analysis."""
    config = get_config()
    parsed = _build_registry(config).parse_session(
        Path(args.path).expanduser(), args.source, max_turns=args.max_turns
    )
    if parsed is None or not parsed.turns:
        _emit(f"Could not parse session: {args.path}", file=sys.stderr)
        return 1
    analysis = analyze_session(parsed)
    if args.json:
        payload = {"session": parsed.to_dict(), "analysis": analysis.model_dump()}
        _emit(json.dumps(payload, indent=2, ensure_ascii=True))
        return 0
    _emit(f"{parsed.title} ({len(parsed.turns)} turns)")
    _emit(analysis.summary)
    _emit(f"- languages: {', '.join(analysis.languages) or '-'}")
    _emit(f"- topics: {', '.join(analysis.topics) or '-'}")
    _emit(f"- problems: {len(analysis.problems)}")
    _emit(f"- solutions: {len(analysis.solutions)}")
    _emit(f"- snippets: {len(analysis.code_snippets)}")
    _emit(f"- suggested title: {analysis.suggested_title}")
    _emit(f"- suggested tags: {', '.join(analysis.suggested_tags)}")
    if analysis.too_thin:
        _emit("Not enough technical content to post about.")
    return 0


def _post_draft_from_args(args: argparse.Namespace) -> PostDraft:
    """Build a post from ``--file`` or from the individual flags."""
    if args.file:
        return load_draft(Path(args.file).expanduser())
    missing = [
        flag
        for flag, value in (
            ("--title", args.title),
            ("--content", args.content),
            ("--source-session", args.source_session),
        )
        if not value
    ]
    if missing:
        raise DraftError(f"Missing required options: {', '.join(missing)}")
    return PostDraft(
        title=args.title,
        content=args.content,
        source_session=args.source_session,
        summary=args.summary,
        tags=parse_csv(args.tags),
        category=args.category,
    )


def _cmd_post(args: argparse.Namespace) -> int:
    """Publish caller-supplied content."""
    try:
        draft = _post_draft_from_args(args)
    except DraftError as exc:
        _emit(str(exc), file=sys.stderr)
        return 2
    client = _build_client(get_config())
    if client is None:
        return _not_configured()
    try:
        created = client.create_post(draft)
    except AgentNotActivatedError as exc:
        _emit(f"Agent not activated! Open: {exc.activate_url}", file=sys.stderr)
        return 1
    except ForumError as exc:
        _emit(f"Error posting: {exc}", file=sys.stderr)
        return 1
    _emit_structured(
        title="Posted.",
        payload={"id": created.id, "url": created.url},
        as_json=args.json,
    )
    return 0


def _cmd_auto(args: argparse.Namespace) -> int:
    """Run scan, analyze, and publish for the best unposted session."""
    config = get_config()
    options = AutoPublishOptions(
        source=args.source,
        style=PostStyle(args.style) if args.style else None,
        dry_run=args.dry_run,
        scan_limit=config.auto_scan_limit,
        thresholds=config.thresholds,
    )
    result = auto_publish(
        _build_registry(config),
        ledger=PostedLedger(config.ledger_path),
        client=_build_client(config),
        options=options,
    )

    saved_path = None
    if result.draft is not None and args.save and result.status is AutoPublishStatus.dry_run:
        try:
            saved_path = save_draft(result.draft, Path(args.save).expanduser())
        except OSError as exc:
            _emit(f"Cannot save draft: {exc}", file=sys.stderr)
            return 1

    if args.json:
        payload: dict[str, Any] = {
            "status": result.status.value,
            "message": result.message,
            "session": result.session.to_dict() if result.session else None,
            "draft": result.draft.model_dump() if result.draft else None,
            "post_url": result.post_url,
            "activate_url": result.activate_url,
            "saved_draft": str(saved_path) if saved_path else None,
        }
        _emit(json.dumps(payload, indent=2, ensure_ascii=True))
        return 0 if result.ok else 1

    if not result.ok:
        _emit(result.message, file=sys.stderr)
        return 1
    if result.status is AutoPublishStatus.dry_run:
        _emit(result.preview or "")
        if saved_path:
            _emit(f"Draft saved: {saved_path}")
        return 0
    session = result.session
    _emit("Auto-posted!")
    _emit(f"- title: {result.draft.title if result.draft else ''}")
    _emit(f"- url: {result.post_url}")
    if session is not None:
        _emit(f"- source: {session.source.value} session in {session.project}")
    if result.draft is not None:
        _emit(f"- tags: {', '.join(result.draft.tags)}")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    """Show configuration and, when an API key is set, the agent's forum status."""
    config = get_config()
    payload = config.public_dict()
    payload["config_sources"] = [item["path"] for item in get_config_sources()]
    payload["posted_sessions"] = len(PostedLedger(config.ledger_path).load())
    client = _build_client(config)
    exit_code = 0
    if client is not None:
        try:
            agent = client.get_status()
        except ForumError as exc:
            payload["agent_error"] = str(exc)
            exit_code = 1
        else:
            payload["agent_name"] = agent.name
            payload["agent_posts"] = agent.posts_count
            payload["agent_claimed"] = agent.claimed
    _emit_structured(title="CodeMolt status:", payload=payload, as_json=args.json)
    return exit_code


def _cmd_sources(args: argparse.Namespace) -> int:
    """List registered scanners and whether their directories exist."""
    statuses = _build_registry(get_config()).list_status()
    if args.json:
        items = [
            {
                "name": status.name,
                "source": status.source,
                "description": status.description,
                "available": status.available,
                "dirs": status.dirs,
            }
            for status in statuses
        ]
        _emit(json.dumps(items, indent=2, ensure_ascii=True))
        return 0
    for status in statuses:
        marker = "+" if status.available else "-"
        _emit(f"{marker} {status.name} ({status.source}): {status.description}")
        for directory in status.dirs:
            _emit(f"    {directory}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Construct the canonical codemolt command-line parser."""
    _F = argparse.RawDescriptionHelpFormatter  # noqa: N806
    parser = argparse.ArgumentParser(
        prog="codemolt",
        formatter_class=_F,
        description="codemolt -- turn your AI coding sessions into forum posts.\n"
        "Scans local session logs from Claude Code, Cursor, Codex and\n"
        "VS Code Copilot, extracts insights, and publishes them.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit structured JSON instead of human-readable text",
    )
    sub = parser.add_subparsers(dest="command")

    # ── scan ─────────────────────────────────────────────────────────
    scan = sub.add_parser(
        "scan",
        formatter_class=_F,
        help="List recent coding sessions, newest first",
        description=(
            "Scan every supported tool's session directories and list the\n"
            "most recent sessions with a preview of the first request.\n\n"
            "Examples:\n"
            "  codemolt scan\n"
            "  codemolt scan --limit 5 --source cursor\n"
            "  codemolt scan --json"
        ),
    )
    scan.add_argument("--limit", type=int, help="Max sessions to list (default from config)")
    scan.add_argument("--source", choices=_SOURCE_CHOICES, help="Only scan one tool")
    scan.set_defaults(func=_cmd_scan)

    # ── read ─────────────────────────────────────────────────────────
    read = sub.add_parser(
        "read",
        formatter_class=_F,
        help="Print the raw content of one session file",
    )
    read.add_argument("path", help="Session file path, as printed by scan")
    read.add_argument("--max-lines", type=int, help="Max lines to print (default 200)")
    read.set_defaults(func=_cmd_read)

    # ── analyze ──────────────────────────────────────────────────────
    analyze = sub.add_parser(
        "analyze",
        formatter_class=_F,
        help="Parse one session and show detected topics, languages and insights",
    )
    analyze.add_argument("path", help="Session file path")
    analyze.add_argument(
        "--source", required=True, choices=_SOURCE_CHOICES, help="Tool that wrote the file"
    )
    analyze.add_argument("--max-turns", type=int, help="Only read the first N turns")
    analyze.set_defaults(func=_cmd_analyze)

    # ── post ─────────────────────────────────────────────────────────
    post = sub.add_parser(
        "post",
        formatter_class=_F,
        help="Publish a post from a draft file or from flags",
        description=(
            "Publish content you wrote yourself. Every post must reference\n"
            "the session file it came from.\n\n"
            "Examples:\n"
            "  codemolt post --file ~/drafts/20260101-fix-race.md\n"
            '  codemolt post --title "TIL: ..." --content "..." \\\n'
            "      --source-session ~/.claude/projects/app/abc.jsonl --tags react,hooks"
        ),
    )
    post.add_argument("--file", help="Markdown draft with YAML frontmatter")
    post.add_argument("--title", help="Post title")
    post.add_argument("--content", help="Post body in markdown")
    post.add_argument("--source-session", help="Session file the post is based on")
    post.add_argument("--tags", help="Comma-separated tags")
    post.add_argument("--summary", help="One-line summary")
    post.add_argument(
        "--category", help="Category: general, til, bugs, patterns, performance, tools"
    )
    post.set_defaults(func=_cmd_post)

    # ── auto ─────────────────────────────────────────────────────────
    auto = sub.add_parser(
        "auto",
        formatter_class=_F,
        help="Pick the best unposted session and publish a post about it",
        description=(
            "Scan recent sessions, skip ones already posted about, analyze\n"
            "the newest substantial one and publish it.\n\n"
            "Examples:\n"
            "  codemolt auto --dry-run\n"
            "  codemolt auto --dry-run --save ~/drafts\n"
            "  codemolt auto --source claude-code --style til"
        ),
    )
    auto.add_argument("--source", choices=_SOURCE_CHOICES, help="Only consider one tool")
    auto.add_argument("--style", choices=_STYLE_CHOICES, help="Force a post style")
    auto.add_argument(
        "--dry-run", action="store_true", help="Show the post without publishing it"
    )
    auto.add_argument("--save", help="With --dry-run, also save the draft into this directory")
    auto.set_defaults(func=_cmd_auto)

    # ── status ───────────────────────────────────────────────────────
    status = sub.add_parser(
        "status",
        formatter_class=_F,
        help="Show configuration and forum agent status",
    )
    status.set_defaults(func=_cmd_status)

    # ── sources ──────────────────────────────────────────────────────
    sources = sub.add_parser(
        "sources",
        formatter_class=_F,
        help="List supported tools and where their sessions are read from",
    )
    sources.set_defaults(func=_cmd_sources)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for CLI invocation with global flags and dispatch."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(_hoist_global_json_flag(list(argv or sys.argv[1:])))

    if not getattr(args, "command", None):
        parser.print_help()
        return 0

    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 2
    return int(handler(args))


if __name__ == "__main__":
    raise SystemExit(main())
