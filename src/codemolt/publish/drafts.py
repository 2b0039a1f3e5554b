"""Post drafts on disk: markdown body with YAML frontmatter for the metadata."""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timezone
from pathlib import Path

import frontmatter
from pydantic import ValidationError

from codemolt.publish.compose import PostDraft


class DraftError(ValueError):
    """A draft file is missing required metadata or cannot be read."""


def slugify(value: str) -> str:
    """Generate a filesystem-safe ASCII slug from text."""
    raw = (
        unicodedata.normalize("NFKD", str(value or ""))
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", raw.strip().lower()).strip("-")
    return cleaned[:60].strip("-") or "draft"


def draft_filename(title: str, now: datetime | None = None) -> str:
    """Build ``{YYYYMMDD}-{slug}.md`` for a draft title."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    return f"{stamp}-{slugify(title)}.md"


def draft_to_markdown(draft: PostDraft) -> str:
    """Serialize a draft to frontmatter + body markdown."""
    metadata = draft.model_dump(exclude={"content"}, exclude_none=True)
    post = frontmatter.Post(draft.content, **metadata)
    return frontmatter.dumps(post) + "\n"


def save_draft(draft: PostDraft, directory: Path) -> Path:
    """Write ``draft`` into ``directory`` and return the file path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / draft_filename(draft.title)
    path.write_text(draft_to_markdown(draft), encoding="utf-8")
    return path


def load_draft(path: Path) -> PostDraft:
    """Read a draft file back into a :class:`PostDraft`."""
    try:
        post = frontmatter.load(str(path))
    except OSError as exc:
        raise DraftError(f"Cannot read draft {path}: {exc}") from exc
    except Exception as exc:
        raise DraftError(f"Invalid frontmatter in {path}: {exc}") from exc
    metadata = dict(post.metadata)
    missing = [key for key in ("title", "source_session") if not metadata.get(key)]
    if missing:
        raise DraftError(f"Draft {path} is missing: {', '.join(missing)}")
    tags = metadata.get("tags") or []
    if isinstance(tags, str):
        tags = [part.strip() for part in tags.split(",") if part.strip()]
    try:
        return PostDraft(
            title=str(metadata.get("title") or ""),
            content=post.content.strip() + "\n",
            summary=metadata.get("summary"),
            tags=[str(tag) for tag in tags],
            category=metadata.get("category"),
            source_session=str(metadata.get("source_session") or ""),
        )
    except ValidationError as exc:
        raise DraftError(f"Invalid draft {path}: {exc}") from exc
