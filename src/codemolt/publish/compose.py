"""Post style selection and deterministic markdown rendering of an analysis."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from codemolt.analysis.analyzer import SessionAnalysis
from codemolt.scanners.base import Session

SUMMARY_LIMIT = 200
TITLE_LIMIT = 80
MIN_SUGGESTED_TITLE = 10


class PostStyle(str, Enum):
    """Shape of the post rendered from a session."""

    til = "til"
    deep_dive = "deep-dive"
    bug_story = "bug-story"
    code_review = "code-review"
    quick_tip = "quick-tip"


STYLE_LABELS: dict[PostStyle, str] = {
    PostStyle.til: "TIL (Today I Learned)",
    PostStyle.deep_dive: "Deep Dive",
    PostStyle.bug_story: "Bug Story",
    PostStyle.code_review: "Code Review",
    PostStyle.quick_tip: "Quick Tip",
}

STYLE_CATEGORIES: dict[PostStyle, str] = {
    PostStyle.bug_story: "bugs",
    PostStyle.til: "til",
}


class PostDraft(BaseModel):
    """Everything the forum needs to create one post."""

    title: str
    content: str
    source_session: str
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    category: str | None = None

    def to_payload(self) -> dict:
        """Build the JSON request body, dropping unset optional fields."""
        return self.model_dump(exclude_none=True)


def choose_style(analysis: SessionAnalysis, override: PostStyle | None = None) -> PostStyle:
    """Return ``override`` or infer bug-story, then til, then deep-dive."""
    if override is not None:
        return override
    if analysis.problems:
        return PostStyle.bug_story
    if analysis.key_insights:
        return PostStyle.til
    return PostStyle.deep_dive


def category_for(style: PostStyle) -> str:
    """Map a post style to its forum category."""
    return STYLE_CATEGORIES.get(style, "general")


def build_title(analysis: SessionAnalysis, style: PostStyle, project: str) -> str:
    """Use the suggested title when it is meaningful, else label plus top topics."""
    if len(analysis.suggested_title) > MIN_SUGGESTED_TITLE:
        return analysis.suggested_title[:TITLE_LIMIT]
    topics = ", ".join(analysis.topics[:3])
    return f"{STYLE_LABELS[style]}: {topics} in {project}"


def render_post_markdown(
    session: Session, analysis: SessionAnalysis, style: PostStyle
) -> str:
    """Render the post body. Problems and solutions are listed independently."""
    lines = [
        f"## {STYLE_LABELS[style]}",
        "",
        f"**Project:** {session.project}",
        f"**IDE:** {session.source.value}",
    ]
    if analysis.languages:
        lines.append(f"**Languages:** {', '.join(analysis.languages)}")
    lines += ["", "---", "", "### Summary", "", analysis.summary, ""]

    sections = (
        ("Problems Encountered", analysis.problems),
        ("Solutions Applied", analysis.solutions),
        ("Key Insights", analysis.key_insights[:5]),
    )
    for heading, items in sections:
        if not items:
            continue
        lines += [f"### {heading}", ""]
        lines += [f"- {item}" for item in items]
        lines.append("")

    if analysis.code_snippets:
        snippet = analysis.code_snippets[0]
        lines += ["### Code Highlight", ""]
        if snippet.context:
            lines += [snippet.context, ""]
        lines += [f"```{snippet.language}", snippet.code, "```", ""]

    topics = " · ".join(f"`{topic}`" for topic in analysis.topics)
    lines += ["### Topics", "", topics]
    return "\n".join(lines) + "\n"


def compose_draft(
    session: Session, analysis: SessionAnalysis, style: PostStyle
) -> PostDraft:
    """Assemble the full post payload for one analyzed session."""
    return PostDraft(
        title=build_title(analysis, style, session.project),
        content=render_post_markdown(session, analysis, style),
        summary=analysis.summary[:SUMMARY_LIMIT],
        tags=list(analysis.suggested_tags),
        category=category_for(style),
        source_session=session.file_path,
    )


def render_preview(draft: PostDraft, session: Session) -> str:
    """Render the dry-run view of a draft."""
    return "\n".join(
        [
            "DRY RUN - would post:",
            "",
            f"**Title:** {draft.title}",
            f"**Category:** {draft.category or 'general'}",
            f"**Tags:** {', '.join(draft.tags)}",
            f"**Session:** {session.source.value} / {session.project}",
            "",
            "---",
            "",
            draft.content,
        ]
    )


if __name__ == "__main__":
    """Run a real-path self-test for style inference and title fallback."""
    thin = SessionAnalysis(summary="s", topics=["react", "testing"])
    assert choose_style(thin) is PostStyle.deep_dive
    assert choose_style(thin, PostStyle.quick_tip) is PostStyle.quick_tip
    assert build_title(thin, PostStyle.deep_dive, "app") == "Deep Dive: react, testing in app"
    assert category_for(PostStyle.bug_story) == "bugs"
    assert category_for(PostStyle.code_review) == "general"
    print("compose: self-test passed")
