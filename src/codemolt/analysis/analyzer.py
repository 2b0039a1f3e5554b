"""Heuristic session analysis: keyword and regex matching over conversation turns.

``analyze_session`` is a pure function of the parsed session and the
vocabulary it is given; it never reads files or calls a model.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from codemolt.analysis.vocabulary import DEFAULT_VOCABULARY, Vocabulary
from codemolt.scanners.base import ConversationTurn, ParsedSession, Role, is_substantive

MAX_INSIGHTS = 5
MAX_SNIPPETS = 5
MAX_PROBLEMS = 5
MAX_SOLUTIONS = 5
MAX_TAGS = 5
MIN_TAGS = 3
TITLE_LIMIT = 80
EXCERPT_LIMIT = 200
INSIGHT_LIMIT = 280
INSIGHT_MIN_CHARS = 80
SNIPPET_MAX_LINES = 40
_FOLLOWS_PROBLEM_BONUS = 500

_FENCE = re.compile(r"```[ \t]*([\w+#.-]*)[^\n]*\n(.*?)```", re.DOTALL)
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+|\n+")


class CodeSnippet(BaseModel):
    """One fenced code block and the line that introduced it."""

    language: str = ""
    code: str
    context: str = ""


class SessionAnalysis(BaseModel):
    """Derived, never-persisted view of what a session was about."""

    summary: str
    topics: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    key_insights: list[str] = Field(default_factory=list)
    code_snippets: list[CodeSnippet] = Field(default_factory=list)
    problems: list[str] = Field(default_factory=list)
    solutions: list[str] = Field(default_factory=list)
    suggested_title: str = ""
    suggested_tags: list[str] = Field(default_factory=list)

    @property
    def too_thin(self) -> bool:
        """No detected topic or language: not worth a post."""
        return not self.topics and not self.languages


def _strip_code(text: str) -> str:
    """Remove fenced code blocks from ``text``."""
    return _FENCE.sub(" ", text).strip()


def shorten(text: str, limit: int) -> str:
    """Collapse whitespace and cut at a word boundary with an ellipsis."""
    collapsed = " ".join(text.split())
    if len(collapsed) <= limit:
        return collapsed
    cut = collapsed[: limit - 3].rsplit(" ", 1)[0] or collapsed[: limit - 3]
    return cut.rstrip(" ,;:") + "..."


def _matching_sentence(text: str, pattern: re.Pattern[str]) -> str | None:
    """Return the first sentence of ``text`` that matches ``pattern``."""
    for sentence in _SENTENCE_BREAK.split(text):
        if sentence.strip() and pattern.search(sentence):
            return shorten(sentence, EXCERPT_LIMIT)
    return None


def _detect(table: dict[str, re.Pattern[str]], text: str) -> list[str]:
    """Return the labels whose pattern occurs in ``text``, in table order."""
    return [label.lower() for label, pattern in table.items() if pattern.search(text)]


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _code_snippets(
    turns: tuple[ConversationTurn, ...], vocabulary: Vocabulary
) -> list[CodeSnippet]:
    """Collect fenced code blocks, assistant turns first, with their lead-in line."""
    ordered = [turn for turn in turns if turn.role is Role.assistant]
    ordered += [turn for turn in turns if turn.role is Role.human]
    snippets: list[CodeSnippet] = []
    for turn in ordered:
        for match in _FENCE.finditer(turn.content):
            code = match.group(2).strip("\n")
            if not code.strip():
                continue
            tag = match.group(1).lower()
            lead_in = [
                line.strip()
                for line in turn.content[: match.start()].splitlines()
                if line.strip()
            ]
            snippets.append(
                CodeSnippet(
                    language=vocabulary.fence_languages.get(tag, tag),
                    code="\n".join(code.splitlines()[:SNIPPET_MAX_LINES]),
                    context=shorten(lead_in[-1], EXCERPT_LIMIT) if lead_in else "",
                )
            )
            if len(snippets) >= MAX_SNIPPETS:
                return snippets
    return snippets


def _key_insights(
    turns: tuple[ConversationTurn, ...], problem_turns: set[int]
) -> list[str]:
    """Pick the densest assistant replies, favouring replies to a problem."""
    scored: list[tuple[int, int, str]] = []
    for index, turn in enumerate(turns):
        if turn.role is not Role.assistant:
            continue
        prose = _strip_code(turn.content)
        if len(prose) < INSIGHT_MIN_CHARS:
            continue
        score = len(prose)
        if index - 1 in problem_turns:
            score += _FOLLOWS_PROBLEM_BONUS
        scored.append((-score, index, shorten(prose, INSIGHT_LIMIT)))
    scored.sort()
    return _unique([text for _, _, text in scored])[:MAX_INSIGHTS]


def _suggested_tags(
    languages: list[str], topics: list[str], has_problems: bool, has_insights: bool
) -> list[str]:
    """Languages then topics, capped; padded with generic tags up to the minimum."""
    tags = _unique(languages + topics)[:MAX_TAGS]
    for filler in (
        "bug-fix" if has_problems else "",
        "til" if has_insights else "",
        "ai-coding",
        "dev-notes",
        "session-notes",
    ):
        if len(tags) >= MIN_TAGS:
            break
        if filler and filler not in tags:
            tags.append(filler)
    return tags


def _summary(
    parsed: ParsedSession,
    request: str,
    languages: list[str],
    topics: list[str],
    problems: list[str],
    solutions: list[str],
) -> str:
    parts = [
        f"A {parsed.source.value} session on {parsed.project} with "
        f"{parsed.human_messages} prompt(s) and {parsed.ai_messages} assistant repl(ies)."
    ]
    if request:
        parts.append(f'It started from the request: "{shorten(request, 160)}".')
    if languages:
        parts.append(f"Languages: {', '.join(languages)}.")
    if topics:
        parts.append(f"Topics: {', '.join(topics[:MAX_TAGS])}.")
    if problems or solutions:
        parts.append(
            f"It worked through {len(problems)} problem(s) and applied {len(solutions)} fix(es)."
        )
    return " ".join(parts)


def analyze_session(
    parsed: ParsedSession, vocabulary: Vocabulary = DEFAULT_VOCABULARY
) -> SessionAnalysis:
    """Turn a parsed session into topics, languages, insights, snippets and a title."""
    turns = parsed.turns
    corpus = "\n".join(turn.content for turn in turns)

    snippets = _code_snippets(turns, vocabulary)
    languages = _unique(
        _detect(vocabulary.languages, corpus)
        + [
            snippet.language
            for snippet in snippets
            if snippet.language in vocabulary.languages
        ]
    )
    topics = _detect(vocabulary.topics, corpus)

    problems: list[str] = []
    solutions: list[str] = []
    problem_turns: set[int] = set()
    for index, turn in enumerate(turns):
        prose = _strip_code(turn.content)
        if not prose:
            continue
        problem = _matching_sentence(prose, vocabulary.problem)
        if problem:
            problem_turns.add(index)
            problems.append(problem)
        if turn.role is Role.assistant:
            solution = _matching_sentence(prose, vocabulary.solution)
            if solution:
                solutions.append(solution)
    problems = _unique(problems)[:MAX_PROBLEMS]
    solutions = _unique(solutions)[:MAX_SOLUTIONS]

    insights = _key_insights(turns, problem_turns)

    request = next(
        (
            turn.content
            for turn in turns
            if turn.role is Role.human and is_substantive(turn.content)
        ),
        "",
    )
    first_line = next(
        (line for line in _strip_code(request).splitlines() if line.strip()), ""
    )
    title = shorten(first_line, TITLE_LIMIT) or f"{parsed.source.value} session in {parsed.project}"

    return SessionAnalysis(
        summary=_summary(parsed, request, languages, topics, problems, solutions),
        topics=topics,
        languages=languages,
        key_insights=insights,
        code_snippets=snippets,
        problems=problems,
        solutions=solutions,
        suggested_title=title,
        suggested_tags=_suggested_tags(languages, topics, bool(problems), bool(insights)),
    )
