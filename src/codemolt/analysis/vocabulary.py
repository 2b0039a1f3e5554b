"""Keyword tables the heuristic analyzer matches against turn text.

Each label maps to one case-insensitive regular expression. Pass a custom
:class:`Vocabulary` to :func:`codemolt.analysis.analyze_session` to change
what gets detected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field


LANGUAGE_PATTERNS: dict[str, str] = {
    "python": r"\bpython\b|\bpip install\b|\bpytest\b|\.py\b|\bdjango\b|\bfastapi\b",
    "typescript": r"\btypescript\b|\.tsx?\b|\btsconfig\b",
    "javascript": r"\bjavascript\b|\.m?jsx?\b|\bnode\.?js\b|\bnpm\b",
    "rust": r"\brust\b|\bcargo\b|\.rs\b",
    "go": r"\bgolang\b|\bgo (?:mod|build|test|run|get)\b|\.go\b",
    "java": r"\bjava\b(?!script)|\.java\b|\bspring boot\b|\bgradle\b|\bmaven\b",
    "kotlin": r"\bkotlin\b|\.kt\b",
    "swift": r"\bswift\b|\bswiftui\b|\.swift\b",
    "c++": r"\bc\+\+|\bcpp\b|\.cpp\b|\.hpp\b|\bcmake\b",
    "c#": r"\bc#|\bcsharp\b|\.cs\b",
    "ruby": r"\bruby\b|\brails\b|\.rb\b",
    "php": r"\bphp\b|\blaravel\b",
    "sql": r"\bsql\b|\bpostgres(?:ql)?\b|\bsqlite\b|\bmysql\b",
    "bash": r"\bbash\b|\bshell script\b|\.sh\b|\bzsh\b",
    "html": r"\bhtml\b",
    "css": r"\bcss\b|\btailwind\b|\bscss\b",
}

TOPIC_PATTERNS: dict[str, str] = {
    "react": r"\breact\b|\buse(?:Effect|State|Memo|Callback)\b|\bjsx\b",
    "nextjs": r"\bnext\.?js\b|\bapp router\b|\bgetServerSideProps\b",
    "vue": r"\bvue(?:\.js)?\b|\bnuxt\b",
    "django": r"\bdjango\b",
    "fastapi": r"\bfastapi\b",
    "flask": r"\bflask\b",
    "node": r"\bnode\.?js\b|\bexpress\b",
    "docker": r"\bdocker(?:file)?\b|\bcontainer\b",
    "kubernetes": r"\bkubernetes\b|\bk8s\b|\bkubectl\b|\bhelm\b",
    "git": r"\bgit (?:commit|rebase|merge|push|pull|branch|stash|diff)\b|\bmerge conflict\b",
    "testing": r"\bunit tests?\b|\bintegration tests?\b|\bpytest\b|\bjest\b|\bvitest\b|\btest suite\b",
    "database": r"\bdatabase\b|\bmigrations?\b|\bschema\b|\bprisma\b|\borm\b",
    "api": r"\brest api\b|\bendpoints?\b|\bgraphql\b|\bhttp (?:request|client)\b",
    "auth": r"\bauth(?:entication|orization)?\b|\boauth\b|\bjwt\b|\blogin\b",
    "performance": r"\bperformance\b|\blatency\b|\bslow\b|\boptimi[sz]e\b|\bmemory leak\b",
    "async": r"\basync\b|\bawait\b|\bpromises?\b|\bconcurren(?:cy|t)\b|\brace condition\b",
    "ci": r"\bci/cd\b|\bgithub actions\b|\bpipeline\b|\bworkflow file\b",
    "deployment": r"\bdeploy(?:ment|ed|ing)?\b|\bvercel\b|\bnginx\b",
    "security": r"\bsecurity\b|\bvulnerab\w*\b|\bxss\b|\bcsrf\b|\bsql injection\b",
    "refactoring": r"\brefactor(?:ing|ed)?\b|\bclean ?up\b",
    "debugging": r"\bdebug(?:ging|ger)?\b|\bstack trace\b|\btraceback\b",
    "css-layout": r"\bflexbox\b|\bgrid layout\b|\bresponsive\b",
}

FENCE_LANGUAGES: dict[str, str] = {
    "py": "python",
    "python": "python",
    "ts": "typescript",
    "tsx": "typescript",
    "typescript": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "javascript": "javascript",
    "rs": "rust",
    "rust": "rust",
    "go": "go",
    "golang": "go",
    "java": "java",
    "kt": "kotlin",
    "kotlin": "kotlin",
    "swift": "swift",
    "cpp": "c++",
    "c++": "c++",
    "cs": "c#",
    "csharp": "c#",
    "rb": "ruby",
    "ruby": "ruby",
    "php": "php",
    "sql": "sql",
    "sh": "bash",
    "bash": "bash",
    "shell": "bash",
    "zsh": "bash",
    "html": "html",
    "css": "css",
    "scss": "css",
}

PROBLEM_PATTERN = (
    r"\berror\b|\bexceptions?\b|\bbugs?\b|\bcrash(?:es|ed|ing)?\b|\bfail(?:s|ed|ing|ure)?\b"
    r"|\bbroken\b|\btraceback\b|\bdoesn'?t work\b|\bnot working\b|\bundefined is not\b"
)
SOLUTION_PATTERN = (
    r"\bfix(?:ed|es)?\b|\bresolv(?:e|ed|es)\b|\bsolution\b|\bsolved\b|\bworkaround\b"
    r"|\bthe (?:issue|problem) was\b|\bnow works\b|\bshould now\b"
)


def _compile_table(table: dict[str, str]) -> dict[str, re.Pattern[str]]:
    return {label: re.compile(pattern, re.IGNORECASE) for label, pattern in table.items()}


@dataclass(frozen=True)
class Vocabulary:
    """Compiled keyword tables for language, topic, problem and solution detection."""

    languages: dict[str, re.Pattern[str]] = field(
        default_factory=lambda: _compile_table(LANGUAGE_PATTERNS)
    )
    topics: dict[str, re.Pattern[str]] = field(
        default_factory=lambda: _compile_table(TOPIC_PATTERNS)
    )
    fence_languages: dict[str, str] = field(default_factory=lambda: dict(FENCE_LANGUAGES))
    problem: re.Pattern[str] = field(
        default_factory=lambda: re.compile(PROBLEM_PATTERN, re.IGNORECASE)
    )
    solution: re.Pattern[str] = field(
        default_factory=lambda: re.compile(SOLUTION_PATTERN, re.IGNORECASE)
    )

    @classmethod
    def from_tables(
        cls,
        *,
        languages: dict[str, str] | None = None,
        topics: dict[str, str] | None = None,
        problem: str | None = None,
        solution: str | None = None,
    ) -> Vocabulary:
        """Build a vocabulary from raw pattern strings, defaulting missing tables."""
        return cls(
            languages=_compile_table(LANGUAGE_PATTERNS if languages is None else languages),
            topics=_compile_table(TOPIC_PATTERNS if topics is None else topics),
            problem=re.compile(problem or PROBLEM_PATTERN, re.IGNORECASE),
            solution=re.compile(solution or SOLUTION_PATTERN, re.IGNORECASE),
        )


DEFAULT_VOCABULARY = Vocabulary()
