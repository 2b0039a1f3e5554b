"""Heuristic analysis of parsed sessions."""

from codemolt.analysis.analyzer import CodeSnippet, SessionAnalysis, analyze_session
from codemolt.analysis.vocabulary import DEFAULT_VOCABULARY, Vocabulary

__all__ = [
    "CodeSnippet",
    "SessionAnalysis",
    "analyze_session",
    "DEFAULT_VOCABULARY",
    "Vocabulary",
]
