"""Suggested starter questions, grouped by topic."""
from __future__ import annotations

from .tokenization import tokenize_for_matching

SUGGESTED_QUERIES: dict[str, tuple[str, ...]] = {
    "Admissions": (
        "What are the admission requirements for Computer Science?",
        "How do I apply for undergraduate programs?",
        "What documents are needed for admission?",
        "When is the admission deadline?",
    ),
    "Academic": (
        "Tell me about the faculty of Engineering",
        "What are the graduation requirements?",
        "How is the grading system structured?",
        "What research opportunities are available?",
    ),
    "Campus Life": (
        "What scholarships are available for students?",
        "How do I apply for hostel accommodation?",
        "Tell me about the campus facilities",
        "What extracurricular activities are offered?",
    ),
    "General": (
        "What are the fee structures for different programs?",
        "How can I contact the admissions office?",
        "What is the university's history?",
        "Where is the university located?",
    ),
}


def _keywords(text: str) -> set[str]:
    return set(tokenize_for_matching(text, min_len=3, drop_stopwords=True))


def suggest(text: str = "") -> dict[str, list[str]]:
    """
    All suggestions when text is blank; otherwise only questions sharing a keyword with it
    (prefix match, so "admis" finds "admission"). Empty groups are dropped.
    """
    wanted = _keywords(text)
    if not wanted:
        return {group: list(queries) for group, queries in SUGGESTED_QUERIES.items()}

    out: dict[str, list[str]] = {}
    for group, queries in SUGGESTED_QUERIES.items():
        hits = [
            query
            for query in queries
            if any(word.startswith(term) for word in _keywords(f"{group} {query}") for term in wanted)
        ]
        if hits:
            out[group] = hits
    return out
