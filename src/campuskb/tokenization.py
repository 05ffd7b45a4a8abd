"""
Shared tokenization helpers for keyword matching.
"""
from __future__ import annotations

import re

_UNICODE_WORD_RE = re.compile(r"\w+", flags=re.UNICODE)

STOPWORDS = frozenset({
    "a", "an", "and", "are", "can", "do", "for", "how", "i", "in", "is", "me",
    "of", "on", "the", "to", "what", "when", "where", "which", "who", "with",
})


def tokenize_for_matching(
    text: str,
    *,
    min_len: int = 1,
    drop_stopwords: bool = False,
) -> list[str]:
    """
    Tokenizes text with Unicode-aware word boundaries, normalized via casefold().
    Optionally drops common English function words.
    """
    safe_min_len = max(1, int(min_len))

    out: list[str] = []
    for raw in _UNICODE_WORD_RE.findall(str(text or "").casefold()):
        token = raw.strip("_")
        if not token or len(token) < safe_min_len:
            continue
        if drop_stopwords and token in STOPWORDS:
            continue
        out.append(token)
    return out
