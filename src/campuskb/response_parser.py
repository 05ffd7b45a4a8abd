"""
Answer and citation extraction for /retrieve response bodies.

The backend contract is loose: sometimes a JSON object with `response` and `source`,
sometimes prose with a trailing "Source: ..." line. Extraction runs an ordered chain of
strategies; the first one that returns a result wins.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class ExtractedAnswer:
    answer: str
    sources: tuple[str, ...] = ()


Strategy = Callable[[str], "ExtractedAnswer | None"]

# Checked in this order; the first label found in the text wins.
# "From:" is common in prose, so it only counts at the start of a line.
CITATION_LABEL_PATTERNS = (
    re.compile(r"\bsource:[ \t]*(\S[^\r\n]*)", re.IGNORECASE),
    re.compile(r"\breference:[ \t]*(\S[^\r\n]*)", re.IGNORECASE),
    re.compile(r"^[ \t]*from:[ \t]*(\S[^\r\n]*)", re.IGNORECASE | re.MULTILINE),
)


def _normalize_sources(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        items = raw
    else:
        items = [raw]
    out = []
    for item in items:
        text = str(item).strip() if item is not None else ""
        if text:
            out.append(text)
    return tuple(out)


def _decode_json(body: str) -> Any:
    try:
        return json.loads(body)
    except (TypeError, ValueError):
        return None


def structured_strategy(body: str) -> ExtractedAnswer | None:
    """Uses `response` / `source` fields when the body is a JSON object."""
    payload = _decode_json(body)
    if not isinstance(payload, dict) or "response" not in payload:
        return None
    answer = payload.get("response")
    return ExtractedAnswer(
        answer="" if answer is None else str(answer).strip(),
        sources=_normalize_sources(payload.get("source")),
    )


def labelled_line_strategy(body: str) -> ExtractedAnswer | None:
    """Pulls a 'Source:' / 'Reference:' / 'From:' line out of free text."""
    for pattern in CITATION_LABEL_PATTERNS:
        match = pattern.search(body)
        if match is None:
            continue
        citation = match.group(1).strip()
        answer = (body[: match.start()] + body[match.end():]).strip()
        return ExtractedAnswer(answer=answer, sources=(citation,))
    return None


def plain_text_strategy(body: str) -> ExtractedAnswer:
    return ExtractedAnswer(answer=body.strip())


DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    structured_strategy,
    labelled_line_strategy,
    plain_text_strategy,
)


def _unwrap_json_string(body: str) -> str:
    # Some backends serialize a bare string response, e.g. "\"The answer.\\nSource: x.pdf\"".
    payload = _decode_json(body)
    if isinstance(payload, str):
        return payload
    return body


def extract_answer(body: str | None, strategies: tuple[Strategy, ...] = DEFAULT_STRATEGIES) -> ExtractedAnswer:
    text = _unwrap_json_string(str(body or ""))
    for strategy in strategies:
        result = strategy(text)
        if result is not None:
            return result
    return ExtractedAnswer(answer=text.strip())
