"""Tolerant JSON extraction from free-form LLM output.

Models wrap JSON in markdown fences, prepend chatter, or return nothing
useful at all. These helpers never raise on bad input: callers get None and
decide what "nothing parsed" means for them.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_PROGRESS_RE = re.compile(r"\s*\[PROGRESS:\s*\d{1,3}\s*\]\s*", re.IGNORECASE)
_CITATION_RE = re.compile(
    r"\s*(\[(?:Quelle|Source|Dokument|Doc)[^\]]*\]|\[\d+(?:\s*,\s*\d+)*\]|\(Seite\s+\d+(?:\s*[-–]\s*\d+)?\))",
    re.IGNORECASE,
)


def strip_code_fences(text: str) -> str:
    """Return the content of the first fenced block, or the text unchanged."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _outermost(text: str, opening: str, closing: str) -> str | None:
    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_json_object(text: str | None) -> dict[str, Any] | None:
    """Parse a JSON object out of ``text``; None if there is none."""
    if not text:
        return None
    candidate = strip_code_fences(text)
    for attempt in (candidate, _outermost(candidate, "{", "}")):
        if attempt is None:
            continue
        try:
            parsed = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    logger.warning("No JSON object in LLM output: %s", text[:200])
    return None


def parse_json_array(text: str | None) -> list[Any] | None:
    """Parse a JSON array out of ``text``; None if there is none."""
    if not text:
        return None
    candidate = strip_code_fences(text)
    for attempt in (candidate, _outermost(candidate, "[", "]")):
        if attempt is None:
            continue
        try:
            parsed = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            return parsed
    return None


def strip_progress_markers(text: str) -> str:
    """Remove ``[PROGRESS: n]`` markers before text reaches the user."""
    return _PROGRESS_RE.sub(" ", text).strip()


def strip_citation_markers(text: str) -> str:
    """Remove inline source markers such as ``[Quelle: X]``, ``[1]`` or ``(Seite 4)``."""
    return _CITATION_RE.sub("", text).strip()
