"""Isolate the JSON-looking part of a raw completion."""

from __future__ import annotations

import re

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def extract_json_candidate(text: str) -> str:
    """Return the substring of *text* most likely to hold the grading object.

    Markdown fences are unwrapped first, then any commentary before the first
    ``{`` is dropped. Text without a ``{`` is returned as-is so that parsing
    fails downstream.
    """
    candidate = text.strip()

    match = _FENCED_BLOCK.search(candidate)
    if match:
        candidate = match.group(1).strip()

    start = candidate.find("{")
    if start != -1:
        candidate = candidate[start:]
    return candidate
