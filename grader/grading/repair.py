"""Turn a possibly truncated JSON candidate into a parsed object.

Only truncation artifacts are repaired: an unterminated string, a dangling
comma, and unclosed arrays/objects. Otherwise-invalid JSON is left to fail.
"""

from __future__ import annotations

import json
import re
from typing import Any, Tuple

from ..types import Failed, ParseOutcome, Parsed
from .extract import extract_json_candidate

_TRAILING_COMMA = re.compile(r",\s*$")


def _scan_string_state(text: str) -> Tuple[bool, bool]:
    """Return (inside_string, pending_escape) after scanning *text*."""
    in_string = False
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
            continue
        if in_string and ch == "\\":
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
    return in_string, escaped


def _count_unclosed(text: str) -> Tuple[int, int]:
    open_braces = 0
    open_brackets = 0
    in_string = False
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
            continue
        if in_string:
            if ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            open_braces += 1
        elif ch == "}":
            open_braces -= 1
        elif ch == "[":
            open_brackets += 1
        elif ch == "]":
            open_brackets -= 1
    return open_braces, open_brackets


def repair_truncated_json(candidate: str) -> str:
    text = candidate.strip()

    in_string, escaped = _scan_string_state(text)
    if in_string:
        if escaped:
            # a lone backslash would escape the closing quote
            text = text[:-1]
        text += '"'
    text = _TRAILING_COMMA.sub("", text)

    open_braces, open_brackets = _count_unclosed(text)
    text = _TRAILING_COMMA.sub("", text)

    text += "]" * max(0, open_brackets)
    text += "}" * max(0, open_braces)
    return text


def _loads_object(text: str) -> Any:
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError(f"Expected a JSON object, got {type(value).__name__}.")
    return value


def parse_json_candidate(candidate: str, raw_text: str) -> ParseOutcome:
    end = candidate.rfind("}")
    if end != -1:
        try:
            return Parsed(_loads_object(candidate[: end + 1]))
        except (ValueError, RecursionError):
            pass

    try:
        return Parsed(_loads_object(repair_truncated_json(candidate)))
    except (ValueError, RecursionError):
        pass

    return Failed(raw_text=raw_text)


def parse_grading_response(raw_text: str) -> ParseOutcome:
    return parse_json_candidate(extract_json_candidate(raw_text), raw_text)
