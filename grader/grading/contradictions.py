"""Full-marks scores whose own feedback describes a shortcoming.

A criterion scored at its maximum while the feedback reads like a deduction
("good, but citations are missing") loses one point. This is a keyword
heuristic with known false positives ("nothing missing") and false negatives;
the pattern list is versioned so that results can be traced to the list in use.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Pattern, Tuple

from ..types import as_number

CONTRADICTION_PATTERNS_VERSION = "1"

DEFICIENCY_KEYWORDS: Tuple[str, ...] = (
    r"but",
    r"however",
    r"although",
    r"missing",
    r"incomplete",
    r"lacking",
    r"lacks?",
    r"incorrect",
    r"inaccura(?:te|cy|cies)",
    r"did not",
    r"didn't",
    r"does not",
    r"doesn't",
    r"failed to",
    r"fails to",
    r"weak",
    r"insufficient",
    r"could be improved",
    r"needs? (?:more|improvement|work)",
    r"should have",
    r"unclear",
)

DEFICIENCY_PATTERNS: List[Pattern[str]] = [
    re.compile(rf"\b{keyword}\b", re.IGNORECASE) for keyword in DEFICIENCY_KEYWORDS
]


def feedback_indicates_deficiency(feedback: str) -> bool:
    return any(pattern.search(feedback) for pattern in DEFICIENCY_PATTERNS)


def resolve_contradictions(payload: Dict[str, Any]) -> List[str]:
    """Decrement full-marks scores contradicted by their feedback, in place.

    Returns the names of the adjusted criteria.
    """
    breakdown = payload.get("rubric_breakdown")
    if not isinstance(breakdown, dict):
        return []

    adjusted: List[str] = []
    for name, details in breakdown.items():
        if not isinstance(details, dict):
            continue
        score = as_number(details.get("score"))
        max_points = as_number(details.get("max_points"))
        if score is None or max_points is None or score != max_points:
            continue
        feedback = details.get("feedback")
        if not isinstance(feedback, str) or not feedback_indicates_deficiency(feedback):
            continue
        details["score"] = max(0, score - 1)
        adjusted.append(str(name))
    return adjusted
