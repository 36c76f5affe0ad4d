"""Rubric arithmetic for parsed grading objects.

The parsed object comes from an untyped source, so every field is checked
before use. After :func:`normalize_result` a breakdown with a positive
declared total satisfies:

* ``sum(max_points) == max_score``
* ``0 <= score <= max_points`` for each criterion
* ``total_score == sum(score) <= max_score``
* ``percentage == round(total_score / max_score * 100) <= 100``

Negative ``max_points`` count as 0. A breakdown whose declared ``max_points``
sum to zero is not rescaled, so its points may stay inconsistent with
``max_score``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..types import DEFAULT_STUDENT_NAME, as_number

logger = logging.getLogger(__name__)


@dataclass
class NormalizationNotes:
    rescaled: bool = False
    raw_max_sum: Optional[float] = None
    degraded: bool = False
    contradictions: List[str] = field(default_factory=list)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _tidy(value: float) -> float:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _criteria(breakdown: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    for name, details in breakdown.items():
        if isinstance(details, dict):
            yield name, details


def apply_student_name(payload: Dict[str, Any], fallback: str = "") -> None:
    current = payload.get("student_name")
    if not isinstance(current, str) or not current.strip() or current == DEFAULT_STUDENT_NAME:
        payload["student_name"] = fallback or DEFAULT_STUDENT_NAME


def _max_points(details: Dict[str, Any]) -> Optional[float]:
    """Declared ``max_points`` floored at 0, or None when not a number."""
    value = as_number(details.get("max_points"))
    return None if value is None else max(0, value)


def _rescaled_score(old_score: Optional[float], old_max: float, new_max: int) -> int:
    if old_score is None:
        return 0
    scaled = old_score / old_max * new_max
    if not math.isfinite(scaled):
        return new_max if scaled > 0 else 0
    return round_half_up(scaled)


def declared_max_sum(breakdown: Dict[str, Any]) -> float:
    total = 0
    for _, details in _criteria(breakdown):
        value = _max_points(details)
        if value is not None:
            total += value
    return total


def rescale_rubric(breakdown: Dict[str, Any], max_score: float) -> bool:
    """Scale ``max_points`` (and scores with them) so they sum to *max_score*.

    Returns False when the declared total already matches or is not positive.
    The residual left by rounding goes to the criterion with the largest new
    ``max_points``; on ties the last one in map order wins. A negative residual
    that would take it below zero carries over to the next largest.
    """
    raw_max_sum = declared_max_sum(breakdown)
    if raw_max_sum == max_score or raw_max_sum <= 0:
        return False

    rescaled: List[Tuple[str, int]] = []
    for name, details in _criteria(breakdown):
        old_max = _max_points(details)
        if old_max is None or old_max == 0:
            continue
        new_max = round_half_up(old_max / raw_max_sum * max_score)
        details["max_points"] = new_max
        details["score"] = _rescaled_score(as_number(details.get("score")), old_max, new_max)
        rescaled.append((name, new_max))

    residual = max_score - declared_max_sum(breakdown)
    for name, new_max in sorted(reversed(rescaled), key=lambda item: -item[1]):
        if residual == 0:
            break
        adjusted = max(0, new_max + residual)
        residual -= adjusted - new_max
        breakdown[name]["max_points"] = _tidy(adjusted)
    return True


def clamp_scores(breakdown: Dict[str, Any]) -> None:
    for _, details in _criteria(breakdown):
        score = as_number(details.get("score"))
        if score is None:
            score = 0
        max_points = _max_points(details)
        if max_points is not None:
            details["max_points"] = _tidy(max_points)
            score = min(score, max_points)
        details["score"] = _tidy(max(0, score))


def recompute_totals(payload: Dict[str, Any], max_score: float) -> None:
    breakdown = payload.get("rubric_breakdown")
    total = 0
    if isinstance(breakdown, dict):
        for _, details in _criteria(breakdown):
            score = as_number(details.get("score"))
            if score is not None:
                total += score
    total = min(round(total, 6), max_score)

    payload["total_score"] = _tidy(total)
    payload["max_score"] = _tidy(max_score)
    payload["percentage"] = min(100, round_half_up(total / max_score * 100)) if max_score > 0 else 0


def normalize_result(
    payload: Dict[str, Any],
    max_score: float,
    student_name: str = "",
    contradiction_pass: Optional[Callable[[Dict[str, Any]], List[str]]] = None,
) -> NormalizationNotes:
    """Enforce rubric arithmetic on *payload* in place.

    Order: student name, rescale, optional contradiction pass, clamp, totals
    and percentage. Objects without a ``rubric_breakdown`` only get the
    student name defaulted.
    """
    notes = NormalizationNotes()
    apply_student_name(payload, student_name)

    breakdown = payload.get("rubric_breakdown")
    if not isinstance(breakdown, dict):
        return notes

    notes.raw_max_sum = declared_max_sum(breakdown)
    notes.degraded = notes.raw_max_sum <= 0
    if notes.degraded:
        logger.warning(
            "rubric max_points sum to %s; skipping rescale to max_score=%s",
            notes.raw_max_sum,
            max_score,
        )
    notes.rescaled = rescale_rubric(breakdown, max_score)

    if contradiction_pass is not None:
        notes.contradictions = contradiction_pass(payload)
        if notes.contradictions:
            logger.info("full-marks scores contradicted by feedback: %s", ", ".join(notes.contradictions))

    clamp_scores(breakdown)
    recompute_totals(payload, max_score)
    return notes
