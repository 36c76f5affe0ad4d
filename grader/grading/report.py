from __future__ import annotations

from typing import List

from ..types import GradingResult

_WIDTH = 60
_HEAVY = "═" * _WIDTH
_LIGHT = "─" * _WIDTH


def _fmt(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _section(lines: List[str], title: str) -> None:
    lines.extend(["", _LIGHT, title, _LIGHT])


def format_text_report(result: GradingResult) -> str:
    lines: List[str] = [_HEAVY, "          GRADING REPORT", _HEAVY, ""]

    if result.student_name:
        lines.append(f"Student: {result.student_name}")
    lines.append(f"Score: {_fmt(result.total_score)}/{_fmt(result.max_score)} ({result.percentage}%)")

    _section(lines, "RUBRIC BREAKDOWN:")
    for name, criterion in result.rubric_breakdown.items():
        lines.append(f"  {name}: {_fmt(criterion.score)}/{_fmt(criterion.max_points)}")
        if criterion.feedback:
            lines.append(f"    → {criterion.feedback}")

    _section(lines, "STRENGTHS:")
    lines.extend(f"  • {item}" for item in result.strengths)

    _section(lines, "AREAS FOR IMPROVEMENT:")
    lines.extend(f"  • {item}" for item in result.improvements)

    if result.overall_feedback:
        _section(lines, "OVERALL FEEDBACK:")
        lines.append(f"  {result.overall_feedback}")

    lines.extend(["", _HEAVY])
    return "\n".join(lines)
