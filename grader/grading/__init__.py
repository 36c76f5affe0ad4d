from __future__ import annotations

from .pipeline import GradingPipeline, grade_submission, process_completion
from .repair import parse_grading_response

__all__ = ["GradingPipeline", "grade_submission", "parse_grading_response", "process_completion"]
