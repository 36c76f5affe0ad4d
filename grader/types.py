from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Protocol, Union

Leniency = Literal["strict", "normal", "lenient", "very_lenient"]
BackendKind = Literal["chat-service", "agent-process"]
PromptVia = Literal["stdin", "argument"]

LENIENCY_LEVELS: FrozenSet[Leniency] = frozenset({"strict", "normal", "lenient", "very_lenient"})
BACKEND_KINDS: FrozenSet[BackendKind] = frozenset({"chat-service", "agent-process"})
PROMPT_VIA_MODES: FrozenSet[PromptVia] = frozenset({"stdin", "argument"})

DEFAULT_STUDENT_NAME = "Anonymous"
PARSE_ERROR_MESSAGE = "Could not parse model response as JSON"

Rubric = Union[Dict[str, Any], str]


class WaitableRateLimiter(Protocol):
    def wait(self) -> None: ...


@dataclass(frozen=True)
class LLMMessage:
    role: str
    content: str


@dataclass
class LLMRequest:
    model: str
    messages: List[LLMMessage]
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    request_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResponse:
    backend: str
    model: str
    text: str
    usage: Dict[str, Optional[int]]
    latency_s: float
    request_id: Optional[str] = None


@dataclass(frozen=True)
class Parsed:
    value: Dict[str, Any]


@dataclass(frozen=True)
class Failed:
    raw_text: str
    message: str = PARSE_ERROR_MESSAGE


ParseOutcome = Union[Parsed, Failed]


@dataclass
class GradingRequest:
    submission: str
    instructions: str
    rubric: Optional[Rubric] = None
    note: Optional[str] = None
    max_score: float = 100
    student_name: str = ""
    leniency: Leniency = "normal"
    model_id: str = ""
    backend_kind: BackendKind = "chat-service"

    def validate(self) -> None:
        if not str(self.submission or "").strip():
            raise ValueError("Missing required field: submission.")
        if not str(self.instructions or "").strip():
            raise ValueError("Missing required field: instructions.")
        if self.leniency not in LENIENCY_LEVELS:
            raise ValueError(
                f"leniency must be one of: {', '.join(sorted(LENIENCY_LEVELS))} (got '{self.leniency}')."
            )
        if self.backend_kind not in BACKEND_KINDS:
            raise ValueError(f"backend_kind must be one of: {', '.join(sorted(BACKEND_KINDS))}.")
        max_score = as_number(self.max_score) if isinstance(self.max_score, (int, float)) else None
        if max_score is None or max_score <= 0:
            raise ValueError(f"max_score must be a positive number (got {self.max_score!r}).")


@dataclass
class RubricCriterion:
    name: str
    score: float
    max_points: float
    feedback: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "max_points": self.max_points, "feedback": self.feedback}


def as_number(value: Any) -> Optional[float]:
    """Return *value* as a finite number, or None when it is not one.

    Integers too large to convert to float are rejected too.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            float(value)
        except OverflowError:
            return None
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _number_or_zero(value: Any) -> float:
    number = as_number(value)
    return 0 if number is None else number


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


@dataclass
class GradingResult:
    student_name: str
    total_score: float
    max_score: float
    percentage: int
    rubric_breakdown: Dict[str, RubricCriterion] = field(default_factory=dict)
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    overall_feedback: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GradingResult":
        breakdown: Dict[str, RubricCriterion] = {}
        raw_breakdown = payload.get("rubric_breakdown")
        if isinstance(raw_breakdown, dict):
            for name, details in raw_breakdown.items():
                if not isinstance(details, dict):
                    continue
                breakdown[str(name)] = RubricCriterion(
                    name=str(name),
                    score=_number_or_zero(details.get("score")),
                    max_points=_number_or_zero(details.get("max_points")),
                    feedback=str(details.get("feedback") or ""),
                )

        return cls(
            student_name=str(payload.get("student_name") or DEFAULT_STUDENT_NAME),
            total_score=_number_or_zero(payload.get("total_score")),
            max_score=_number_or_zero(payload.get("max_score")),
            percentage=int(_number_or_zero(payload.get("percentage"))),
            rubric_breakdown=breakdown,
            strengths=_string_list(payload.get("strengths")),
            improvements=_string_list(payload.get("improvements")),
            overall_feedback=str(payload.get("overall_feedback") or ""),
            raw=payload,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_name": self.student_name,
            "total_score": self.total_score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "rubric_breakdown": {name: c.to_dict() for name, c in self.rubric_breakdown.items()},
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "overall_feedback": self.overall_feedback,
        }


@dataclass
class GradingFailure:
    raw_response: str
    parse_error: str
    retry_raw_response: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"raw_response": self.raw_response, "parse_error": self.parse_error}
        if self.retry_raw_response is not None:
            out["retry_raw_response"] = self.retry_raw_response
        return out


@dataclass
class GradingOutcome:
    results: Union[GradingResult, GradingFailure]
    text_report: str
    model: str
    graded_at: str
    backend_calls: int = 1

    @property
    def ok(self) -> bool:
        return isinstance(self.results, GradingResult)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": self.results.to_dict(),
            "text_report": self.text_report,
            "model": self.model,
            "graded_at": self.graded_at,
        }
