"""Send a grading prompt, structure the reply, and retry once on parse failure.

A grading run makes at most two backend calls:

1. the caller's prompt;
2. only if the first reply cannot be parsed, a short corrective prompt. Chat
   backends see it as a follow-up turn after their own reply; agent backends
   get a single prompt that quotes the first reply.

Parse failures end as a :class:`GradingFailure` value. Backend errors are
raised to the caller unchanged and never trigger the retry.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional, Tuple

from ..config import ModelConfig
from ..prompting.templates import build_correction_prompt, build_grading_prompt
from ..providers.base import CompletionBackend
from ..types import (
    Failed,
    GradingFailure,
    GradingOutcome,
    GradingRequest,
    GradingResult,
    LLMMessage,
    LLMRequest,
    ParseOutcome,
    Parsed,
    WaitableRateLimiter,
)
from .contradictions import resolve_contradictions
from .normalize import NormalizationNotes, normalize_result
from .repair import parse_grading_response
from .report import format_text_report

logger = logging.getLogger(__name__)


def process_completion(
    raw_text: str,
    max_score: float,
    student_name: str = "",
) -> Tuple[ParseOutcome, Optional[NormalizationNotes]]:
    outcome = parse_grading_response(raw_text)
    if isinstance(outcome, Failed):
        return outcome, None
    notes = normalize_result(
        outcome.value,
        max_score,
        student_name,
        contradiction_pass=resolve_contradictions,
    )
    return outcome, notes


def build_retry_messages(
    prompt: str,
    first_reply: str,
    student_name: str,
    max_score: float,
    supports_history: bool,
) -> List[LLMMessage]:
    correction = build_correction_prompt(student_name, max_score)
    if supports_history:
        return [
            LLMMessage(role="user", content=prompt),
            LLMMessage(role="assistant", content=first_reply),
            LLMMessage(role="user", content=correction),
        ]
    return [LLMMessage(role="user", content=f"Your previous response:\n{first_reply}\n\n{correction}")]


class GradingPipeline:
    def __init__(
        self,
        backend: CompletionBackend,
        model: ModelConfig,
        rate_limiter: WaitableRateLimiter | None = None,
    ):
        self.backend = backend
        self.model = model
        self.rate_limiter = rate_limiter

    def _call(self, model_id: str, messages: List[LLMMessage], temperature: float, stage: str) -> str:
        request = LLMRequest(
            model=model_id,
            messages=messages,
            temperature=temperature,
            max_tokens=self.model.max_tokens,
            metadata={"stage": stage},
        )
        if self.rate_limiter is not None:
            self.rate_limiter.wait()
        response = self.backend.generate(request)
        logger.debug(
            "backend reply stage=%s backend=%s chars=%d latency_s=%.2f",
            stage,
            response.backend,
            len(response.text),
            response.latency_s,
        )
        return response.text

    def run(self, prompt: str, request: GradingRequest) -> GradingOutcome:
        model_id = request.model_id or self.model.model
        max_score = request.max_score
        student_name = request.student_name

        first_text = self._call(
            model_id,
            [LLMMessage(role="user", content=prompt)],
            self.model.temperature,
            stage="grade",
        )
        calls = 1
        outcome, _ = process_completion(first_text, max_score, student_name)

        retry_text: Optional[str] = None
        if isinstance(outcome, Failed):
            logger.warning("grading response from %s was not valid JSON, retrying once", model_id)
            retry_messages = build_retry_messages(
                prompt,
                first_text,
                student_name,
                max_score,
                supports_history=self.backend.supports_history,
            )
            retry_text = self._call(model_id, retry_messages, self.model.retry_temperature, stage="retry")
            calls += 1
            outcome, _ = process_completion(retry_text, max_score, student_name)

        graded_at = dt.datetime.now(dt.timezone.utc).isoformat()
        if isinstance(outcome, Parsed):
            result = GradingResult.from_payload(outcome.value)
            return GradingOutcome(
                results=result,
                text_report=format_text_report(result),
                model=model_id,
                graded_at=graded_at,
                backend_calls=calls,
            )

        logger.warning("grading response from %s could not be parsed after retry", model_id)
        failure = GradingFailure(
            raw_response=first_text,
            parse_error=outcome.message,
            retry_raw_response=retry_text,
        )
        return GradingOutcome(
            results=failure,
            text_report=first_text,
            model=model_id,
            graded_at=graded_at,
            backend_calls=calls,
        )


def grade_submission(
    request: GradingRequest,
    backend: CompletionBackend,
    model: ModelConfig,
    rate_limiter: WaitableRateLimiter | None = None,
) -> GradingOutcome:
    """Validate *request*, build its prompt and grade it.

    *rate_limiter* is waited on before every backend call, the retry included.
    """
    request.validate()
    if request.backend_kind != backend.kind:
        raise ValueError(
            f"Request targets a {request.backend_kind} backend but '{backend.name}' is {backend.kind}."
        )
    prompt = build_grading_prompt(request)
    return GradingPipeline(backend, model, rate_limiter).run(prompt, request)
