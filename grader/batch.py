from __future__ import annotations

import concurrent.futures
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, TypedDict

from .config import ModelConfig
from .grading.pipeline import grade_submission
from .io import write_json, write_jsonl
from .providers.base import BackendError, CompletionBackend
from .rate_limiter import NoopRateLimiter
from .types import GradingOutcome, GradingRequest, GradingResult, WaitableRateLimiter


@dataclass
class BatchItem:
    source: str
    submission: str
    student_name: str = ""


class FailureItem(TypedDict, total=False):
    index: int
    source: str
    error: str


@dataclass
class BatchResult:
    items: List[BatchItem]
    outcomes: List[Optional[GradingOutcome]]
    failed_items: List[FailureItem] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        graded = [o for o in self.outcomes if o is not None]
        parsed = [o.results for o in graded if isinstance(o.results, GradingResult)]
        average = round(sum(r.percentage for r in parsed) / len(parsed), 2) if parsed else None
        return {
            "total": len(self.items),
            "graded": len(parsed),
            "parse_failures": len(graded) - len(parsed),
            "backend_failures": len(self.failed_items),
            "average_percentage": average,
        }

    def rows(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        failures = {f["index"]: f for f in self.failed_items}
        for index, (item, outcome) in enumerate(zip(self.items, self.outcomes)):
            row: Dict[str, Any] = {"index": index, "source": item.source}
            if outcome is not None:
                row.update(outcome.to_dict())
            else:
                row["error"] = failures.get(index, {}).get("error", "unknown error")
            out.append(row)
        return out


def _progress_line(**fields: Any) -> str:
    tokens = [f"{key}={value}" for key, value in fields.items() if value is not None]
    return "[progress]" + ("" if not tokens else f" {' '.join(tokens)}")


def _emit_progress(mode: str, message: str) -> None:
    if mode == "log":
        print(message, flush=True)


def grade_batch(
    items: List[BatchItem],
    template: GradingRequest,
    backend: CompletionBackend,
    model: ModelConfig,
    *,
    parallel_workers: int = 1,
    rate_limiter: WaitableRateLimiter | None = None,
    progress_mode: str = "off",
) -> BatchResult:
    """Grade each item as its own pipeline run against a shared rubric.

    Backend failures are recorded per item and do not stop the batch. The rate
    limiter is shared by all workers and covers retry calls too.
    """
    limiter = rate_limiter or NoopRateLimiter()
    total = len(items)
    outcomes: List[Optional[GradingOutcome]] = [None] * total
    failed: List[FailureItem] = []

    def _grade_one(index: int, item: BatchItem) -> GradingOutcome:
        request = dataclasses.replace(
            template,
            submission=item.submission,
            student_name=item.student_name or template.student_name,
        )
        _emit_progress(progress_mode, _progress_line(item=f"{index + 1}/{total}", stage="started", source=item.source))
        return grade_submission(request, backend, model, limiter)

    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, parallel_workers)) as pool:
        futures = {pool.submit(_grade_one, idx, item): idx for idx, item in enumerate(items)}
        for future in concurrent.futures.as_completed(futures):
            idx = futures[future]
            source = items[idx].source
            try:
                outcome = future.result()
            except (BackendError, ValueError) as exc:
                failed.append({"index": idx, "source": source, "error": str(exc)})
                _emit_progress(
                    progress_mode,
                    _progress_line(item=f"{idx + 1}/{total}", stage="failed", source=source, error=type(exc).__name__),
                )
                continue
            outcomes[idx] = outcome
            percentage = outcome.results.percentage if isinstance(outcome.results, GradingResult) else None
            _emit_progress(
                progress_mode,
                _progress_line(
                    item=f"{idx + 1}/{total}",
                    stage="done" if outcome.ok else "parse_failed",
                    source=source,
                    percentage=percentage,
                    calls=outcome.backend_calls,
                ),
            )

    failed.sort(key=lambda f: f["index"])
    return BatchResult(items=list(items), outcomes=outcomes, failed_items=failed)


def write_batch_outputs(result: BatchResult, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    write_jsonl(out_dir / "results.jsonl", result.rows())
    write_json(out_dir / "summary.json", result.summary())
    return out_dir
