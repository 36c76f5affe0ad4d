from __future__ import annotations

import argparse
import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from .batch import BatchItem, grade_batch, write_batch_outputs
from .config import GraderConfig, ModelConfig
from .grading.pipeline import grade_submission
from .io import read_text, write_json
from .prompting.templates import LENIENCY_INSTRUCTIONS, generate_sample_rubric
from .providers import build_backend
from .providers.base import BackendError
from .rate_limiter import build_rate_limiter
from .setup_checks import check_setup
from .types import GradingRequest, Rubric


def _load_dotenv_if_available() -> None:
    try:
        from dotenv import load_dotenv
    except ImportError:
        return
    load_dotenv(override=False)


def load_rubric(path: str) -> Rubric:
    text = read_text(Path(path))
    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(parsed, dict):
        return parsed
    return text


def resolve_model(config: GraderConfig, name_or_id: Optional[str]) -> ModelConfig:
    """Pick a configured model by name, or reuse the default model with a different model id."""
    if name_or_id is None or any(m.name == name_or_id for m in config.models):
        return config.get_model(name_or_id)
    return dataclasses.replace(config.get_model(None), model=name_or_id)


def _load_config(path: Optional[str]) -> GraderConfig:
    if path:
        return GraderConfig.from_yaml(path)
    config = GraderConfig()
    config.validate()
    return config


def _build_request(args: argparse.Namespace, config: GraderConfig, model: ModelConfig, submission: str) -> GradingRequest:
    note_parts = [read_text(Path(p)) for p in args.note or []]
    if args.note_text:
        note_parts.append(args.note_text)
    return GradingRequest(
        submission=submission,
        instructions=read_text(Path(args.instructions)),
        rubric=load_rubric(args.rubric) if args.rubric else None,
        note="\n\n".join(note_parts) if note_parts else None,
        max_score=args.max_score if args.max_score is not None else config.grading.max_score,
        student_name=args.student_name if args.student_name is not None else config.grading.student_name,
        leniency=args.leniency or config.grading.leniency,
        model_id=model.model,
        backend_kind=model.backend,
    )


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Grade submissions against a rubric with a completion backend.")
    parser.add_argument("--config", default=None, help="Path to YAML config. Defaults to a local Ollama model.")
    parser.add_argument("--submission", help="Text file with the student's work.")
    parser.add_argument("--batch", nargs="+", default=None, help="Several submission files graded with one rubric.")
    parser.add_argument("--instructions", help="Text file with the assignment instructions.")
    parser.add_argument("--rubric", default=None, help="Rubric file: JSON with max_points per criterion, or free text.")
    parser.add_argument("--note", action="append", default=None, help="Extra grader note file (repeatable).")
    parser.add_argument("--note-text", default=None, help="Extra grader note given inline.")
    parser.add_argument("--max-score", type=float, default=None, help="Maximum score (default from config, 100).")
    parser.add_argument("--student-name", default=None, help="Student name for the report.")
    parser.add_argument("--leniency", choices=sorted(LENIENCY_INSTRUCTIONS), default=None)
    parser.add_argument("--model", default=None, help="Configured model name, or a model id for the default backend.")
    parser.add_argument("--output", default=None, help="Write the result JSON here (batch: output directory).")
    parser.add_argument(
        "--progress",
        choices=["log", "off"],
        default="log",
        help="Batch progress output. 'log' prints per-item status lines; 'off' disables them.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Python logging level.")
    parser.add_argument("--check-setup", action="store_true", help="Validate backend dependencies, then exit.")
    parser.add_argument("--sample-rubric", action="store_true", help="Print a sample structured rubric and exit.")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args.sample_rubric:
        print(json.dumps(generate_sample_rubric(), indent=2, ensure_ascii=False))
        return

    _load_dotenv_if_available()
    config = _load_config(args.config)
    model = resolve_model(config, args.model)

    report = check_setup(config, model.name)
    for warning in report.warnings:
        print(f"[setup warning] {warning}")
    if report.errors:
        for error in report.errors:
            print(f"[setup error] {error}")
        raise SystemExit(2)
    if args.check_setup:
        print("Setup check passed.")
        return

    if not args.instructions or not (args.submission or args.batch):
        raise SystemExit("--instructions and one of --submission / --batch are required.")

    backend = build_backend(model, config)
    try:
        if args.batch:
            _run_batch(args, config, model, backend)
        else:
            _run_single(args, config, model, backend)
    except BackendError as exc:
        print(f"[grading error] {exc}")
        raise SystemExit(1) from exc
    finally:
        backend.close()


def _run_single(args: argparse.Namespace, config: GraderConfig, model: ModelConfig, backend: Any) -> None:
    request = _build_request(args, config, model, read_text(Path(args.submission)))
    outcome = grade_submission(request, backend, model)
    print(outcome.text_report)
    if args.output:
        write_json(Path(args.output), outcome.to_dict())


def _run_batch(args: argparse.Namespace, config: GraderConfig, model: ModelConfig, backend: Any) -> None:
    template = _build_request(args, config, model, submission="")
    items = [
        BatchItem(source=Path(p).name, submission=read_text(Path(p)), student_name=Path(p).stem) for p in args.batch
    ]
    result = grade_batch(
        items,
        template,
        backend,
        model,
        parallel_workers=config.batch.parallel_workers,
        rate_limiter=build_rate_limiter(config.batch.rate_limit_rpm),
        progress_mode=args.progress,
    )
    out_dir = write_batch_outputs(result, Path(args.output or config.batch.output_dir))
    summary = result.summary()
    print(
        f"Graded {summary['graded']}/{summary['total']} submissions "
        f"(parse failures: {summary['parse_failures']}, backend failures: {summary['backend_failures']}). "
        f"Results written to: {out_dir}"
    )
