"""Completion backend that shells out to a command-line agent.

The agent receives one prompt (on stdin or as an argument) and its stdout is
the completion text. Stdout is spooled to a temporary file and only read back
when it fits under ``max_output_bytes``. The agent has no notion of
conversation history.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import time
from typing import List

from .base import BackendError, CompletionBackend, usage_dict
from ..config import ModelConfig
from ..types import LLMRequest, LLMResponse

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 2000


def render_command(template: List[str], model: str, prompt: str) -> List[str]:
    return [arg.replace("{model}", model).replace("{prompt}", prompt) for arg in template]


class AgentProcessBackend(CompletionBackend):
    kind = "agent-process"

    def generate(self, request: LLMRequest) -> LLMResponse:
        if len(request.messages) != 1:
            raise ValueError(
                f"Backend '{self.name}' runs an agent process and accepts a single prompt "
                f"(got {len(request.messages)} messages)."
            )
        prompt = request.messages[0].content
        via_stdin = self.model.prompt_via == "stdin"
        argv = render_command(self.model.command, request.model, "" if via_stdin else prompt)

        start = time.perf_counter()
        logger.debug("agent-process call argv0=%s timeout_s=%s", argv[0], self.model.timeout_s)
        with tempfile.TemporaryFile() as stdout_file:
            try:
                proc = subprocess.run(
                    argv,
                    input=prompt if via_stdin else None,
                    stdout=stdout_file,
                    stderr=subprocess.PIPE,
                    text=True,
                    timeout=self.model.timeout_s,
                )
            except subprocess.TimeoutExpired as exc:
                raise BackendError(self.name, f"Agent process timed out after {self.model.timeout_s}s.") from exc
            except OSError as exc:
                raise BackendError(self.name, f"Could not start agent process '{argv[0]}': {exc}") from exc
            latency = time.perf_counter() - start

            if proc.returncode != 0:
                stderr_tail = (proc.stderr or "")[-_STDERR_TAIL_CHARS:].strip()
                raise BackendError(
                    self.name,
                    f"Agent process exited with code {proc.returncode}" + (f": {stderr_tail}" if stderr_tail else "."),
                )

            size = stdout_file.seek(0, os.SEEK_END)
            if size > self.model.max_output_bytes:
                raise BackendError(
                    self.name,
                    f"Agent output exceeded {self.model.max_output_bytes} bytes (got {size}).",
                )
            stdout_file.seek(0)
            stdout = stdout_file.read().decode("utf-8", errors="replace")

        return LLMResponse(
            backend=self.name,
            model=request.model,
            text=stdout,
            usage=usage_dict(None, None),
            latency_s=latency,
            request_id=request.request_id,
        )
