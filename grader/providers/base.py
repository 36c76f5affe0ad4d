from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict

from ..config import ModelConfig
from ..types import LLMRequest, LLMResponse


class BackendError(RuntimeError):
    """A completion backend could not produce a reply (network, process or timeout failure)."""

    def __init__(self, backend: str, message: str):
        self.backend = backend
        self.message = message
        super().__init__(f"[{backend}] {message}")


class CompletionBackend(ABC):
    kind: str = ""

    def __init__(self, name: str, model: ModelConfig):
        self.name = name
        self.model = model

    @property
    def supports_history(self) -> bool:
        return False

    @abstractmethod
    def generate(self, request: LLMRequest) -> LLMResponse:
        raise NotImplementedError

    def close(self) -> None:
        return None


def usage_dict(prompt_tokens: int | None, completion_tokens: int | None) -> Dict[str, int | None]:
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": (
            (prompt_tokens or 0) + (completion_tokens or 0)
            if prompt_tokens is not None or completion_tokens is not None
            else None
        ),
    }
