from __future__ import annotations

from ..config import GraderConfig, ModelConfig
from .agent import AgentProcessBackend
from .base import BackendError, CompletionBackend
from .litellm import LiteLLMBackend


def build_backend(model: ModelConfig, config: GraderConfig) -> CompletionBackend:
    if model.backend == "agent-process":
        return AgentProcessBackend(model.name, model)
    if model.provider is None or model.provider not in config.providers:
        raise ValueError(f"Model '{model.name}' references unknown provider '{model.provider}'.")
    pconf = config.providers[model.provider]
    api_key = config.provider_env(model.provider)
    return LiteLLMBackend(model.name, model, pconf, api_key)


__all__ = ["BackendError", "CompletionBackend", "build_backend"]
