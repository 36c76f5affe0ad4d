from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .types import (
    BACKEND_KINDS,
    LENIENCY_LEVELS,
    PROMPT_VIA_MODES,
    BackendKind,
    Leniency,
    PromptVia,
)

DEFAULT_MODEL = "ollama/llama3.2"
DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024


@dataclass
class ProviderConfig:
    api_key_env: Optional[str] = None
    base_url: Optional[str] = None
    timeout_s: int = 120


@dataclass
class ModelConfig:
    name: str
    model: str
    backend: BackendKind = "chat-service"
    provider: Optional[str] = None
    temperature: float = 0.3
    retry_temperature: float = 0.1
    max_tokens: Optional[int] = 4096
    command: List[str] = field(default_factory=list)
    prompt_via: PromptVia = "stdin"
    timeout_s: int = 300
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES


@dataclass
class GradingDefaults:
    default_model: Optional[str] = None
    max_score: float = 100
    leniency: Leniency = "normal"
    student_name: str = ""


@dataclass
class BatchConfig:
    parallel_workers: int = 1
    rate_limit_rpm: int = 0
    output_dir: str = "outputs"


def _default_providers() -> Dict[str, ProviderConfig]:
    return {"ollama": ProviderConfig(base_url=os.getenv("OLLAMA_HOST"))}


def _default_models() -> List[ModelConfig]:
    return [ModelConfig(name="default", model=DEFAULT_MODEL, provider="ollama")]


@dataclass
class GraderConfig:
    providers: Dict[str, ProviderConfig] = field(default_factory=_default_providers)
    models: List[ModelConfig] = field(default_factory=_default_models)
    grading: GradingDefaults = field(default_factory=GradingDefaults)
    batch: BatchConfig = field(default_factory=BatchConfig)

    @classmethod
    def from_yaml(cls, path: str) -> "GraderConfig":
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GraderConfig":
        providers_raw = raw.get("providers", {}) or {}
        providers = {k: ProviderConfig(**(v or {})) for k, v in providers_raw.items()}

        models = [ModelConfig(**m) for m in raw.get("models", []) or []]
        if not models:
            raise ValueError("Config must define at least one model in 'models'.")

        cfg = cls(
            providers=providers,
            models=models,
            grading=GradingDefaults(**(raw.get("grading") or {})),
            batch=BatchConfig(**(raw.get("batch") or {})),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if not self.models:
            raise ValueError("Config must define at least one model in 'models'.")

        names = [m.name for m in self.models]
        if len(names) != len(set(names)):
            dupes = sorted(n for n in set(names) if names.count(n) > 1)
            raise ValueError(f"Duplicate model name(s): {', '.join(dupes)}")

        known = set(self.providers.keys())
        for m in self.models:
            if m.backend not in BACKEND_KINDS:
                raise ValueError(
                    f"Model '{m.name}' has backend='{m.backend}'; must be one of: chat-service, agent-process."
                )
            if not str(m.model).strip():
                raise ValueError(f"Model '{m.name}' must set a non-empty 'model'.")
            if m.backend == "chat-service":
                if not m.provider:
                    raise ValueError(f"Model '{m.name}' uses chat-service and must set 'provider'.")
                if m.provider not in known:
                    raise ValueError(f"Model '{m.name}' references unknown provider '{m.provider}'.")
                if m.max_tokens is not None and m.max_tokens <= 0:
                    raise ValueError(
                        f"Model '{m.name}' has max_tokens={m.max_tokens}; must be > 0 when set."
                    )
            else:
                if not m.command:
                    raise ValueError(f"Model '{m.name}' uses agent-process and must set 'command'.")
                if m.prompt_via not in PROMPT_VIA_MODES:
                    raise ValueError(f"Model '{m.name}' has prompt_via='{m.prompt_via}'; must be stdin or argument.")
                if m.prompt_via == "argument" and not any("{prompt}" in arg for arg in m.command):
                    raise ValueError(
                        f"Model '{m.name}' passes the prompt as an argument but 'command' has no '{{prompt}}' placeholder."
                    )
                if m.timeout_s <= 0:
                    raise ValueError(f"Model '{m.name}' has timeout_s={m.timeout_s}; must be > 0.")
                if m.max_output_bytes <= 0:
                    raise ValueError(f"Model '{m.name}' has max_output_bytes={m.max_output_bytes}; must be > 0.")

        if self.grading.default_model is not None and self.grading.default_model not in names:
            raise ValueError(f"grading.default_model references unknown model '{self.grading.default_model}'.")
        if self.grading.max_score <= 0:
            raise ValueError("grading.max_score must be a positive number.")
        if self.grading.leniency not in LENIENCY_LEVELS:
            raise ValueError(
                f"grading.leniency must be one of: {', '.join(sorted(LENIENCY_LEVELS))}."
            )

        if self.batch.parallel_workers <= 0:
            raise ValueError("batch.parallel_workers must be a positive integer.")
        if self.batch.rate_limit_rpm < 0:
            raise ValueError("batch.rate_limit_rpm must be >= 0.")

    def provider_env(self, provider_name: str) -> Optional[str]:
        provider = self.providers.get(provider_name)
        if not provider or not provider.api_key_env:
            return None
        return os.getenv(provider.api_key_env)

    def get_model(self, name: Optional[str] = None) -> ModelConfig:
        wanted = name or self.grading.default_model
        if wanted is None:
            return self.models[0]
        for m in self.models:
            if m.name == wanted:
                return m
        raise ValueError(f"Unknown model '{wanted}'. Configured: {', '.join(m.name for m in self.models)}.")
