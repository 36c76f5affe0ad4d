from __future__ import annotations

import importlib.util
import os
import shutil
from dataclasses import dataclass, field
from typing import List, Optional

from .config import GraderConfig, ModelConfig

_LITELLM_IMPORT = "litellm"
_KEYLESS_PROVIDERS = {"ollama"}


@dataclass
class SetupReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _selected_models(config: GraderConfig, model_name: Optional[str]) -> List[ModelConfig]:
    if model_name is None:
        return list(config.models)
    return [config.get_model(model_name)]


def check_setup(config: GraderConfig, model_name: Optional[str] = None) -> SetupReport:
    report = SetupReport()
    models = _selected_models(config, model_name)

    chat_models = [m for m in models if m.backend == "chat-service"]
    if chat_models and importlib.util.find_spec(_LITELLM_IMPORT) is None:
        report.errors.append(
            f"Chat-service models require Python package '{_LITELLM_IMPORT}' but it is not installed."
        )
        return report

    for provider_name in sorted({m.provider for m in chat_models if m.provider}):
        pconf = config.providers.get(provider_name)
        if pconf is None:
            report.errors.append(
                f"Provider '{provider_name}' is referenced by a model but is missing from providers config."
            )
            continue
        if pconf.api_key_env:
            if not os.getenv(pconf.api_key_env):
                report.errors.append(
                    f"Provider '{provider_name}' requires env var '{pconf.api_key_env}' but it is not set."
                )
        elif provider_name not in _KEYLESS_PROVIDERS:
            report.warnings.append(
                f"Provider '{provider_name}' has no api_key_env configured; relying on provider default environment detection."
            )

    for m in models:
        if m.backend != "agent-process" or not m.command:
            continue
        executable = m.command[0]
        if shutil.which(executable) is None:
            report.errors.append(f"Model '{m.name}' runs '{executable}' but it was not found on PATH.")
        if m.timeout_s > 1800:
            report.warnings.append(f"Model '{m.name}' allows the agent {m.timeout_s}s per call.")

    return report
