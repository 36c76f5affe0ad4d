from __future__ import annotations

import logging
import time
from typing import Any, Dict, List

from .base import BackendError, CompletionBackend, usage_dict
from ..config import ModelConfig, ProviderConfig
from ..types import LLMRequest, LLMResponse

logger = logging.getLogger(__name__)


class LiteLLMBackend(CompletionBackend):
    kind = "chat-service"

    def __init__(self, name: str, model: ModelConfig, provider: ProviderConfig, api_key: str | None):
        super().__init__(name, model)
        try:
            from litellm import completion
        except ImportError as exc:  # pragma: no cover
            raise ImportError("Install dependency 'litellm' to use chat-service backends.") from exc

        self._completion = completion
        self._timeout_s = provider.timeout_s
        self._base_url = provider.base_url
        self._api_key = api_key

    @property
    def supports_history(self) -> bool:
        return True

    def generate(self, request: LLMRequest) -> LLMResponse:
        start = time.perf_counter()
        messages: List[Dict[str, str]] = [{"role": m.role, "content": m.content} for m in request.messages]

        kwargs: Dict[str, Any] = {
            "model": request.model.strip(),
            "temperature": request.temperature,
            "timeout": self._timeout_s,
        }
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens
        if self._base_url:
            kwargs["api_base"] = self._base_url
        if self._api_key:
            kwargs["api_key"] = self._api_key

        logger.debug("chat-service call model=%s messages=%d", request.model, len(messages))
        try:
            resp = self._completion(messages=messages, **kwargs)
        except Exception as exc:  # noqa: BLE001 - provider SDK exceptions vary
            raise BackendError(self.name, f"Completion request failed: {exc}") from exc
        latency = time.perf_counter() - start

        if hasattr(resp, "model_dump"):
            resp_dict = resp.model_dump()
        elif isinstance(resp, dict):
            resp_dict = resp
        else:
            resp_dict = {}

        choices = resp_dict.get("choices", [])
        text = ""
        if choices:
            message = (choices[0] or {}).get("message", {})
            text = self._extract_message_text(message)

        usage_obj = resp_dict.get("usage") or {}
        return LLMResponse(
            backend=self.name,
            model=request.model,
            text=text,
            usage=usage_dict(usage_obj.get("prompt_tokens"), usage_obj.get("completion_tokens")),
            latency_s=latency,
            request_id=resp_dict.get("id") or request.request_id,
        )

    @staticmethod
    def _extract_message_text(message: Dict[str, Any]) -> str:
        if not isinstance(message, dict):
            return ""

        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: List[str] = []
            for item in content:
                if isinstance(item, str):
                    parts.append(item)
                elif isinstance(item, dict) and isinstance(item.get("text"), str):
                    parts.append(item["text"])
            return "".join(parts)
        return ""
