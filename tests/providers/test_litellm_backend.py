from __future__ import annotations

import types
import unittest
from unittest import mock

from grader.config import ProviderConfig
from grader.providers.base import BackendError
from grader.providers.litellm import LiteLLMBackend
from grader.types import LLMMessage, LLMRequest
from tests._helpers import chat_model


def _request(**overrides: object) -> LLMRequest:
    values = {
        "model": "ollama/llama3.2",
        "messages": [LLMMessage(role="user", content="hello")],
        "temperature": 0.3,
        "max_tokens": 4096,
        "request_id": "req-1",
    }
    values.update(overrides)
    return LLMRequest(**values)  # type: ignore[arg-type]


class TestLiteLLMBackend(unittest.TestCase):
    def _backend(self, fake_completion, provider: ProviderConfig | None = None, api_key: str | None = None):
        with mock.patch.dict("sys.modules", {"litellm": types.SimpleNamespace(completion=fake_completion)}):
            return LiteLLMBackend("ollama", chat_model(), provider or ProviderConfig(timeout_s=5), api_key)

    def test_sends_messages_and_settings(self) -> None:
        captured: dict[str, object] = {}

        def fake_completion(**kwargs):
            captured.update(kwargs)
            return {
                "id": "resp-1",
                "choices": [{"message": {"content": '{"total_score": 1}'}}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 4},
            }

        backend = self._backend(
            fake_completion,
            ProviderConfig(base_url="http://localhost:11434", timeout_s=5),
            api_key="secret",
        )
        response = backend.generate(_request())

        self.assertEqual(captured["model"], "ollama/llama3.2")
        self.assertEqual(captured["messages"], [{"role": "user", "content": "hello"}])
        self.assertEqual(captured["temperature"], 0.3)
        self.assertEqual(captured["max_tokens"], 4096)
        self.assertEqual(captured["timeout"], 5)
        self.assertEqual(captured["api_base"], "http://localhost:11434")
        self.assertEqual(captured["api_key"], "secret")
        self.assertEqual(response.text, '{"total_score": 1}')
        self.assertEqual(response.usage, {"prompt_tokens": 10, "completion_tokens": 4, "total_tokens": 14})
        self.assertEqual(response.request_id, "resp-1")

    def test_optional_settings_are_omitted(self) -> None:
        captured: dict[str, object] = {}

        def fake_completion(**kwargs):
            captured.update(kwargs)
            return {"choices": [{"message": {"content": "ok"}}]}

        backend = self._backend(fake_completion)
        response = backend.generate(_request(max_tokens=None))

        self.assertNotIn("max_tokens", captured)
        self.assertNotIn("api_base", captured)
        self.assertNotIn("api_key", captured)
        self.assertEqual(response.request_id, "req-1")
        self.assertIsNone(response.usage["total_tokens"])

    def test_list_content_is_joined(self) -> None:
        def fake_completion(**kwargs):
            return {"choices": [{"message": {"content": [{"type": "text", "text": "{"}, "}"]}}]}

        response = self._backend(fake_completion).generate(_request())
        self.assertEqual(response.text, "{}")

    def test_provider_errors_become_backend_errors(self) -> None:
        def fake_completion(**kwargs):
            raise ConnectionError("connection refused")

        backend = self._backend(fake_completion)
        with self.assertRaises(BackendError) as ctx:
            backend.generate(_request())
        self.assertIn("connection refused", str(ctx.exception))
        self.assertEqual(ctx.exception.backend, "ollama")

    def test_supports_history(self) -> None:
        backend = self._backend(lambda **kwargs: {})
        self.assertTrue(backend.supports_history)
        self.assertEqual(backend.kind, "chat-service")


if __name__ == "__main__":
    unittest.main()
