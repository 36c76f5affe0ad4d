from __future__ import annotations

import types
import unittest
from unittest import mock

from grader.config import GraderConfig
from grader.providers import build_backend
from grader.providers.agent import AgentProcessBackend
from grader.providers.litellm import LiteLLMBackend


def _config() -> GraderConfig:
    return GraderConfig.from_dict(
        {
            "providers": {"openai": {"api_key_env": "OPENAI_API_KEY", "timeout_s": 30}},
            "models": [
                {"name": "gpt", "provider": "openai", "model": "gpt-4o-mini"},
                {"name": "agent", "backend": "agent-process", "model": "m", "command": ["grading-agent"]},
            ],
        }
    )


class TestBuildBackend(unittest.TestCase):
    def test_chat_model_gets_litellm_backend_with_env_key(self) -> None:
        config = _config()
        fake_litellm = types.SimpleNamespace(completion=lambda **kwargs: {})
        with mock.patch.dict("sys.modules", {"litellm": fake_litellm}), mock.patch.dict(
            "os.environ", {"OPENAI_API_KEY": "sk-test"}
        ):
            backend = build_backend(config.get_model("gpt"), config)

        self.assertIsInstance(backend, LiteLLMBackend)
        self.assertEqual(backend.kind, "chat-service")
        self.assertEqual(backend._api_key, "sk-test")
        self.assertEqual(backend._timeout_s, 30)

    def test_agent_model_gets_process_backend(self) -> None:
        config = _config()
        backend = build_backend(config.get_model("agent"), config)
        self.assertIsInstance(backend, AgentProcessBackend)
        self.assertEqual(backend.kind, "agent-process")


if __name__ == "__main__":
    unittest.main()
