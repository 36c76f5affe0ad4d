from __future__ import annotations

import tempfile
import textwrap
import unittest
from pathlib import Path
from unittest import mock

from grader.config import DEFAULT_MODEL, GraderConfig


def _raw(**overrides: object) -> dict:
    raw = {
        "providers": {"openai": {"api_key_env": "OPENAI_API_KEY"}},
        "models": [{"name": "gpt", "provider": "openai", "model": "openai/gpt-4o-mini"}],
    }
    raw.update(overrides)
    return raw


class TestGraderConfig(unittest.TestCase):
    def test_defaults_target_local_ollama(self) -> None:
        config = GraderConfig()
        config.validate()
        model = config.get_model()
        self.assertEqual(model.model, DEFAULT_MODEL)
        self.assertEqual(model.provider, "ollama")
        self.assertEqual(model.temperature, 0.3)
        self.assertEqual(model.retry_temperature, 0.1)
        self.assertEqual(model.max_tokens, 4096)
        self.assertEqual(config.grading.max_score, 100)

    def test_from_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text(
                textwrap.dedent(
                    """
                    providers:
                      ollama:
                        base_url: http://localhost:11434
                    models:
                      - name: llama
                        provider: ollama
                        model: ollama/llama3.2
                      - name: agent
                        backend: agent-process
                        model: sonnet
                        command: ["grading-agent", "--model", "{model}"]
                        timeout_s: 60
                    grading:
                      default_model: agent
                      leniency: lenient
                    batch:
                      parallel_workers: 3
                      rate_limit_rpm: 20
                    """
                ),
                encoding="utf-8",
            )
            config = GraderConfig.from_yaml(str(path))

        self.assertEqual(config.providers["ollama"].base_url, "http://localhost:11434")
        self.assertEqual(config.get_model().name, "agent")
        self.assertEqual(config.get_model("llama").model, "ollama/llama3.2")
        self.assertEqual(config.grading.leniency, "lenient")
        self.assertEqual(config.batch.parallel_workers, 3)

    def test_requires_models(self) -> None:
        with self.assertRaisesRegex(ValueError, "at least one model"):
            GraderConfig.from_dict({"models": []})

    def test_rejects_unknown_provider(self) -> None:
        raw = _raw(models=[{"name": "gpt", "provider": "azure", "model": "gpt-4o"}])
        with self.assertRaisesRegex(ValueError, "unknown provider 'azure'"):
            GraderConfig.from_dict(raw)

    def test_rejects_duplicate_model_names(self) -> None:
        model = {"name": "gpt", "provider": "openai", "model": "gpt-4o"}
        with self.assertRaisesRegex(ValueError, "Duplicate model name"):
            GraderConfig.from_dict(_raw(models=[model, dict(model)]))

    def test_rejects_unknown_backend_kind(self) -> None:
        raw = _raw(models=[{"name": "x", "backend": "grpc", "model": "m"}])
        with self.assertRaisesRegex(ValueError, "backend='grpc'"):
            GraderConfig.from_dict(raw)

    def test_agent_requires_command(self) -> None:
        raw = _raw(models=[{"name": "agent", "backend": "agent-process", "model": "m"}])
        with self.assertRaisesRegex(ValueError, "must set 'command'"):
            GraderConfig.from_dict(raw)

    def test_argument_prompt_needs_placeholder(self) -> None:
        raw = _raw(
            models=[
                {
                    "name": "agent",
                    "backend": "agent-process",
                    "model": "m",
                    "command": ["agent", "--print"],
                    "prompt_via": "argument",
                }
            ]
        )
        with self.assertRaisesRegex(ValueError, "placeholder"):
            GraderConfig.from_dict(raw)

    def test_rejects_bad_grading_defaults(self) -> None:
        with self.assertRaisesRegex(ValueError, "leniency"):
            GraderConfig.from_dict(_raw(grading={"leniency": "harsh"}))
        with self.assertRaisesRegex(ValueError, "max_score"):
            GraderConfig.from_dict(_raw(grading={"max_score": 0}))
        with self.assertRaisesRegex(ValueError, "unknown model"):
            GraderConfig.from_dict(_raw(grading={"default_model": "missing"}))

    def test_rejects_bad_batch_settings(self) -> None:
        with self.assertRaisesRegex(ValueError, "parallel_workers"):
            GraderConfig.from_dict(_raw(batch={"parallel_workers": 0}))
        with self.assertRaisesRegex(ValueError, "rate_limit_rpm"):
            GraderConfig.from_dict(_raw(batch={"rate_limit_rpm": -1}))

    def test_provider_env_reads_configured_variable(self) -> None:
        config = GraderConfig.from_dict(_raw())
        with mock.patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test"}):
            self.assertEqual(config.provider_env("openai"), "sk-test")
        self.assertIsNone(config.provider_env("missing"))

    def test_unknown_model_name(self) -> None:
        with self.assertRaisesRegex(ValueError, "Unknown model 'nope'"):
            GraderConfig.from_dict(_raw()).get_model("nope")


if __name__ == "__main__":
    unittest.main()
