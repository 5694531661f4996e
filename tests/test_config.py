"""Tests for environment-driven settings."""

import pytest

from guided_assistant.config import DEFAULT_APOLOGY, AppSettings

MANAGED_VARIABLES = [
    "MAF_MODEL_PROVIDER",
    "MAF_MODEL",
    "MAF_MODEL_ENDPOINT",
    "MAF_MODEL_API_KEY",
    "MAF_MODEL_API_VERSION",
    "ASSISTANT_LLM_TEMPERATURE",
    "ASSISTANT_LLM_MAX_TOKENS",
    "ASSISTANT_LLM_TOP_P",
    "ASSISTANT_LLM_TIMEOUT",
    "ASSISTANT_ESCALATION_THRESHOLD",
    "ASSISTANT_HISTORY_WINDOW",
    "ASSISTANT_APOLOGY_MESSAGE",
    "ASSISTANT_OUTPUT_DIR",
    "ASSISTANT_CONFIRMATIONS_JSONL",
    "ASSISTANT_REDIS_URL",
    "ASSISTANT_DEFAULT_CONTEXT",
]


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in MANAGED_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MAF_MODEL", "gpt-test")
    monkeypatch.setenv("MAF_MODEL_API_KEY", "secret")
    monkeypatch.setenv("ASSISTANT_OUTPUT_DIR", str(tmp_path / "out"))
    return monkeypatch


class TestAppSettings:

    def test_defaults(self, env, tmp_path):
        settings = AppSettings.load()
        assert settings.model.provider == "openai"
        assert settings.model.model == "gpt-test"
        assert settings.model.timeout == 30.0
        assert settings.flow.escalation_threshold == 2
        assert settings.flow.history_window == 4
        assert settings.flow.apology_message == DEFAULT_APOLOGY
        assert settings.output_dir.is_dir()
        assert settings.confirmation_log == tmp_path / "out" / "confirmations.jsonl"
        assert settings.redis_url is None
        assert settings.default_context == "default"

    def test_overrides(self, env):
        env.setenv("MAF_MODEL_PROVIDER", "ollama")
        env.setenv("ASSISTANT_ESCALATION_THRESHOLD", "3")
        env.setenv("ASSISTANT_HISTORY_WINDOW", "0")
        env.setenv("ASSISTANT_LLM_TIMEOUT", "5")
        env.setenv("ASSISTANT_APOLOGY_MESSAGE", "Please try again later.")
        env.setenv("ASSISTANT_REDIS_URL", "redis://localhost:6379/0")
        env.setenv("ASSISTANT_DEFAULT_CONTEXT", "/applications/financial/income")

        settings = AppSettings.load()
        assert settings.model.provider == "ollama"
        assert settings.flow.escalation_threshold == 3
        assert settings.flow.history_window == 0
        assert settings.model.timeout == 5.0
        assert settings.flow.apology_message == "Please try again later."
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.default_context == "/applications/financial/income"

    def test_model_is_required(self, env):
        env.delenv("MAF_MODEL")
        with pytest.raises(RuntimeError, match="MAF_MODEL"):
            AppSettings.load()

    def test_api_key_is_required(self, env):
        env.delenv("MAF_MODEL_API_KEY")
        with pytest.raises(RuntimeError, match="MAF_MODEL_API_KEY"):
            AppSettings.load()

    def test_ollama_runs_without_api_key(self, env):
        env.delenv("MAF_MODEL_API_KEY")
        env.setenv("MAF_MODEL_PROVIDER", "ollama")
        settings = AppSettings.load()
        assert settings.model.api_key is None

    @pytest.mark.parametrize(
        "name, value",
        [
            ("ASSISTANT_ESCALATION_THRESHOLD", "0"),
            ("ASSISTANT_ESCALATION_THRESHOLD", "two"),
            ("ASSISTANT_HISTORY_WINDOW", "-1"),
            ("ASSISTANT_LLM_TIMEOUT", "0"),
            ("ASSISTANT_LLM_TEMPERATURE", "warm"),
        ],
    )
    def test_invalid_values(self, env, name, value):
        env.setenv(name, value)
        with pytest.raises(RuntimeError, match=name):
            AppSettings.load()
