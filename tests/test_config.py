"""Tests for environment-based configuration and logging setup.

Every test starts from an environment with all RCS_* variables removed, so
the results never depend on the real process environment.

Run with: pytest tests/test_config.py -v
"""

from __future__ import annotations

import logging

import pytest

from release_confidence.config import Config, ScoreThresholds
from release_confidence.logging_config import _resolve_level, setup_logging


@pytest.fixture
def env(clean_env: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Minimal valid environment for the default provider."""
    clean_env.setenv("RCS_GITHUB_TOKEN", "ghp_test")
    clean_env.setenv("RCS_OPENAI_MODEL_API", "https://api.openai.com/v1")
    clean_env.setenv("RCS_OPENAI_MODEL_ID", "gpt-4o")
    clean_env.setenv("RCS_OPENAI_USER_KEY", "sk-test")
    return clean_env


class TestConfigFromEnv:
    """Tests for Config.from_env()."""

    def test_defaults(self, env: pytest.MonkeyPatch) -> None:
        config = Config.from_env()

        assert config.model_provider == "openai"
        assert config.model_id == "gpt-4o"
        assert config.log_format == "text"
        assert config.log_level == "info"
        assert config.model_max_response_tokens == 2000
        assert config.model_timeout_seconds == 120
        assert config.system_prompt_version == "v1"
        assert config.score_thresholds == ScoreThresholds(auto_deploy=80, review_required=60)
        assert config.risk_patterns_file is None

    @pytest.mark.parametrize(
        ("provider", "model_id"),
        [("llama", "llama-3-70b"), ("claude", "claude-sonnet-4-5"), ("gemini", "gemini-2.5-pro")],
    )
    def test_provider_prefixed_model_settings(
        self, clean_env: pytest.MonkeyPatch, provider: str, model_id: str
    ) -> None:
        prefix = f"RCS_{provider.upper()}"
        clean_env.setenv("RCS_GITHUB_TOKEN", "ghp_test")
        clean_env.setenv("RCS_MODEL_PROVIDER", provider.capitalize())
        clean_env.setenv(f"{prefix}_MODEL_API", f"https://{provider}.internal")
        clean_env.setenv(f"{prefix}_MODEL_ID", model_id)
        clean_env.setenv(f"{prefix}_USER_KEY", "key")
        # Settings of other providers are ignored.
        clean_env.setenv("RCS_OPENAI_MODEL_ID", "gpt-4o")

        config = Config.from_env()

        assert config.model_provider == provider
        assert config.model_api == f"https://{provider}.internal"
        assert config.model_id == model_id
        assert config.model_user_key == "key"

    def test_overrides(self, env: pytest.MonkeyPatch) -> None:
        for key, value in {
            "RCS_LOG_FORMAT": "JSON",
            "RCS_LOG_LEVEL": "warn",
            "RCS_MODEL_MAX_RESPONSE_TOKENS": "4000",
            "RCS_MODEL_SKIP_SSL_VERIFY": "yes",
            "RCS_SYSTEM_PROMPT_VERSION": "V2",
            "RCS_SCORE_THRESHOLD_AUTO_DEPLOY": "90",
            "RCS_SCORE_THRESHOLD_REVIEW_REQUIRED": "70",
            "RCS_RISK_PATTERNS_FILE": "/etc/rcs/patterns.yaml",
        }.items():
            env.setenv(key, value)

        config = Config.from_env()

        assert config.log_format == "json"
        assert config.log_level == "warn"
        assert config.model_max_response_tokens == 4000
        assert config.model_skip_ssl_verify is True
        assert config.system_prompt_version == "v2"
        assert config.score_thresholds.auto_deploy == 90
        assert config.score_thresholds.review_required == 70
        assert config.risk_patterns_file == "/etc/rcs/patterns.yaml"

    def test_empty_values_use_defaults(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("RCS_LOG_FORMAT", "")
        env.setenv("RCS_MODEL_TIMEOUT_SECONDS", "")
        config = Config.from_env()
        assert config.log_format == "text"
        assert config.model_timeout_seconds == 120

    def test_gitlab_only(self, env: pytest.MonkeyPatch) -> None:
        env.delenv("RCS_GITHUB_TOKEN")
        env.setenv("RCS_GITLAB_TOKEN", "glpat")
        env.setenv("RCS_GITLAB_BASE_URL", "https://gitlab.example.com/")

        config = Config.from_env()

        assert config.gitlab_base_url == "https://gitlab.example.com"


class TestConfigValidation:
    """Tests for the error messages surfaced to users."""

    def test_no_token(self, env: pytest.MonkeyPatch) -> None:
        env.delenv("RCS_GITHUB_TOKEN")
        with pytest.raises(ValueError, match="RCS_GITHUB_TOKEN or RCS_GITLAB_TOKEN"):
            Config.from_env()

    def test_gitlab_token_needs_base_url(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("RCS_GITLAB_TOKEN", "glpat")
        with pytest.raises(ValueError, match="RCS_GITLAB_BASE_URL"):
            Config.from_env()

    @pytest.mark.parametrize(
        "key", ["RCS_OPENAI_MODEL_API", "RCS_OPENAI_MODEL_ID", "RCS_OPENAI_USER_KEY"]
    )
    def test_model_settings_required(self, env: pytest.MonkeyPatch, key: str) -> None:
        env.delenv(key)
        with pytest.raises(ValueError, match=f"{key} environment variable is required"):
            Config.from_env()

    def test_claude_settings_required(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("RCS_MODEL_PROVIDER", "claude")
        with pytest.raises(ValueError, match="RCS_CLAUDE_MODEL_API environment variable is required"):
            Config.from_env()

    @pytest.mark.parametrize(
        ("key", "value", "message"),
        [
            ("RCS_MODEL_PROVIDER", "anthropic", "RCS_MODEL_PROVIDER: Input should be"),
            ("RCS_MODEL_TIMEOUT_SECONDS", "soon", "RCS_MODEL_TIMEOUT_SECONDS: .*valid integer"),
            ("RCS_SCORE_THRESHOLD_AUTO_DEPLOY", "101", "RCS_SCORE_THRESHOLD_AUTO_DEPLOY: .*less than or equal to 100"),
            ("RCS_GITLAB_SKIP_SSL_VERIFY", "maybe", "RCS_GITLAB_SKIP_SSL_VERIFY: .*valid boolean"),
            ("RCS_LOG_FORMAT", "xml", "RCS_LOG_FORMAT: Input should be 'text' or 'json'"),
        ],
    )
    def test_invalid_values_name_the_variable(
        self, env: pytest.MonkeyPatch, key: str, value: str, message: str
    ) -> None:
        env.setenv(key, value)
        with pytest.raises(ValueError, match=message):
            Config.from_env()

    def test_thresholds_out_of_order(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("RCS_SCORE_THRESHOLD_AUTO_DEPLOY", "50")
        env.setenv("RCS_SCORE_THRESHOLD_REVIEW_REQUIRED", "70")
        with pytest.raises(ValueError, match="must be greater than or equal to"):
            Config.from_env()


class TestLogLevels:
    @pytest.mark.parametrize(
        ("name", "level"),
        [("debug", logging.DEBUG), ("INFO", logging.INFO), ("warn", logging.WARNING), ("error", logging.ERROR)],
    )
    def test_resolve_level(self, name: str, level: int) -> None:
        assert _resolve_level(name) == level

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging("text", "verbose")
