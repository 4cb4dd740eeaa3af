"""Runtime configuration loaded from RCS_* environment variables.

Settings are read once at startup by Config.from_env(). EnvSettings parses
and type-checks the raw variables with pydantic-settings; Config is the
resolved, validated view the rest of the package uses. Every validation
error is raised as a ValueError naming the offending variable, so the CLI
and API can surface it verbatim.

Model settings are provider-prefixed: with RCS_MODEL_PROVIDER=llama the
endpoint, model and key come from RCS_LLAMA_MODEL_API, RCS_LLAMA_MODEL_ID
and RCS_LLAMA_USER_KEY.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from release_confidence.prompts.templates import DEFAULT_SYSTEM_PROMPT_VERSION

SUPPORTED_PROVIDERS = ("claude", "gemini", "llama", "openai")
LOG_FORMATS = ("text", "json")
LOG_LEVELS = ("debug", "info", "warn", "error")

_MAX_INT = 1_000_000_000

Provider = Literal["claude", "gemini", "llama", "openai"]


class ScoreThresholds(BaseModel):
    """Score boundaries for the release recommendation.

    Attributes:
        auto_deploy: Scores at or above this are recommended for release
        review_required: Scores at or above this (and below auto_deploy)
                         need a manual review; anything lower is blocked
    """

    auto_deploy: int = Field(80, ge=0, le=100)
    review_required: int = Field(60, ge=0, le=100)

    @model_validator(mode="after")
    def _check_order(self) -> ScoreThresholds:
        if self.auto_deploy < self.review_required:
            raise ValueError(
                f"RCS_SCORE_THRESHOLD_AUTO_DEPLOY ({self.auto_deploy}) must be greater "
                f"than or equal to RCS_SCORE_THRESHOLD_REVIEW_REQUIRED ({self.review_required})"
            )
        return self


class EnvSettings(BaseSettings):
    """Raw RCS_* environment variables, type-checked.

    Each field maps to RCS_<FIELD_NAME>. Empty variables count as unset.
    """

    model_config = SettingsConfigDict(
        env_prefix="RCS_",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        protected_namespaces=(),
    )

    github_token: str = ""
    gitlab_token: str = ""
    gitlab_base_url: str = ""
    gitlab_skip_ssl_verify: bool = False

    log_format: Literal["text", "json"] = "text"
    log_level: Literal["debug", "info", "warn", "error"] = "info"

    model_provider: Provider = "openai"
    model_max_response_tokens: int = Field(2000, ge=1, le=_MAX_INT)
    model_timeout_seconds: int = Field(120, ge=1, le=_MAX_INT)
    model_skip_ssl_verify: bool = False
    system_prompt_version: str = DEFAULT_SYSTEM_PROMPT_VERSION

    claude_model_api: str = ""
    claude_model_id: str = ""
    claude_user_key: str = ""
    gemini_model_api: str = ""
    gemini_model_id: str = ""
    gemini_user_key: str = ""
    llama_model_api: str = ""
    llama_model_id: str = ""
    llama_user_key: str = ""
    openai_model_api: str = ""
    openai_model_id: str = ""
    openai_user_key: str = ""

    score_threshold_auto_deploy: int = Field(80, ge=0, le=100)
    score_threshold_review_required: int = Field(60, ge=0, le=100)
    risk_patterns_file: str | None = None

    @field_validator("log_format", "log_level", "model_provider", "system_prompt_version", mode="before")
    @classmethod
    def _normalize_choice(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def model_setting(self, name: str) -> str:
        """Return a provider-prefixed model setting (model_api, model_id, user_key)."""
        return getattr(self, f"{self.model_provider}_{name}")


class Config(BaseModel):
    """Validated application configuration."""

    model_config = ConfigDict(protected_namespaces=())

    github_token: str = ""
    gitlab_token: str = ""
    gitlab_base_url: str = ""
    gitlab_skip_ssl_verify: bool = False

    log_format: str = "text"
    log_level: str = "info"

    model_provider: str = "openai"
    model_api: str = ""
    model_id: str = ""
    model_user_key: str = ""
    model_max_response_tokens: int = Field(2000, ge=1)
    model_timeout_seconds: int = Field(120, ge=1)
    model_skip_ssl_verify: bool = False
    system_prompt_version: str = DEFAULT_SYSTEM_PROMPT_VERSION

    score_thresholds: ScoreThresholds = Field(default_factory=ScoreThresholds)
    risk_patterns_file: str | None = None

    @classmethod
    def from_env(cls) -> Config:
        """Build and validate a Config from the process environment.

        Returns:
            A validated Config.

        Raises:
            ValueError: If a variable is missing, malformed or out of range.
        """
        try:
            env = EnvSettings()
        except ValidationError as exc:
            raise ValueError(_describe(exc)) from exc

        config = cls(
            github_token=env.github_token,
            gitlab_token=env.gitlab_token,
            gitlab_base_url=env.gitlab_base_url.rstrip("/"),
            gitlab_skip_ssl_verify=env.gitlab_skip_ssl_verify,
            log_format=env.log_format,
            log_level=env.log_level,
            model_provider=env.model_provider,
            model_api=env.model_setting("model_api"),
            model_id=env.model_setting("model_id"),
            model_user_key=env.model_setting("user_key"),
            model_max_response_tokens=env.model_max_response_tokens,
            model_timeout_seconds=env.model_timeout_seconds,
            model_skip_ssl_verify=env.model_skip_ssl_verify,
            system_prompt_version=env.system_prompt_version,
            score_thresholds=ScoreThresholds(
                auto_deploy=env.score_threshold_auto_deploy,
                review_required=env.score_threshold_review_required,
            ),
            risk_patterns_file=env.risk_patterns_file,
        )
        config.validate_required()
        return config

    def validate_required(self) -> None:
        """Check the cross-field requirements.

        Raises:
            ValueError: Naming the first missing variable.
        """
        prefix = f"RCS_{self.model_provider.upper()}"
        if not self.github_token and not self.gitlab_token:
            raise ValueError("at least one of RCS_GITHUB_TOKEN or RCS_GITLAB_TOKEN is required")
        if self.gitlab_token and not self.gitlab_base_url:
            raise ValueError(
                "RCS_GITLAB_BASE_URL environment variable is required "
                "when RCS_GITLAB_TOKEN is provided"
            )
        if not self.model_api:
            raise ValueError(f"{prefix}_MODEL_API environment variable is required")
        if not self.model_id:
            raise ValueError(f"{prefix}_MODEL_ID environment variable is required")
        if not self.model_user_key:
            raise ValueError(f"{prefix}_USER_KEY environment variable is required")


def _describe(exc: ValidationError) -> str:
    """Render the first validation error with its environment variable name."""
    error = exc.errors()[0]
    field = str(error["loc"][0]) if error["loc"] else ""
    return f"RCS_{field.upper()}: {error['msg']}, got: {error.get('input')!r}"
