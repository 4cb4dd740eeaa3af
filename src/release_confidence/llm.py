"""LLM clients for release analysis.

This module encapsulates all interaction with the model API. It handles:
- Client initialization per provider: OpenAI and Llama (any OpenAI-compatible
  server, selected through base_url), Gemini through its OpenAI-compatible
  endpoint, and Claude through the Anthropic Messages API
- Retry logic for transient connection and 5xx failures
- Mapping SDK errors onto the release_confidence.errors taxonomy, so the
  caller can tell "prompt too large" apart from everything else

The clients return the raw response text; parsing and validation happen in
release_confidence.report.
"""

from __future__ import annotations

import anthropic
import httpx
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from release_confidence.config import Config
from release_confidence.errors import (
    ContextWindowError,
    LLMRequestError,
    is_context_window_error,
)
from release_confidence.logging_config import get_logger

logger = get_logger(__name__)

# Appended to RCS_GEMINI_MODEL_API to reach Gemini's chat completions API.
GEMINI_OPENAI_PATH = "/v1beta/openai"


class LLMConfig(BaseModel):
    """Configuration for an LLM client.

    Attributes:
        provider: "openai", "llama", "gemini" or "claude"
        model: Model identifier (e.g., "gpt-4o")
        base_url: API endpoint; None uses the SDK default
        api_key: API key for the endpoint
        max_tokens: Maximum tokens in the response
        temperature: Sampling temperature (0.0 = deterministic)
        timeout_seconds: Per-request timeout
        skip_ssl_verify: Disable TLS verification for self-hosted endpoints
    """

    provider: str = "openai"
    model: str = "gpt-4o"
    base_url: str | None = None
    api_key: str | None = None
    max_tokens: int = 2000
    temperature: float = 0.0
    timeout_seconds: int = 120
    skip_ssl_verify: bool = False

    @classmethod
    def from_config(cls, config: Config) -> LLMConfig:
        return cls(
            provider=config.model_provider,
            model=config.model_id,
            base_url=config.model_api or None,
            api_key=config.model_user_key or None,
            max_tokens=config.model_max_response_tokens,
            timeout_seconds=config.model_timeout_seconds,
            skip_ssl_verify=config.model_skip_ssl_verify,
        )


class BaseLLMClient:
    """Shared request/error handling for the provider clients.

    Subclasses build the SDK client and implement _complete(); analyze()
    maps the SDK's status errors onto ContextWindowError / LLMRequestError.
    """

    status_error: type[Exception] = openai.APIStatusError
    api_error: type[Exception] = openai.APIError

    def __init__(self, config: LLMConfig | None = None) -> None:
        self.config = config or LLMConfig()
        self._client = self._build_client()

    def _build_client(self):
        raise NotImplementedError

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=not self.config.skip_ssl_verify,
            timeout=float(self.config.timeout_seconds),
        )

    async def analyze(self, system_prompt: str, user_prompt: str) -> str:
        """Send the analysis prompts and return the response text.

        Args:
            system_prompt: Instructions and output schema
            user_prompt: The rendered release data

        Returns:
            The model's response content.

        Raises:
            ContextWindowError: If the request exceeded the context window
            LLMRequestError: For every other API failure or an empty response
        """
        provider = self.config.provider
        try:
            content = await self._complete(system_prompt, user_prompt)
        except self.status_error as exc:
            detail = _error_detail(exc)
            if is_context_window_error(exc.status_code, detail):
                logger.warning(
                    "llm_context_window_exceeded",
                    provider=provider,
                    status_code=exc.status_code,
                    prompt_chars=len(system_prompt) + len(user_prompt),
                )
                raise ContextWindowError(provider, exc.status_code, detail) from exc
            raise LLMRequestError(provider, exc.status_code, detail) from exc
        except self.api_error as exc:
            raise LLMRequestError(provider, None, str(exc)) from exc

        if not content:
            raise LLMRequestError(provider, None, "empty response from model")
        return content

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        raise NotImplementedError

    def _log_usage(self, input_tokens: int, output_tokens: int) -> None:
        logger.info(
            "llm_request_complete",
            provider=self.config.provider,
            model=self.config.model,
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
        )

    async def close(self) -> None:
        await self._client.close()


class LLMClient(BaseLLMClient):
    """Async wrapper around an OpenAI-compatible chat completions API.

    Serves the openai, llama and gemini providers. Gemini receives the
    system and user prompts as a single user message.

    Usage:
        client = LLMClient(config=LLMConfig(model="gpt-4o"))
        text = await client.analyze(system_prompt, user_prompt)
    """

    def _build_client(self) -> AsyncOpenAI:
        # Retries are handled by tenacity below, not by the SDK.
        return AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self._base_url(),
            timeout=float(self.config.timeout_seconds),
            max_retries=0,
            http_client=self._http_client(),
        )

    def _base_url(self) -> str | None:
        base_url = self.config.base_url
        if base_url and self.config.provider == "gemini":
            return base_url.rstrip("/") + GEMINI_OPENAI_PATH
        return base_url

    @retry(
        retry=retry_if_exception_type((openai.APIConnectionError, openai.InternalServerError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        request: dict = {
            "model": self.config.model,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if self.config.provider == "gemini":
            request["messages"] = [
                {"role": "user", "content": f"{system_prompt}\n\n{user_prompt}"},
            ]
        else:
            request["messages"] = [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ]
            request["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(**request)

        usage = response.usage
        if usage is not None:
            self._log_usage(usage.prompt_tokens, usage.completion_tokens)

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class ClaudeClient(BaseLLMClient):
    """Async wrapper around the Anthropic Messages API.

    Usage:
        client = ClaudeClient(LLMConfig(provider="claude", model="claude-sonnet-4-5"))
        text = await client.analyze(system_prompt, user_prompt)
    """

    status_error = anthropic.APIStatusError
    api_error = anthropic.APIError

    def _build_client(self) -> AsyncAnthropic:
        return AsyncAnthropic(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=float(self.config.timeout_seconds),
            max_retries=0,
            http_client=self._http_client(),
        )

    @retry(
        retry=retry_if_exception_type((anthropic.APIConnectionError, anthropic.InternalServerError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        response = await self._client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )

        usage = response.usage
        if usage is not None:
            self._log_usage(usage.input_tokens, usage.output_tokens)

        return "".join(block.text for block in response.content if block.type == "text")


def create_llm_client(config: LLMConfig) -> BaseLLMClient:
    """Return the client for config.provider."""
    if config.provider == "claude":
        return ClaudeClient(config)
    return LLMClient(config)


def _error_detail(exc) -> str:
    body = exc.body
    if body is None:
        return exc.message
    return f"{exc.message} {body}"
