"""Error taxonomy for LLM requests.

The analysis pipeline only needs to answer one question about a failed
request: should the diff be shrunk and the request retried? Every error the
LLM layer raises therefore carries a kind:

- CONTEXT_WINDOW_EXCEEDED: the prompt was too large; truncation may help
- FATAL: anything else (auth, network, bad response); retrying won't help

TruncationExhaustedError is raised once every truncation level has been
tried and the prompt still does not fit.
"""

from __future__ import annotations

from enum import StrEnum

# Phrases providers use when a request exceeds the model's context window.
CONTEXT_WINDOW_INDICATORS: tuple[str, ...] = (
    "context length",
    "context window",
    "token limit",
    "maximum context",
    "input too large",
    "prompt is too long",
    "prompt too long",
    "maximum tokens",
    "exceeds maximum",
    "too many tokens",
)

CONTEXT_WINDOW_STATUS_CODES = frozenset({400, 413, 429})


class LLMErrorKind(StrEnum):
    CONTEXT_WINDOW_EXCEEDED = "context_window_exceeded"
    FATAL = "fatal"


class LLMError(Exception):
    """Base class for errors raised while talking to the model."""

    kind: LLMErrorKind = LLMErrorKind.FATAL


class ContextWindowError(LLMError):
    """The model rejected the request because the prompt was too large."""

    kind = LLMErrorKind.CONTEXT_WINDOW_EXCEEDED

    def __init__(self, provider: str, status_code: int, message: str) -> None:
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(
            f"{provider}: context window exceeded (status {status_code}): {message}"
        )


class LLMRequestError(LLMError):
    """The request failed for a reason truncation cannot fix."""

    def __init__(self, provider: str, status_code: int | None, message: str) -> None:
        self.provider = provider
        self.status_code = status_code
        self.message = message
        status = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"{provider}: request failed{status}: {message}")


class TruncationExhaustedError(LLMError):
    """Every truncation level was tried and the prompt still did not fit."""

    def __init__(self, last_error: Exception | None = None) -> None:
        self.last_error = last_error
        message = (
            "Diff could not be reduced enough to fit the model's context window, "
            "even with extreme truncation"
        )
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


def is_context_window_error(status_code: int | None, body: str | None) -> bool:
    """Check whether an HTTP error response means the prompt was too large.

    Args:
        status_code: HTTP status of the failed response
        body: Response body or error message

    Returns:
        True only for 400, 413 or 429 responses whose body mentions a
        context size limit.
    """
    if status_code not in CONTEXT_WINDOW_STATUS_CODES or not body:
        return False
    lower = body.lower()
    return any(indicator in lower for indicator in CONTEXT_WINDOW_INDICATORS)
