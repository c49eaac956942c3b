"""Errors raised by LLM providers.

``retryable`` marks the failures worth another attempt; providers retry
exactly those (see ``is_retryable``) and everything else surfaces at once.
"""


class LLMError(Exception):
    """Base error; the message is prefixed with the provider name."""

    retryable = False

    def __init__(self, message: str, provider: str = "unknown"):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class LLMConnectionError(LLMError):
    """Network failure, timeout or server-side error."""

    retryable = True


class LLMRateLimitError(LLMError):
    """Provider asked us to slow down."""

    retryable = True

    def __init__(self, message: str, provider: str, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message, provider)


class LLMAuthenticationError(LLMError):
    """API key missing or rejected."""


class LLMResponseError(LLMError):
    """The provider answered but the answer can't be used (blocked, empty)."""


class LLMProviderNotConfiguredError(LLMError):
    """No provider with credentials could be selected."""


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, LLMError) and exc.retryable
