"""Language model clients used for risk assessment and reply drafting."""

from review_buddy.llm.base import BaseLLM, OllamaLLM, parse_json_object
from review_buddy.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMError,
    LLMProviderNotConfiguredError,
    LLMRateLimitError,
    LLMResponseError,
    is_retryable,
)
from review_buddy.llm.factory import (
    get_available_providers,
    get_llm,
    get_provider,
    register_provider,
)

__all__ = [
    # Base classes
    "BaseLLM",
    "OllamaLLM",
    "parse_json_object",
    # Factory functions
    "get_llm",
    "get_provider",
    "get_available_providers",
    "register_provider",
    # Exceptions
    "LLMError",
    "LLMConnectionError",
    "LLMAuthenticationError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMProviderNotConfiguredError",
    "is_retryable",
]
