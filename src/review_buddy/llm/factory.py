"""Choose the LLM that will assess and answer a brand's reviews."""

import logging
from typing import Callable

from review_buddy.config import settings
from review_buddy.llm.base import BaseLLM, OllamaLLM
from review_buddy.llm.exceptions import LLMProviderNotConfiguredError

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str | None], BaseLLM]

_PROVIDER_REGISTRY: dict[str, ProviderFactory] = {}

# Tried in this order when LLM_PROVIDER is empty.
AUTO_SELECT_ORDER = ("gemini", "claude", "ollama")


def register_provider(name: str) -> Callable[[ProviderFactory], ProviderFactory]:
    """Register a factory that builds a provider from an optional brand API key."""

    def decorator(factory: ProviderFactory) -> ProviderFactory:
        _PROVIDER_REGISTRY[name.lower()] = factory
        return factory

    return decorator


def get_available_providers() -> list[str]:
    return list(_PROVIDER_REGISTRY)


def get_provider(name: str, api_key: str | None = None) -> BaseLLM:
    """Build a registered provider by name (case-insensitive).

    Raises:
        LLMProviderNotConfiguredError: If no provider has that name
    """
    factory = _PROVIDER_REGISTRY.get(name.lower())
    if factory is None:
        available = ", ".join(get_available_providers())
        raise LLMProviderNotConfiguredError(
            f"Unknown provider '{name}'. Available: {available}", provider=name
        )
    return factory(api_key)


def _has_credentials(name: str, brand_api_key: str | None) -> bool:
    if name == "gemini":
        return bool(brand_api_key or settings.GEMINI_API_KEY)
    if name == "claude":
        return bool(settings.ANTHROPIC_API_KEY)
    if name == "ollama":
        return bool(settings.OLLAMA_BASE_URL)
    return False


async def get_llm(provider: str | None = None, api_key: str | None = None) -> BaseLLM:
    """Resolve the LLM for one processing run.

    An explicit ``provider`` or ``LLM_PROVIDER`` is used as-is and must have
    credentials. Otherwise providers are tried in AUTO_SELECT_ORDER.
    ``api_key`` is the active brand's Gemini key; it overrides
    GEMINI_API_KEY and is ignored by the other providers.

    Raises:
        LLMProviderNotConfiguredError: If no usable provider is found
    """
    requested = provider or settings.LLM_PROVIDER
    if requested:
        llm = get_provider(requested, api_key=api_key)
        if not await llm.is_available():
            raise LLMProviderNotConfiguredError(
                f"Configured provider '{requested}' has no credentials", provider=requested
            )
        logger.info(f"Using LLM provider: {llm.provider_name}")
        return llm

    for name in AUTO_SELECT_ORDER:
        if not _has_credentials(name, api_key):
            continue
        llm = get_provider(name, api_key=api_key)
        if await llm.is_available():
            logger.info(f"Auto-selected LLM provider: {name}")
            return llm

    raise LLMProviderNotConfiguredError(
        "No LLM provider is configured. Add a Gemini API key to the brand settings, "
        "or set GEMINI_API_KEY, ANTHROPIC_API_KEY or OLLAMA_BASE_URL.",
        provider="none",
    )


@register_provider("gemini")
def _create_gemini(api_key: str | None = None) -> BaseLLM:
    from review_buddy.llm.providers.gemini import GeminiLLM

    return GeminiLLM(api_key=api_key)


@register_provider("claude")
def _create_claude(api_key: str | None = None) -> BaseLLM:
    from review_buddy.llm.providers.claude import ClaudeLLM

    return ClaudeLLM()


@register_provider("ollama")
def _create_ollama(api_key: str | None = None) -> BaseLLM:
    return OllamaLLM()
