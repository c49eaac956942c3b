"""Gemini LLM implementation using the Generative Language REST API via httpx."""

import logging
from typing import Any

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from review_buddy.config import settings
from review_buddy.llm.base import BaseLLM
from review_buddy.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    is_retryable,
)

logger = logging.getLogger(__name__)


class GeminiLLM(BaseLLM):
    """Gemini LLM client using an API key.

    The key can come from the environment or from the active brand
    configuration; the caller decides which one to pass in.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_output_tokens: int = 2048,
        temperature: float = 0.2,
    ):
        """Initialize Gemini LLM client.

        Args:
            api_key: Gemini API key (defaults to settings.GEMINI_API_KEY)
            model: Model name (defaults to settings.GEMINI_MODEL)
            base_url: API base URL (defaults to settings.GEMINI_API_URL)
            timeout: Request timeout in seconds
            max_output_tokens: Maximum tokens in response
            temperature: Sampling temperature (0.0-1.0)
        """
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_API_URL).rstrip("/")
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

        if not self.api_key:
            logger.warning("Gemini API key not configured")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "gemini"

    async def is_available(self) -> bool:
        """Check if Gemini is configured (API key exists)."""
        return bool(self.api_key)

    def _endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _get_headers(self) -> dict[str, str]:
        """Get API request headers."""
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception(is_retryable),
        reraise=True,
    )
    async def generate(self, prompt: str, json_mode: bool = False, **kwargs: Any) -> str:
        """Generate text from a prompt using Gemini.

        Args:
            prompt: The prompt to send to Gemini
            json_mode: Ask for an ``application/json`` response
            **kwargs: Additional parameters (max_output_tokens, temperature)

        Returns:
            Generated text response

        Raises:
            LLMAuthenticationError: If API key is invalid
            LLMRateLimitError: If rate limit is exceeded
            LLMConnectionError: If connection fails
            LLMResponseError: If the response carries no candidates
        """
        if not self.api_key:
            raise LLMAuthenticationError(
                "API key not configured", provider=self.provider_name
            )

        generation_config: dict[str, Any] = {
            "maxOutputTokens": kwargs.get("max_output_tokens", self.max_output_tokens),
            "temperature": kwargs.get("temperature", self.temperature),
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
            if "temperature" not in kwargs:
                generation_config["temperature"] = 0

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    self._endpoint(),
                    headers=self._get_headers(),
                    json={
                        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                        "generationConfig": generation_config,
                    },
                )
            except httpx.ConnectError as e:
                raise LLMConnectionError(
                    f"Failed to connect: {e}", provider=self.provider_name
                ) from e
            except httpx.TimeoutException as e:
                raise LLMConnectionError(
                    f"Request timed out: {e}", provider=self.provider_name
                ) from e

        if response.status_code in (401, 403):
            raise LLMAuthenticationError("Invalid API key", provider=self.provider_name)
        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            raise LLMRateLimitError(
                "Rate limit exceeded",
                provider=self.provider_name,
                retry_after=float(retry_after) if retry_after else None,
            )
        if response.status_code >= 500:
            raise LLMConnectionError(
                f"Gemini server error ({response.status_code})", provider=self.provider_name
            )

        response.raise_for_status()
        data = response.json()

        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = data.get("promptFeedback", {}).get("blockReason")
            raise LLMResponseError(
                f"No candidates returned (block reason: {block_reason})",
                provider=self.provider_name,
            )

        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)

    async def check_health(self) -> bool:
        """Check if the Gemini API is reachable with the configured key."""
        if not self.api_key:
            logger.warning("Gemini health check: No API key configured")
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(
                    f"{self.base_url}/models/{self.model}",
                    headers=self._get_headers(),
                )
                return response.status_code == 200
        except Exception as e:
            logger.error(f"Gemini health check failed: {type(e).__name__}: {e}")
            return False
