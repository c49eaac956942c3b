"""Claude provider over the Anthropic Messages API."""

import logging
from typing import Any

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from review_buddy.config import settings
from review_buddy.llm.base import JSON_ONLY_INSTRUCTION, BaseLLM
from review_buddy.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    is_retryable,
)

logger = logging.getLogger(__name__)

ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"

# 529 is Anthropic's "overloaded" status; it clears like a rate limit.
_BACKOFF_STATUSES = (429, 529)


class ClaudeLLM(BaseLLM):
    """Drafts replies and risk assessments with Claude.

    Risk assessments run at temperature 0 so the same review is assessed
    the same way on every run; replies keep the model default.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_tokens: int = 1024,
    ):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANTHROPIC_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.max_tokens = max_tokens

    @property
    def provider_name(self) -> str:
        return "claude"

    async def is_available(self) -> bool:
        return bool(self.api_key)

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _payload(self, prompt: str, json_mode: bool, max_tokens: int | None) -> dict[str, Any]:
        if json_mode:
            prompt = f"{prompt}\n\n{JSON_ONLY_INSTRUCTION}"
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if json_mode:
            payload["temperature"] = 0
        return payload

    def _check_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status in (401, 403):
            raise LLMAuthenticationError(
                f"Anthropic rejected the API key ({status})", provider=self.provider_name
            )
        if status in _BACKOFF_STATUSES:
            retry_after = response.headers.get("retry-after")
            raise LLMRateLimitError(
                "Anthropic is rate limiting or overloaded",
                provider=self.provider_name,
                retry_after=float(retry_after) if retry_after else None,
            )
        if status >= 500:
            raise LLMConnectionError(
                f"Anthropic server error ({status})", provider=self.provider_name
            )
        if status >= 400:
            raise LLMResponseError(
                f"Anthropic request failed ({status}): {response.text[:200]}",
                provider=self.provider_name,
            )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception(is_retryable),
        reraise=True,
    )
    async def generate(self, prompt: str, json_mode: bool = False, **kwargs: Any) -> str:
        """Send one user turn and return the concatenated text blocks.

        The Messages API has no JSON response mode, so ``json_mode`` appends
        an instruction to the prompt instead.

        Raises:
            LLMAuthenticationError: Missing or rejected API key (not retried)
            LLMRateLimitError: Rate limited or overloaded after retries
            LLMConnectionError: Network failure or 5xx after retries
            LLMResponseError: Other error statuses or an empty answer
        """
        if not self.api_key:
            raise LLMAuthenticationError("API key not configured", provider=self.provider_name)

        payload = self._payload(prompt, json_mode, kwargs.get("max_tokens"))
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{ANTHROPIC_BASE_URL}/messages", headers=self._headers, json=payload
                )
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            raise LLMConnectionError(
                f"{type(e).__name__}: {e}", provider=self.provider_name
            ) from e

        self._check_status(response)
        data = response.json()

        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        if not text:
            raise LLMResponseError(
                f"Empty answer (stop_reason={data.get('stop_reason')})",
                provider=self.provider_name,
            )
        if data.get("stop_reason") == "max_tokens":
            logger.warning(f"Claude answer truncated at {payload['max_tokens']} tokens")
        return text

    async def check_health(self) -> bool:
        """Verify the key by listing models, which is not billed."""
        if not self.api_key:
            return False
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{ANTHROPIC_BASE_URL}/models", headers=self._headers)
        except httpx.HTTPError as e:
            logger.error(f"Claude health check failed: {type(e).__name__}: {e}")
            return False
        return response.status_code == 200
