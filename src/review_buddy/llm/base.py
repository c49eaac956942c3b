"""Provider-neutral LLM interface, JSON extraction, and the local Ollama client."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from review_buddy.config import settings
from review_buddy.llm.exceptions import LLMConnectionError, LLMResponseError, is_retryable

logger = logging.getLogger(__name__)

JSON_ONLY_INSTRUCTION = (
    "IMPORTANT: Respond ONLY with valid JSON. No markdown, no explanation, just the JSON object."
)

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_json_object(response_text: str | None) -> dict[str, Any] | None:
    """Parse a JSON object out of raw LLM text.

    Accepts a bare object, an object inside a markdown fence, or an object
    embedded in surrounding prose. Returns None when no JSON object can be
    recovered, so callers can tell a failed parse from an empty object.
    """
    if not response_text:
        return None

    text = response_text.strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    candidates = [text]
    start, end = text.find("{"), text.rfind("}")
    if -1 < start < end and text[start : end + 1] != text:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


class BaseLLM(ABC):
    """A model that can assess reviews and draft replies."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Short provider name shown in progress messages (e.g. 'gemini')."""

    @abstractmethod
    async def generate(self, prompt: str, json_mode: bool = False, **kwargs: Any) -> str:
        """Return the model's raw text for a prompt.

        With ``json_mode`` the provider is asked to constrain its output to a
        JSON object; the text is still returned unparsed.
        """

    @abstractmethod
    async def check_health(self) -> bool:
        """Probe the provider over the network."""

    async def is_available(self) -> bool:
        """Whether the provider has what it needs to be called, without I/O."""
        return True

    async def generate_json(self, prompt: str, **kwargs: Any) -> dict[str, Any]:
        """Generate in JSON mode and parse the result.

        Raises:
            LLMResponseError: If the output holds no JSON object
        """
        response_text = await self.generate(prompt, json_mode=True, **kwargs)
        data = parse_json_object(response_text)
        if data is None:
            logger.debug(f"Unparsable {self.provider_name} output: {response_text!r}")
            raise LLMResponseError("Output is not a JSON object", provider=self.provider_name)
        return data


class OllamaLLM(BaseLLM):
    """Self-hosted model served by Ollama; needs no API key."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 120.0,
    ):
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model = model or settings.OLLAMA_LLM_MODEL
        self.timeout = timeout

    @property
    def provider_name(self) -> str:
        return "ollama"

    async def is_available(self) -> bool:
        return bool(self.base_url)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception(is_retryable),
        reraise=True,
    )
    async def generate(self, prompt: str, json_mode: bool = False, **kwargs: Any) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }
        if json_mode:
            payload["format"] = "json"
            payload["options"] = {"temperature": 0}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/api/generate", json=payload)
                response.raise_for_status()
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            raise LLMConnectionError(f"{type(e).__name__}: {e}", provider="ollama") from e
        return response.json().get("response", "")

    async def check_health(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self.base_url}/api/tags")
        except Exception as e:
            logger.error(f"Ollama health check failed: {e}")
            return False
        if response.status_code != 200:
            return False
        models = [m.get("name") for m in response.json().get("models", [])]
        if self.model not in models:
            logger.warning(f"Ollama is up but model {self.model} is not pulled")
        return True
