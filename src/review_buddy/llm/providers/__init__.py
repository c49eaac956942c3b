"""LLM provider implementations."""

from review_buddy.llm.providers.claude import ClaudeLLM
from review_buddy.llm.providers.gemini import GeminiLLM

__all__ = ["ClaudeLLM", "GeminiLLM"]
