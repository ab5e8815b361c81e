"""LLM provider module."""

from app.llm.client import Completion, CompletionClient, classify_provider_error
from app.llm.openai import OpenAIProvider
from app.llm.protocol import LLMProvider

__all__ = [
    "Completion",
    "CompletionClient",
    "LLMProvider",
    "OpenAIProvider",
    "classify_provider_error",
]
