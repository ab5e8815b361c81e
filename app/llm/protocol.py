"""Provider protocol for the chat assistant."""

from typing import Protocol, runtime_checkable

from langchain_core.language_models import BaseChatModel
from openai import AsyncOpenAI


@runtime_checkable
class LLMProvider(Protocol):
    """Source of the chat model and the moderation client.

    Implementations build their clients lazily so that a missing
    credential only surfaces when a chat turn actually needs it.
    """

    def get_chat_model(self) -> BaseChatModel:
        """Chat model used for completions.

        Raises:
            ChatbotUnavailableError: If the provider has no credential.
        """
        ...

    def get_client(self) -> AsyncOpenAI:
        """Raw async client, used for moderation.

        Raises:
            ChatbotUnavailableError: If the provider has no credential.
        """
        ...

    @property
    def model_name(self) -> str: ...

    @property
    def provider_name(self) -> str: ...

    @property
    def is_configured(self) -> bool:
        """True when a credential is available."""
        ...
