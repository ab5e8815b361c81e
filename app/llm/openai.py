"""OpenAI provider for chat completions and moderation."""

from dataclasses import dataclass, field

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI
from openai import AsyncOpenAI

from app.core.exception import ChatbotUnavailableError


@dataclass
class OpenAIProvider:
    """OpenAI provider with lazily constructed clients.

    Nothing talks to OpenAI until first use, so the site starts without a
    key; the first call then fails with ChatbotUnavailableError.
    """

    api_key: str | None
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    temperature: float = 0.7
    max_tokens: int = 500
    timeout: int = 60
    max_retries: int = 2
    _chat_model: BaseChatModel | None = field(default=None, init=False, repr=False)
    _client: AsyncOpenAI | None = field(default=None, init=False, repr=False)

    def _require_key(self) -> str:
        if not self.api_key:
            raise ChatbotUnavailableError()
        return self.api_key

    def get_chat_model(self) -> BaseChatModel:
        """Return the OpenAI chat model, creating it on first use."""
        if self._chat_model is None:
            self._chat_model = ChatOpenAI(
                api_key=self._require_key(),
                base_url=self.base_url,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
        return self._chat_model

    def get_client(self) -> AsyncOpenAI:
        """Return the raw async OpenAI client, creating it on first use."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._require_key(),
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
        return self._client

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)
