"""Completion client wrapping the chat model with error normalization."""

import asyncio
import logging
from dataclasses import dataclass

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from openai import APITimeoutError

from app.core.exception import (
    ChatbotUnavailableError,
    CompletionError,
    CompletionFailure,
)
from app.core.messages import ChatTurn, MessageRole, has_system_turn
from app.llm.protocol import LLMProvider

logger = logging.getLogger(__name__)


@dataclass
class Completion:
    """Generated reply plus token usage."""

    content: str
    tokens_used: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0


def classify_provider_error(error: BaseException) -> CompletionFailure:
    """Map a provider exception to a user-facing failure category."""
    if isinstance(error, ChatbotUnavailableError):
        return CompletionFailure.NOT_CONFIGURED
    if isinstance(error, (TimeoutError, APITimeoutError)):
        return CompletionFailure.TIMEOUT

    match getattr(error, "status_code", None):
        case 429:
            return CompletionFailure.RATE_LIMITED
        case 401:
            return CompletionFailure.AUTHENTICATION
        case 400:
            return CompletionFailure.BAD_REQUEST
        case _:
            return CompletionFailure.UNAVAILABLE


def _to_langchain_messages(turns: list[ChatTurn]) -> list[BaseMessage]:
    """Convert chat turns to LangChain message format."""
    lc_messages: list[BaseMessage] = []
    for turn in turns:
        match turn.role:
            case MessageRole.SYSTEM:
                lc_messages.append(SystemMessage(content=turn.content))
            case MessageRole.USER:
                lc_messages.append(HumanMessage(content=turn.content))
            case MessageRole.ASSISTANT:
                lc_messages.append(AIMessage(content=turn.content))
    return lc_messages


def _usage(response: AIMessage) -> tuple[int, int, int]:
    """Extract (prompt, completion, total) token counts from a response."""
    usage = getattr(response, "usage_metadata", None)
    if usage:
        prompt = usage.get("input_tokens", 0) or 0
        completion = usage.get("output_tokens", 0) or 0
        total = usage.get("total_tokens", 0) or prompt + completion
        return prompt, completion, total

    token_usage = (getattr(response, "response_metadata", None) or {}).get("token_usage") or {}
    return (
        token_usage.get("prompt_tokens", 0) or 0,
        token_usage.get("completion_tokens", 0) or 0,
        token_usage.get("total_tokens", 0) or 0,
    )


class CompletionClient:
    """Produces assistant replies from ordered chat turns.

    Example:
        client = CompletionClient(provider, timeout=30)
        completion = await client.complete([ChatTurn.user("Hi")], system_prompt)
    """

    def __init__(
        self,
        provider: LLMProvider,
        timeout: float | None = None,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ):
        """Initialize the client.

        Args:
            provider: Provider supplying the chat model.
            timeout: End-to-end limit for one completion call in seconds.
            max_tokens: Default output token cap.
            temperature: Default sampling temperature.
        """
        self.provider = provider
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def complete(
        self,
        turns: list[ChatTurn],
        system_prompt: str | None = None,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> Completion:
        """Generate the next assistant turn.

        The system prompt is prepended only when the turns carry no system
        turn of their own, so callers can override grounding entirely.

        Args:
            turns: Conversation turns, oldest first.
            system_prompt: Knowledge-grounded instruction.
            max_tokens: Per-call override of the output cap.
            temperature: Per-call override of the temperature.

        Returns:
            The generated completion.

        Raises:
            CompletionError: For any provider failure, categorized.
        """
        if system_prompt and not has_system_turn(turns):
            turns = [ChatTurn.system(system_prompt), *turns]

        try:
            model = self.provider.get_chat_model().bind(
                max_tokens=max_tokens if max_tokens is not None else self.max_tokens,
                temperature=temperature if temperature is not None else self.temperature,
            )
            response = await asyncio.wait_for(
                model.ainvoke(_to_langchain_messages(turns)),
                timeout=self.timeout,
            )
        except Exception as e:
            category = classify_provider_error(e)
            logger.error("Completion failed (%s): %s", category, e)
            raise CompletionError(category) from e

        prompt_tokens, completion_tokens, total_tokens = _usage(response)
        content = response.content if isinstance(response.content, str) else str(response.content)

        return Completion(
            content=content,
            tokens_used=total_tokens,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
