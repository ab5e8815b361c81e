"""Chat pipeline exceptions."""

from enum import StrEnum


class ChatError(Exception):
    """Base exception for chat pipeline errors."""

    pass


class InvalidMessageError(ChatError):
    """The chat request violates an input constraint."""

    pass


class RateLimitExceeded(ChatError):
    """A client sent more messages than its window allows."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            f"Too many messages. Please wait {retry_after} seconds before trying again."
        )


class ChatbotUnavailableError(ChatError):
    """No provider credential is configured."""

    def __init__(self, message: str = "OpenAI API key not configured. Chatbot is unavailable."):
        super().__init__(message)


class ModerationUnavailableError(ChatError):
    """The moderation provider failed and the policy is to fail closed."""

    pass


class CompletionFailure(StrEnum):
    """User-facing categories for completion provider failures."""

    RATE_LIMITED = "rate_limited"
    AUTHENTICATION = "authentication"
    BAD_REQUEST = "bad_request"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    NOT_CONFIGURED = "not_configured"


FAILURE_MESSAGES: dict[CompletionFailure, str] = {
    CompletionFailure.RATE_LIMITED: "Rate limit exceeded. Please try again in a moment.",
    CompletionFailure.AUTHENTICATION: (
        "The assistant is not configured correctly. Please contact the site administrator."
    ),
    CompletionFailure.BAD_REQUEST: (
        "Invalid request to the AI service. Please try rephrasing your message."
    ),
    CompletionFailure.UNAVAILABLE: "AI service temporarily unavailable. Please try again later.",
    CompletionFailure.TIMEOUT: "The AI service is responding slowly. Please try again shortly.",
    CompletionFailure.NOT_CONFIGURED: "Chatbot is unavailable. Please leave us an inquiry instead.",
}


class CompletionError(ChatError):
    """A completion call failed; carries a user-safe category and message."""

    def __init__(self, category: CompletionFailure):
        self.category = category
        super().__init__(FAILURE_MESSAGES[category])

    @property
    def message(self) -> str:
        return FAILURE_MESSAGES[self.category]
