"""Core module - chat pipeline building blocks."""

from app.core.exception import (
    ChatbotUnavailableError,
    ChatError,
    CompletionError,
    CompletionFailure,
    InvalidMessageError,
    ModerationUnavailableError,
    RateLimitExceeded,
)
from app.core.messages import ChatTurn, MessageRole
from app.core.rate_limit import RateLimiter, RateLimitRecord

__all__ = [
    # Errors
    "ChatError",
    "ChatbotUnavailableError",
    "CompletionError",
    "CompletionFailure",
    "InvalidMessageError",
    "ModerationUnavailableError",
    "RateLimitExceeded",
    # Messages
    "ChatTurn",
    "MessageRole",
    # Rate limiting
    "RateLimiter",
    "RateLimitRecord",
]
