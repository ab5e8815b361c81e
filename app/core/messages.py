"""Message types for chat completions."""

from dataclasses import dataclass
from enum import StrEnum


class MessageRole(StrEnum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatTurn:
    """One role/content turn passed to the completion provider."""

    role: MessageRole
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatTurn":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatTurn":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatTurn":
        return cls(role=MessageRole.ASSISTANT, content=content)


def has_system_turn(turns: list[ChatTurn]) -> bool:
    """Return True if any turn carries the system role."""
    return any(turn.role == MessageRole.SYSTEM for turn in turns)
