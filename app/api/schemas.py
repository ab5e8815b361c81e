"""API request and response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys for the chat widget."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Health

class HealthResponse(CamelModel):
    """Health check response."""

    status: str
    version: str
    environment: str
    llm_provider: str
    llm_model: str
    ai_configured: bool
    database_healthy: bool


# Chat

class SessionRequest(CamelModel):
    """Chat session creation body."""

    user_name: str | None = None
    user_email: str | None = None
    is_logged: bool = True


class SessionResponse(CamelModel):
    """Newly issued chat session."""

    session_id: str
    conversation_id: int


class ChatMessageRequest(CamelModel):
    """Chat message body.

    Presence and length are checked by the chat service so that rejected
    requests still count against the sender's rate limit.
    """

    session_id: str | None = None
    message: str | None = None
    is_logged: bool = True
    user_name: str | None = None
    user_email: str | None = None


class ChatMessageResponse(CamelModel):
    """Assistant reply, or the canned reply for moderated content."""

    reply: str
    conversation_id: int | None = None
    tokens_used: int = 0
    is_moderated: bool = False


class FallbackResponse(CamelModel):
    """Failed chat turn; the widget should offer a human-routed inquiry."""

    error: str = "AI service error"
    message: str
    category: str
    fallback: bool = True


class RateLimitResponse(CamelModel):
    """Rate limit rejection."""

    error: str = "Rate limit exceeded"
    message: str
    retry_after: int


class FeedbackRequest(CamelModel):
    """Feedback on an assistant reply."""

    message_id: int | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, max_length=2000)


class InquiryRequest(CamelModel):
    """Human-routed inquiry submitted from the chat widget."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    message: str = Field(min_length=1, max_length=5000)
    session_id: str | None = None


class InquiryResponse(CamelModel):
    """Stored inquiry."""

    id: int
    name: str
    email: str
    message: str
    source: str
    created_at: datetime


class StatusResponse(CamelModel):
    """Simple acknowledgement."""

    message: str


# Admin: conversations

class ConversationInfo(CamelModel):
    """Conversation summary for the admin list."""

    id: int
    session_id: str
    user_name: str | None = None
    user_email: str | None = None
    is_logged: bool
    resolved: bool
    message_count: int
    last_message: str
    created_at: datetime
    updated_at: datetime


class MessageInfo(CamelModel):
    """One stored conversation turn."""

    id: int
    role: str
    content: str
    token_count: int | None = None
    created_at: datetime


class ConversationDetail(CamelModel):
    """Conversation with all of its messages."""

    id: int
    session_id: str
    user_name: str | None = None
    user_email: str | None = None
    is_logged: bool
    resolved: bool
    source: str
    created_at: datetime
    updated_at: datetime
    messages: list[MessageInfo] = []


class UsageResponse(CamelModel):
    """Token usage statistics."""

    total_tokens: int
    total_messages: int
    by_day: dict[str, int]


# Admin: knowledge

class KnowledgePreviewResponse(CamelModel):
    """Formatted knowledge sections and the records behind them."""

    schools: str
    programs: str
    news: str
    events: str
    raw: dict[str, list[dict[str, Any]]]


class KnowledgeStatsResponse(CamelModel):
    """Knowledge base size statistics."""

    schools: int
    programs: int
    news: int
    events: int
    estimated_tokens: int
    last_updated: datetime


class PromptTestRequest(CamelModel):
    """Sample message for prompt inspection."""

    message: str = Field(min_length=1, max_length=2000)
    run: bool = Field(
        default=False,
        description="Also call the completion provider with the composed prompt",
    )
    system_prompt: str | None = Field(
        default=None,
        description="Overrides the knowledge-grounded prompt when running",
    )


class PromptTestResponse(CamelModel):
    """Composed prompt for a sample message."""

    message: str
    sections: list[str]
    system_prompt: str
    prompt_length: int
    estimated_tokens: int
    reply: str | None = None
    tokens_used: int | None = None


# Errors

class ErrorResponse(CamelModel):
    """Error response."""

    error: str
    detail: str | None = None
    code: str | None = None
