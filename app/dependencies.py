"""FastAPI dependency injection."""

import secrets
from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.core.chat import ChatService
from app.core.knowledge import KnowledgeBase, PromptComposer
from app.core.moderation import ModerationGate
from app.core.rate_limit import RateLimiter
from app.db.connection import get_db_session, get_session_factory
from app.db.conversations import ConversationStore
from app.llm import CompletionClient, OpenAIProvider

UNKNOWN_CLIENT = "unknown"

_admin_token_header = APIKeyHeader(name="X-Admin-Token", auto_error=False)
_admin_bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_llm_provider() -> OpenAIProvider:
    """Get cached provider; clients inside it are created on first use."""
    settings = get_settings()
    return OpenAIProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        temperature=settings.openai_temperature,
        max_tokens=settings.openai_max_tokens,
        timeout=settings.openai_timeout,
        max_retries=settings.openai_max_retries,
    )


@lru_cache
def get_completion_client() -> CompletionClient:
    """Get cached completion client."""
    settings = get_settings()
    return CompletionClient(
        get_llm_provider(),
        timeout=settings.chat_turn_timeout,
        max_tokens=settings.openai_max_tokens,
        temperature=settings.openai_temperature,
    )


@lru_cache
def get_moderation_gate() -> ModerationGate:
    """Get cached moderation gate sharing the provider's client."""
    settings = get_settings()
    return ModerationGate(
        client_factory=get_llm_provider().get_client,
        model=settings.moderation_model,
        failure_policy=settings.moderation_failure_policy,
        enabled=settings.moderation_enabled,
    )


@lru_cache
def get_rate_limiter() -> RateLimiter:
    """Get the process-wide chat rate limiter."""
    settings = get_settings()
    return RateLimiter(
        limit=settings.chat_rate_limit,
        window_seconds=settings.chat_rate_window,
        grace_seconds=settings.rate_limit_grace_period,
    )


@lru_cache
def get_prompt_composer() -> PromptComposer:
    """Get cached prompt composer."""
    settings = get_settings()
    return PromptComposer(
        assistant_name=settings.assistant_name,
        institution_name=settings.institution_name,
    )


def get_knowledge_base() -> KnowledgeBase:
    """Get a knowledge base reading from the application database."""
    settings = get_settings()
    return KnowledgeBase(
        get_session_factory(),
        news_limit=settings.knowledge_news_limit,
        events_limit=settings.knowledge_events_limit,
        overview_max_chars=settings.knowledge_overview_max_chars,
    )


def get_conversation_store(
    db: AsyncSession = Depends(get_db_session),
) -> ConversationStore:
    """Get conversation store bound to the request's database session."""
    return ConversationStore(db)


def get_chat_service(
    store: ConversationStore = Depends(get_conversation_store),
    moderation: ModerationGate = Depends(get_moderation_gate),
    knowledge: KnowledgeBase = Depends(get_knowledge_base),
    composer: PromptComposer = Depends(get_prompt_composer),
    completion: CompletionClient = Depends(get_completion_client),
    settings: Settings = Depends(get_settings),
) -> ChatService:
    """Get chat service for the current request."""
    return ChatService(
        store=store,
        moderation=moderation,
        knowledge=knowledge,
        composer=composer,
        completion=completion,
        max_message_length=settings.chat_max_message_length,
        history_limit=settings.chat_history_limit,
        turn_timeout=settings.chat_turn_timeout,
    )


def client_identifier(request: Request) -> str:
    """Client address, then the first forwarded-for hop, then a sentinel."""
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return UNKNOWN_CLIENT


def enforce_chat_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> str:
    """Count the message against the client's window.

    Returns:
        The client identifier used as the rate-limit key.

    Raises:
        RateLimitExceeded: Handled by the application's exception handler.
    """
    identifier = client_identifier(request)
    limiter.hit(identifier)
    return identifier


def require_admin(
    token: str | None = Depends(_admin_token_header),
    bearer: HTTPAuthorizationCredentials | None = Depends(_admin_bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    """Allow the request only with the configured admin token."""
    if not settings.admin_api_key:
        raise HTTPException(status_code=401, detail="Admin access is not configured")

    supplied = token or (bearer.credentials if bearer else None)
    if not supplied:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not secrets.compare_digest(supplied.encode(), settings.admin_api_key.encode()):
        raise HTTPException(status_code=401, detail="Invalid admin token")
