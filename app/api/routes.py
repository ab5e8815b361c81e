"""Public API routes: health and the chat widget endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import (
    ChatMessageRequest,
    ChatMessageResponse,
    ErrorResponse,
    FallbackResponse,
    FeedbackRequest,
    HealthResponse,
    InquiryRequest,
    InquiryResponse,
    RateLimitResponse,
    SessionRequest,
    SessionResponse,
    StatusResponse,
)
from app.config import Settings, get_settings
from app.core.chat import ChatService
from app.core.exception import (
    CompletionError,
    CompletionFailure,
    InvalidMessageError,
    ModerationUnavailableError,
)
from app.db.connection import check_db, get_db_session
from app.db.models import Inquiry
from app.dependencies import (
    enforce_chat_rate_limit,
    get_chat_service,
    get_llm_provider,
)

logger = logging.getLogger(__name__)

router = APIRouter()

FALLBACK_STATUS = 503


def _fallback(category: CompletionFailure, message: str) -> JSONResponse:
    body = FallbackResponse(message=message, category=category.value)
    return JSONResponse(status_code=FALLBACK_STATUS, content=body.model_dump(by_alias=True))


# Health


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Check application health status."""
    provider = get_llm_provider()
    database_healthy = await check_db()

    return HealthResponse(
        status="healthy" if database_healthy else "degraded",
        version=settings.app_version,
        environment=settings.env,
        llm_provider=provider.provider_name,
        llm_model=provider.model_name,
        ai_configured=provider.is_configured,
        database_healthy=database_healthy,
    )


# Chat


@router.post(
    "/chat/session",
    response_model=SessionResponse,
    tags=["Chat"],
)
async def create_session(
    request: SessionRequest,
    chat_service: ChatService = Depends(get_chat_service),
) -> SessionResponse:
    """Issue a new chat session id."""
    try:
        conversation = await chat_service.create_session(
            user_name=request.user_name,
            user_email=request.user_email,
            is_logged=request.is_logged,
        )
    except Exception:
        logger.exception("Failed to create chat session")
        raise HTTPException(status_code=500, detail="Failed to create session")

    return SessionResponse(session_id=conversation.session_id, conversation_id=conversation.id)


@router.post(
    "/chat/message",
    response_model=ChatMessageResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": RateLimitResponse},
        503: {"model": FallbackResponse},
    },
    tags=["Chat"],
)
async def send_message(
    request: ChatMessageRequest,
    client_id: str = Depends(enforce_chat_rate_limit),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Send a user message and get the assistant's reply.

    Unknown session ids create their conversation on first use. Flagged
    content gets a canned reply with `isModerated`. Provider failures
    return `fallback: true` so the widget can offer an inquiry form.
    """
    try:
        result = await chat_service.send_message(
            request.session_id,
            request.message,
            client_id=client_id,
            is_logged=request.is_logged,
            user_name=request.user_name,
            user_email=request.user_email,
        )
    except InvalidMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CompletionError as e:
        return _fallback(e.category, e.message)
    except ModerationUnavailableError as e:
        return _fallback(CompletionFailure.UNAVAILABLE, str(e))
    except Exception:
        logger.exception("Chat processing failed for session %s", request.session_id)
        return _fallback(
            CompletionFailure.UNAVAILABLE,
            CompletionError(CompletionFailure.UNAVAILABLE).message,
        )

    return ChatMessageResponse(
        reply=result.reply,
        conversation_id=result.conversation_id,
        tokens_used=result.tokens_used,
        is_moderated=result.is_moderated,
    )


@router.post(
    "/chat/feedback",
    response_model=StatusResponse,
    tags=["Chat"],
)
async def submit_feedback(request: FeedbackRequest) -> StatusResponse:
    """Record feedback on a reply."""
    logger.info(
        "Chat feedback: message=%s rating=%s comment=%s",
        request.message_id,
        request.rating,
        request.comment,
    )
    return StatusResponse(message="Feedback received")


@router.post(
    "/chat/inquiry",
    response_model=InquiryResponse,
    status_code=201,
    tags=["Chat"],
)
async def create_inquiry(
    request: InquiryRequest,
    db: AsyncSession = Depends(get_db_session),
) -> InquiryResponse:
    """Route the question to staff when the assistant cannot answer."""
    message = request.message
    if request.session_id:
        message = f"{message}\n\n(Chat session: {request.session_id})"

    inquiry = Inquiry(
        name=request.name,
        email=request.email,
        message=message,
        source="chatbot",
    )
    db.add(inquiry)
    await db.flush()
    logger.info("Inquiry %d created from chat fallback", inquiry.id)

    return InquiryResponse.model_validate(inquiry)
