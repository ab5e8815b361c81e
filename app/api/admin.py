"""Admin API routes: conversation review, usage and knowledge inspection."""

import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.schemas import (
    ConversationDetail,
    ConversationInfo,
    KnowledgePreviewResponse,
    KnowledgeStatsResponse,
    PromptTestRequest,
    PromptTestResponse,
    StatusResponse,
    UsageResponse,
)
from app.core.exception import CompletionError
from app.core.knowledge import SECTION_ORDER, KnowledgeBase, PromptComposer, select_sections
from app.core.messages import ChatTurn
from app.db.conversations import ConversationStore
from app.dependencies import (
    get_completion_client,
    get_conversation_store,
    get_knowledge_base,
    get_prompt_composer,
    require_admin,
)
from app.llm import CompletionClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


# Conversations


@router.get(
    "/chat/conversations",
    response_model=list[ConversationInfo],
    tags=["Admin"],
)
async def list_conversations(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    store: ConversationStore = Depends(get_conversation_store),
) -> list[ConversationInfo]:
    """List conversations, most recently updated first."""
    summaries = await store.list_all(limit=limit, offset=offset)
    return [
        ConversationInfo(
            id=s.conversation.id,
            session_id=s.conversation.session_id,
            user_name=s.conversation.user_name,
            user_email=s.conversation.user_email,
            is_logged=s.conversation.is_logged,
            resolved=s.conversation.resolved,
            message_count=s.message_count,
            last_message=s.last_message,
            created_at=s.conversation.created_at,
            updated_at=s.conversation.updated_at,
        )
        for s in summaries
    ]


@router.get(
    "/chat/conversations/{conversation_id}",
    response_model=ConversationDetail,
    tags=["Admin"],
)
async def get_conversation(
    conversation_id: int,
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationDetail:
    """Get a conversation with its full message history."""
    conversation = await store.get_with_messages(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return ConversationDetail.model_validate(conversation)


@router.patch(
    "/chat/conversations/{conversation_id}/resolve",
    response_model=ConversationDetail,
    tags=["Admin"],
)
async def toggle_conversation_resolved(
    conversation_id: int,
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationDetail:
    """Mark a conversation resolved, or reopen it."""
    conversation = await store.toggle_resolved(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    conversation = await store.get_with_messages(conversation_id)
    return ConversationDetail.model_validate(conversation)


@router.delete(
    "/chat/conversations/{conversation_id}",
    response_model=StatusResponse,
    tags=["Admin"],
)
async def delete_conversation(
    conversation_id: int,
    store: ConversationStore = Depends(get_conversation_store),
) -> StatusResponse:
    """Delete a conversation and all of its messages."""
    deleted = await store.delete(conversation_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Conversation not found")

    logger.info("Deleted conversation %d", conversation_id)
    return StatusResponse(message="Conversation deleted")


@router.get(
    "/chat/usage",
    response_model=UsageResponse,
    tags=["Admin"],
)
async def get_usage(
    store: ConversationStore = Depends(get_conversation_store),
) -> UsageResponse:
    """Token usage in total and per UTC day."""
    return UsageResponse(**await store.usage_stats())


# Knowledge


@router.get(
    "/knowledge/preview",
    response_model=KnowledgePreviewResponse,
    tags=["Knowledge"],
)
async def preview_knowledge(
    knowledge: KnowledgeBase = Depends(get_knowledge_base),
) -> KnowledgePreviewResponse:
    """All formatted knowledge sections and the records behind them."""
    snapshot = await knowledge.build_snapshot()
    return KnowledgePreviewResponse(
        schools=snapshot.schools,
        programs=snapshot.programs,
        news=snapshot.news,
        events=snapshot.events,
        raw=snapshot.raw,
    )


@router.get(
    "/knowledge/stats",
    response_model=KnowledgeStatsResponse,
    tags=["Knowledge"],
)
async def knowledge_stats(
    knowledge: KnowledgeBase = Depends(get_knowledge_base),
) -> KnowledgeStatsResponse:
    """Knowledge section sizes and estimated prompt cost."""
    return KnowledgeStatsResponse(**await knowledge.stats())


@router.post(
    "/knowledge/test",
    response_model=PromptTestResponse,
    tags=["Knowledge"],
)
async def run_prompt_test(
    request: PromptTestRequest,
    knowledge: KnowledgeBase = Depends(get_knowledge_base),
    composer: PromptComposer = Depends(get_prompt_composer),
    completion: CompletionClient = Depends(get_completion_client),
) -> PromptTestResponse:
    """Show the prompt a message would get, and optionally run it.

    With `run` set, the completion provider is called once with the sample
    message. A `systemPrompt` in the body replaces the grounded prompt for
    that call.
    """
    sections = select_sections(request.message)
    snapshot = await knowledge.build_snapshot()
    system_prompt = composer.compose(snapshot, sections)

    response = PromptTestResponse(
        message=request.message,
        sections=[s.value for s in SECTION_ORDER if s in sections],
        system_prompt=system_prompt,
        prompt_length=len(system_prompt),
        estimated_tokens=math.ceil(len(system_prompt) / 4),
    )

    if request.run:
        try:
            result = await completion.complete(
                [ChatTurn.user(request.message)],
                request.system_prompt or system_prompt,
            )
        except CompletionError as e:
            raise HTTPException(status_code=503, detail=e.message)
        response.reply = result.content
        response.tokens_used = result.tokens_used

    return response
