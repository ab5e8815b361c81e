"""Chat message pipeline orchestration."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from app.core.exception import CompletionError, CompletionFailure, InvalidMessageError
from app.core.knowledge import KnowledgeBase, PromptComposer
from app.core.messages import ChatTurn, MessageRole
from app.core.moderation import ModerationGate
from app.db.conversations import ConversationStore
from app.db.models import Conversation
from app.llm.client import Completion, CompletionClient

logger = logging.getLogger(__name__)


def moderation_fallback_reply(institution_name: str) -> str:
    """Fixed reply returned in place of a completion for flagged content."""
    return (
        "I'm sorry, but I can't assist with that request. If you have questions about "
        f"{institution_name}, please visit our Contact page at /contact or reach out "
        "to our admissions office directly."
    )


@dataclass
class ChatReply:
    """Result of one chat turn."""

    reply: str
    conversation_id: int | None = None
    tokens_used: int = 0
    is_moderated: bool = False


class ChatService:
    """Runs one user message through moderation, grounding and completion.

    Rate limiting happens before this service is reached. The order here:
    1. Validate the message
    2. Moderate it, short-circuiting with a canned reply when flagged
    3. Find or create the conversation for the session id
    4. Load recent history and compose the knowledge-grounded prompt
    5. Call the completion client
    6. Persist both turns if the conversation is logged

    Example:
        service = ChatService(store, moderation, knowledge, composer, completion)
        reply = await service.send_message("session-1", "What programs do you offer?")
    """

    def __init__(
        self,
        store: ConversationStore,
        moderation: ModerationGate,
        knowledge: KnowledgeBase,
        composer: PromptComposer,
        completion: CompletionClient,
        max_message_length: int = 2000,
        history_limit: int = 10,
        turn_timeout: float | None = None,
    ):
        self.store = store
        self.moderation = moderation
        self.knowledge = knowledge
        self.composer = composer
        self.completion = completion
        self.max_message_length = max_message_length
        self.history_limit = history_limit
        self.turn_timeout = turn_timeout

    @property
    def moderation_reply(self) -> str:
        return moderation_fallback_reply(self.composer.institution_name)

    async def create_session(
        self,
        user_name: str | None = None,
        user_email: str | None = None,
        is_logged: bool = True,
    ) -> Conversation:
        """Issue a new session id backed by a fresh conversation."""
        conversation = await self.store.create(user_name, user_email, is_logged)
        logger.info("Created chat session %s", conversation.session_id)
        return conversation

    def validate(self, session_id: Any, message: Any) -> None:
        """Check the request shape.

        Raises:
            InvalidMessageError: Missing session id or message, or message too long.
        """
        if not session_id or not message:
            raise InvalidMessageError("sessionId and message are required")
        if not isinstance(message, str) or not isinstance(session_id, str):
            raise InvalidMessageError("sessionId and message must be strings")
        if len(message) > self.max_message_length:
            raise InvalidMessageError(
                f"Message too long (max {self.max_message_length} characters)"
            )

    async def send_message(
        self,
        session_id: str,
        message: str,
        *,
        client_id: str | None = None,
        is_logged: bool = True,
        user_name: str | None = None,
        user_email: str | None = None,
    ) -> ChatReply:
        """Process one user message.

        Moderation, grounding and completion together run under the turn
        timeout. Persisting the finished turn does not.

        Args:
            session_id: Client-held session id; unknown ids self-register.
            message: The user's message.
            client_id: Client address, for moderation audit logs.
            is_logged: Logging flag used if the conversation is created now.
            user_name: Participant name used if the conversation is created now.
            user_email: Participant email used if the conversation is created now.

        Returns:
            The assistant reply, or the moderation reply if flagged.

        Raises:
            InvalidMessageError: The request is malformed.
            ModerationUnavailableError: Moderation failed under the closed policy.
            CompletionError: The completion provider failed or the turn timed out.
        """
        self.validate(session_id, message)

        try:
            generated = await asyncio.wait_for(
                self._generate(
                    session_id,
                    message,
                    client_id=client_id,
                    is_logged=is_logged,
                    user_name=user_name,
                    user_email=user_email,
                ),
                timeout=self.turn_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Chat turn for session %s exceeded %ss", session_id, self.turn_timeout)
            await self.store.rollback()
            raise CompletionError(CompletionFailure.TIMEOUT) from e

        if generated is None:
            return ChatReply(reply=self.moderation_reply, tokens_used=0, is_moderated=True)

        conversation, completion = generated
        await self.store.add_turn(
            conversation,
            message,
            completion.content,
            prompt_tokens=completion.prompt_tokens,
            completion_tokens=completion.completion_tokens,
        )

        return ChatReply(
            reply=completion.content,
            conversation_id=conversation.id,
            tokens_used=completion.tokens_used,
        )

    async def _generate(
        self,
        session_id: str,
        message: str,
        *,
        client_id: str | None,
        is_logged: bool,
        user_name: str | None,
        user_email: str | None,
    ) -> tuple[Conversation, Completion] | None:
        """Moderate, ground and complete one message. None when flagged."""
        moderation = await self.moderation.check(
            message, client_id=client_id, session_id=session_id
        )
        if moderation.flagged:
            return None

        conversation = await self.store.get_or_create(
            session_id,
            user_name=user_name,
            user_email=user_email,
            is_logged=is_logged,
        )

        history = await self.store.recent_messages(conversation.id, self.history_limit)
        turns = [ChatTurn(role=MessageRole(m.role), content=m.content) for m in history]
        turns.append(ChatTurn.user(message))

        system_prompt = await self.composer.build(self.knowledge, message)
        completion = await self.completion.complete(turns, system_prompt)
        return conversation, completion
