"""Content moderation gate in front of the completion call."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from openai import AsyncOpenAI

from app.core.exception import ChatbotUnavailableError, ModerationUnavailableError

logger = logging.getLogger(__name__)

FailurePolicy = Literal["open", "closed"]


@dataclass
class ModerationResult:
    """Outcome of a moderation check."""

    flagged: bool = False
    categories: dict[str, bool] = field(default_factory=dict)
    category_scores: dict[str, float] = field(default_factory=dict)
    skipped: bool = False
    error: str | None = None

    @property
    def triggered_categories(self) -> list[str]:
        return [name for name, hit in self.categories.items() if hit]


def _as_dict(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True)
    return dict(value)


class ModerationGate:
    """Screens user messages with the OpenAI moderation endpoint.

    Under the "open" failure policy a provider error lets the message
    through; under "closed" it raises ModerationUnavailableError. Open
    keeps chat available during provider outages at the cost of
    unmoderated traffic for their duration. A missing credential is not
    an outage: the check is skipped under either policy.
    """

    def __init__(
        self,
        client_factory: Callable[[], AsyncOpenAI],
        model: str = "omni-moderation-latest",
        failure_policy: FailurePolicy = "open",
        enabled: bool = True,
    ):
        """Initialize the gate.

        Args:
            client_factory: Returns the shared async OpenAI client.
            model: Moderation model name.
            failure_policy: "open" to allow on provider failure, "closed" to block.
            enabled: When False every message passes unchecked.
        """
        self._client_factory = client_factory
        self.model = model
        self.failure_policy = failure_policy
        self.enabled = enabled

    async def classify(self, text: str) -> ModerationResult:
        """Classify text with the provider. Errors propagate."""
        client = self._client_factory()
        response = await client.moderations.create(model=self.model, input=text)
        result = response.results[0]
        return ModerationResult(
            flagged=bool(result.flagged),
            categories=_as_dict(result.categories),
            category_scores=_as_dict(result.category_scores),
        )

    async def check(
        self,
        message: Any,
        *,
        client_id: str | None = None,
        session_id: str | None = None,
    ) -> ModerationResult:
        """Screen a user message.

        Empty or non-text payloads are not moderated.

        Args:
            message: Raw message payload.
            client_id: Client address, for the audit log.
            session_id: Chat session id, for the audit log.

        Returns:
            Moderation result; `flagged` means the pipeline must stop.

        Raises:
            ModerationUnavailableError: Provider failed under the closed policy.
        """
        if not self.enabled or not message or not isinstance(message, str):
            return ModerationResult(skipped=True)

        try:
            result = await self.classify(message)
        except ChatbotUnavailableError:
            # No credential: the completion call reports the chatbot as not configured.
            logger.debug("Moderation skipped, provider not configured")
            return ModerationResult(skipped=True)
        except Exception as e:
            if self.failure_policy == "closed":
                logger.error("Moderation failed, rejecting message: %s", e)
                raise ModerationUnavailableError(
                    "Content moderation is unavailable. Please try again later."
                ) from e
            logger.warning("Moderation failed, allowing message: %s", e)
            return ModerationResult(error=str(e))

        if result.flagged:
            logger.warning(
                "Flagged content: ip=%s session=%s categories=%s timestamp=%s",
                client_id,
                session_id,
                result.triggered_categories,
                datetime.now(timezone.utc).isoformat(),
            )

        return result
