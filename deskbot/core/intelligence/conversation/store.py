"""SQL-backed conversation store with a sliding expiry window."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import select

from deskbot.infra.database import Database
from deskbot.infra.llm.types import Turn
from deskbot.models.database import Conversation

from .models import ConversationNotFoundError, ConversationRecord, trim_history

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Get current UTC time as a naive datetime (matches the DateTime columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ConversationStore:
    """
    Conversation persistence.

    A conversation is active while expires_at is in the future. Every
    update pushes expires_at forward by the TTL, so a conversation stays
    alive as long as the customer keeps replying within the window.
    """

    def __init__(
        self,
        db: Database,
        ttl_minutes: int = 30,
        max_history_turns: int = 40,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.ttl = timedelta(minutes=ttl_minutes)
        self.max_history_turns = max_history_turns
        self._clock = clock

    async def get_active(
        self,
        tenant_id: uuid.UUID,
        customer_id: str,
    ) -> Optional[ConversationRecord]:
        """
        Most recent unexpired conversation for a customer.

        Args:
            tenant_id: Business identifier
            customer_id: Telegram chat id

        Returns:
            ConversationRecord or None
        """
        now = self._clock()
        async with self.db.session() as session:
            result = await session.execute(
                select(Conversation)
                .where(
                    Conversation.business_id == tenant_id,
                    Conversation.customer_chat_id == customer_id,
                    Conversation.expires_at > now,
                )
                .order_by(Conversation.last_message_at.desc(), Conversation.created_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return ConversationRecord.from_row(row) if row else None

    async def get_or_create(
        self,
        tenant_id: uuid.UUID,
        customer_id: str,
        intent: str,
    ) -> ConversationRecord:
        """
        Continue the active conversation or start a new one.

        A new conversation starts with empty state and history.
        """
        existing = await self.get_active(tenant_id, customer_id)
        if existing:
            logger.debug(f"Continuing conversation {existing.id}")
            return existing

        now = self._clock()
        row = Conversation(
            id=uuid.uuid4(),
            business_id=tenant_id,
            customer_chat_id=customer_id,
            intent=intent,
            state={},
            history=[],
            last_message_at=now,
            created_at=now,
            expires_at=now + self.ttl,
        )
        async with self.db.session() as session:
            session.add(row)

        logger.info(f"Started conversation {row.id} ({intent}) for customer {customer_id}")
        return ConversationRecord.from_row(row)

    async def update(
        self,
        conversation_id: uuid.UUID,
        state: dict,
        history: list[Turn],
    ) -> ConversationRecord:
        """
        Replace state and history and slide the expiry window.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        now = self._clock()
        kept = trim_history(history, self.max_history_turns)
        if len(kept) < len(history):
            logger.debug(
                f"Trimmed conversation {conversation_id} history "
                f"from {len(history)} to {len(kept)} turns"
            )

        async with self.db.session() as session:
            row = await session.get(Conversation, conversation_id)
            if row is None:
                raise ConversationNotFoundError(f"Conversation {conversation_id} not found")

            row.state = dict(state)
            row.history = [turn.to_dict() for turn in kept]
            row.last_message_at = now
            row.expires_at = now + self.ttl
            await session.flush()
            return ConversationRecord.from_row(row)
