"""
Conversation data models.

History is a list of provider-neutral turns including tool calls and tool
results, so the booking agent can resume exactly where it stopped. Typed
state is stored per intent as a versioned dict.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from deskbot.core.intelligence.intent.types import Intent
from deskbot.infra.llm.types import Turn


class ConversationNotFoundError(Exception):
    """Raised when updating a conversation that does not exist."""
    pass


@dataclass
class BookingState:
    """
    What the booking agent has learned so far.

    Filled from tool arguments and results, embedded in the continuation
    prompt on the customer's next message.
    """

    version: int = 1
    service_type: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    offered_slots: list[str] = field(default_factory=list)
    booked: bool = False
    event_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "BookingState":
        """Load stored state, ignoring unknown keys."""
        if not data:
            return cls()
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        known["version"] = 1
        return cls(**known)

    def missing_fields(self) -> list[str]:
        """Booking details still needed before book_appointment can succeed."""
        required = ("service_type", "date", "time", "customer_name", "customer_phone")
        return [name for name in required if not getattr(self, name)]


def trim_history(history: list[Turn], max_turns: int) -> list[Turn]:
    """
    Cap history length.

    Drops the oldest turns, then keeps dropping until the history starts
    with a plain user turn so no tool result is left without its call.
    """
    if len(history) <= max_turns:
        return list(history)

    trimmed = list(history[-max_turns:])
    while trimmed and not trimmed[0].is_plain_user:
        trimmed.pop(0)
    return trimmed


@dataclass
class ConversationRecord:
    """A conversation row with history decoded into turns."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    customer_id: str
    intent: str
    state: dict[str, Any]
    history: list[Turn]
    last_message_at: datetime
    expires_at: datetime
    created_at: Optional[datetime] = None

    @property
    def is_booking(self) -> bool:
        return self.intent == Intent.BOOKING.value

    @property
    def booking_state(self) -> BookingState:
        return BookingState.from_dict(self.state)

    @classmethod
    def from_row(cls, row: Any) -> "ConversationRecord":
        return cls(
            id=row.id,
            tenant_id=row.business_id,
            customer_id=row.customer_chat_id,
            intent=row.intent,
            state=dict(row.state or {}),
            history=[Turn.from_dict(t) for t in (row.history or [])],
            last_message_at=row.last_message_at,
            expires_at=row.expires_at,
            created_at=row.created_at,
        )
