"""Persistent multi-turn conversations keyed by (business, customer)."""

from .models import (
    BookingState,
    ConversationNotFoundError,
    ConversationRecord,
    trim_history,
)
from .store import ConversationStore

__all__ = [
    "BookingState",
    "ConversationNotFoundError",
    "ConversationRecord",
    "ConversationStore",
    "trim_history",
]
