"""Intent to model-tier mapping."""

from enum import Enum

from deskbot.core.intelligence.intent.types import Intent


class Tier(str, Enum):
    """Cost/capability tier of a language model."""

    CHEAP = "cheap"
    CAPABLE = "capable"


# Booking and complaints need multi-step reasoning or tool use
_CAPABLE_INTENTS = frozenset({Intent.BOOKING, Intent.COMPLAINT})


def select_model(intent: Intent) -> Tier:
    """Pick the tier for an intent. Pure lookup, never fails."""
    if intent in _CAPABLE_INTENTS:
        return Tier.CAPABLE
    return Tier.CHEAP
