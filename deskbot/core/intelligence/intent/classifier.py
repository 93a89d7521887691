"""
Rule-based intent classification.

Cheap pre-filter that runs before any paid model call: a priority-ordered
cascade of regular expressions. No scoring, no model calls.
"""

import logging
import re
from typing import Iterable, Optional

from .types import Intent, IntentRule

logger = logging.getLogger(__name__)


def _rule(intent: Intent, priority: int, *patterns: str) -> IntentRule:
    return IntentRule(
        intent=intent,
        patterns=tuple(re.compile(p) for p in patterns),
        priority=priority,
    )


INTENT_RULES: tuple[IntentRule, ...] = (
    _rule(
        Intent.GREETING,
        10,
        r"^(hi|hello|hey|good morning|good afternoon|good evening)\b",
    ),
    _rule(
        Intent.BOOKING,
        9,
        r"\b(book|schedule|appointment|reserve|slot|available|availability)\b",
        r"\b(tomorrow|today|next week|this weekend)\b.*\b(time|slot|appointment)\b",
    ),
    _rule(
        Intent.STATUS,
        8,
        r"\b(where|status|arrived|on the way|coming|reached|done|finished)\b",
        r"\b(track|tracking)\b",
    ),
    _rule(
        Intent.COMPLAINT,
        7,
        r"\b(issue|problem|wrong|broken|cancel|refund|not working|bad|terrible)\b",
        r"\b(complaint|complain|disappointed|unhappy)\b",
    ),
    _rule(
        Intent.FAQ,
        5,
        r"\b(how much|price|cost|rate|pricing|charge|fee)\b",
        r"\b(what|how|when|where|which|why)\b",
        r"\b(service|offer|provide|available|coverage|area)\b",
    ),
)


class IntentClassifier:
    """
    Deterministic, stateless intent classifier.

    Rules are sorted once by descending priority. Equal priorities keep
    their declaration order.
    """

    def __init__(self, rules: Optional[Iterable[IntentRule]] = None):
        """Initialize classifier.

        Args:
            rules: Custom rule set (defaults to INTENT_RULES)
        """
        self._rules = sorted(
            rules if rules is not None else INTENT_RULES,
            key=lambda r: r.priority,
            reverse=True,
        )

    def classify(self, message: str) -> Intent:
        """
        Classify a customer message.

        Args:
            message: Raw message text

        Returns:
            The first matching rule's intent, or Intent.UNKNOWN
        """
        normalized = message.strip().lower()
        if not normalized:
            return Intent.UNKNOWN

        for rule in self._rules:
            if rule.matches(normalized):
                logger.debug(f"Intent detected: {rule.intent.value} | {message[:50]}")
                return rule.intent

        return Intent.UNKNOWN


_default_classifier = IntentClassifier()


def classify_intent(message: str) -> Intent:
    """Convenience function using the default rule set."""
    return _default_classifier.classify(message)
