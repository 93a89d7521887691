"""Intent classification module."""

from .types import Intent, IntentRule
from .classifier import (
    IntentClassifier,
    INTENT_RULES,
    classify_intent,
)

__all__ = [
    # Types
    "Intent",
    "IntentRule",
    # Classifier
    "IntentClassifier",
    "INTENT_RULES",
    "classify_intent",
]
