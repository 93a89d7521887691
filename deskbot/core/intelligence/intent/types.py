"""Intent types for inbound message classification."""

import re
from dataclasses import dataclass
from enum import Enum


class Intent(str, Enum):
    """Customer intent categories."""

    GREETING = "greeting"      # Hello, hi
    BOOKING = "booking"        # Book / schedule a service visit
    STATUS = "status"          # Where is the technician?
    COMPLAINT = "complaint"    # Something went wrong
    FAQ = "faq"                # Prices, coverage, services

    # Fallback
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class IntentRule:
    """A pattern set mapped to an intent.

    Rules are evaluated in descending priority; the first rule with any
    matching pattern wins.
    """

    intent: Intent
    patterns: tuple[re.Pattern, ...]
    priority: int

    def matches(self, normalized: str) -> bool:
        """Check the already lower-cased, trimmed text against every pattern."""
        return any(pattern.search(normalized) for pattern in self.patterns)
