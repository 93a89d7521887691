"""
Per-tier pricing and cost estimation.

Prices are USD per million tokens. Token counts for estimates are a
character heuristic, never a tokenizer.
"""

import math
from dataclasses import dataclass

from deskbot.config import Settings
from deskbot.core.intelligence.model_selector import Tier

MILLION = 1_000_000


@dataclass(frozen=True)
class TierPricing:
    """Per-token pricing for one tier."""
    input_usd_per_mtok: float
    output_usd_per_mtok: float

    def cost(self, tokens_in: int, tokens_out: int) -> float:
        return (
            tokens_in * self.input_usd_per_mtok + tokens_out * self.output_usd_per_mtok
        ) / MILLION


@dataclass(frozen=True)
class PricingTable:
    """Pricing and model name for every tier."""
    prices: dict[Tier, TierPricing]
    models: dict[Tier, str]

    def get_pricing(self, tier: Tier) -> TierPricing:
        """Get pricing for a tier.

        Raises:
            ValueError: If the tier has no pricing
        """
        if tier not in self.prices:
            raise ValueError(f"No pricing for tier: {tier}")
        return self.prices[tier]

    def model_for(self, tier: Tier) -> str:
        return self.models[tier]

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingTable":
        return cls(
            prices={
                Tier.CHEAP: TierPricing(
                    settings.cheap_input_usd_per_mtok,
                    settings.cheap_output_usd_per_mtok,
                ),
                Tier.CAPABLE: TierPricing(
                    settings.capable_input_usd_per_mtok,
                    settings.capable_output_usd_per_mtok,
                ),
            },
            models=settings.tier_models,
        )


@dataclass(frozen=True)
class CostEstimate:
    """Predicted cost of one request. Derived, never persisted."""
    model: str
    tier: Tier
    estimated_tokens_in: int
    estimated_tokens_out: int
    estimated_cost: float


def estimate_tokens(text: str, chars_per_token: int = 3) -> int:
    """Rough token count: one token per chars_per_token characters, rounded up."""
    return math.ceil(len(text) / chars_per_token)
