"""
Admission control.

A request is admitted only if its estimated cost, plus a safety margin,
fits in what is left of the tenant's budget. The margin is reserved up
front and then either committed with the real cost or released.

Usage:
    estimate = controller.estimate(Tier.CHEAP, text)
    async with controller.admit(tenant_id, estimate) as reservation:
        if reservation is None:
            return budget_exhausted_reply
        response = await oracle.complete(...)
        await controller.commit(reservation, cost, tokens_in, tokens_out)
    # any reservation still open here has been released
"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from deskbot.core.intelligence.model_selector import Tier

from .ledger import BudgetLedger
from .pricing import CostEstimate, PricingTable, estimate_tokens

logger = logging.getLogger(__name__)


@dataclass
class Reservation:
    """Budget held for one request until it is settled."""
    tenant_id: uuid.UUID
    amount: float
    estimate: CostEstimate
    settled: bool = False

    @property
    def tier(self) -> Tier:
        return self.estimate.tier

    @property
    def model(self) -> str:
        return self.estimate.model


class AdmissionController:
    """Cost estimation plus reserve / commit / release against a ledger."""

    def __init__(
        self,
        ledger: BudgetLedger,
        pricing: PricingTable,
        safety_margin: float = 0.2,
        chars_per_token: int = 3,
    ):
        self.ledger = ledger
        self.pricing = pricing
        self.safety_margin = safety_margin
        self.chars_per_token = chars_per_token

    def estimate(
        self,
        tier: Tier,
        input_text: str,
        expected_output_tokens: int = 150,
    ) -> CostEstimate:
        """
        Estimate the cost of one request.

        Args:
            tier: Model tier
            input_text: Text that will be sent
            expected_output_tokens: Expected reply size

        Returns:
            CostEstimate
        """
        tokens_in = estimate_tokens(input_text, self.chars_per_token)
        return self.estimate_usage(tier, tokens_in, expected_output_tokens)

    def estimate_usage(self, tier: Tier, tokens_in: int, tokens_out: int) -> CostEstimate:
        """Estimate from token counts already bounded by the caller."""
        return CostEstimate(
            model=self.pricing.model_for(tier),
            tier=tier,
            estimated_tokens_in=tokens_in,
            estimated_tokens_out=tokens_out,
            estimated_cost=self.pricing.get_pricing(tier).cost(tokens_in, tokens_out),
        )

    def actual_cost(self, tier: Tier, tokens_in: int, tokens_out: int) -> float:
        """Price real token usage."""
        return self.pricing.get_pricing(tier).cost(tokens_in, tokens_out)

    async def reserve(
        self,
        tenant_id: uuid.UUID,
        estimate: CostEstimate,
    ) -> Optional[Reservation]:
        """
        Reserve estimate plus safety margin.

        Returns:
            Reservation, or None if the budget cannot cover it
        """
        amount = estimate.estimated_cost * (1 + self.safety_margin)
        if not await self.ledger.reserve_budget(tenant_id, amount):
            logger.warning(
                f"Budget denied for tenant {tenant_id}: needed ${amount:.6f} ({estimate.model})"
            )
            return None

        logger.debug(f"Reserved ${amount:.6f} for tenant {tenant_id}")
        return Reservation(tenant_id=tenant_id, amount=amount, estimate=estimate)

    async def commit(
        self,
        reservation: Reservation,
        actual_cost: float,
        tokens_in: int,
        tokens_out: int,
    ) -> None:
        """Charge actual cost and clear the reservation. Settles once."""
        if reservation.settled:
            logger.warning(f"Reservation for tenant {reservation.tenant_id} already settled")
            return

        if actual_cost > reservation.amount:
            logger.warning(
                f"Actual cost ${actual_cost:.6f} exceeds reservation "
                f"${reservation.amount:.6f} for tenant {reservation.tenant_id}"
            )

        await self.ledger.commit_reserved_budget(
            reservation.tenant_id,
            reservation.amount,
            actual_cost,
            reservation.model,
            tokens_in,
            tokens_out,
        )
        reservation.settled = True
        logger.info(
            f"Committed ${actual_cost:.6f} for tenant {reservation.tenant_id} "
            f"({reservation.model}, in={tokens_in}, out={tokens_out})"
        )

    async def release(self, reservation: Reservation) -> None:
        """Drop the reservation without charging. Settles once."""
        if reservation.settled:
            logger.warning(f"Reservation for tenant {reservation.tenant_id} already settled")
            return

        await self.ledger.release_budget(reservation.tenant_id, reservation.amount)
        reservation.settled = True
        logger.debug(f"Released ${reservation.amount:.6f} for tenant {reservation.tenant_id}")

    @asynccontextmanager
    async def admit(
        self,
        tenant_id: uuid.UUID,
        estimate: CostEstimate,
    ) -> AsyncIterator[Optional[Reservation]]:
        """
        Reserve for the duration of a block.

        Yields the reservation (None when denied). Whatever happens inside
        the block, an unsettled reservation is released on exit.
        """
        reservation = await self.reserve(tenant_id, estimate)
        try:
            yield reservation
        finally:
            if reservation is not None and not reservation.settled:
                await self.release(reservation)
