"""
Budget ledger.

Holds committed usage and outstanding reservations per tenant. The SQL
implementation does every check-and-increment as a single conditional
UPDATE so concurrent reservations cannot overshoot the limit.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, select, update

from deskbot.infra.database import Database
from deskbot.models.database import Budget, CostLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BudgetSnapshot:
    """Point-in-time view of a tenant's budget."""
    tenant_id: uuid.UUID
    monthly_limit_usd: float
    current_usage_usd: float
    pending_usage_usd: float

    @property
    def remaining_usd(self) -> float:
        return self.monthly_limit_usd - self.current_usage_usd - self.pending_usage_usd


class BudgetLedger(ABC):
    """Storage operations behind admission control."""

    @abstractmethod
    async def reserve_budget(self, tenant_id: uuid.UUID, amount: float) -> bool:
        """Atomically add amount to pending if it fits under the limit."""

    @abstractmethod
    async def commit_reserved_budget(
        self,
        tenant_id: uuid.UUID,
        reserved_amount: float,
        actual_cost: float,
        model: str,
        tokens_in: int,
        tokens_out: int,
    ) -> None:
        """Move a reservation out of pending and record the actual charge."""

    @abstractmethod
    async def release_budget(self, tenant_id: uuid.UUID, amount: float) -> None:
        """Drop a reservation without charging."""

    @abstractmethod
    async def get_budget(self, tenant_id: uuid.UUID) -> Optional[BudgetSnapshot]:
        """Current budget, or None if the tenant has no budget row."""


def _pending_minus(amount: float):
    """pending - amount, floored at zero."""
    return case(
        (Budget.pending_usage_usd - amount < 0, 0.0),
        else_=Budget.pending_usage_usd - amount,
    )


class SQLBudgetLedger(BudgetLedger):
    """Budget ledger on the budgets and cost_logs tables."""

    def __init__(self, db: Database):
        self.db = db

    async def reserve_budget(self, tenant_id: uuid.UUID, amount: float) -> bool:
        async with self.db.session() as session:
            result = await session.execute(
                update(Budget)
                .where(
                    Budget.business_id == tenant_id,
                    Budget.current_usage_usd + Budget.pending_usage_usd + amount
                    <= Budget.monthly_limit_usd,
                )
                .values(pending_usage_usd=Budget.pending_usage_usd + amount)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    async def commit_reserved_budget(
        self,
        tenant_id: uuid.UUID,
        reserved_amount: float,
        actual_cost: float,
        model: str,
        tokens_in: int,
        tokens_out: int,
    ) -> None:
        async with self.db.session() as session:
            result = await session.execute(
                update(Budget)
                .where(Budget.business_id == tenant_id)
                .values(
                    pending_usage_usd=_pending_minus(reserved_amount),
                    current_usage_usd=Budget.current_usage_usd + actual_cost,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(f"Commit for tenant {tenant_id} found no budget row")

            session.add(CostLog(
                business_id=tenant_id,
                amount_usd=actual_cost,
                model_used=model,
                tokens_in=tokens_in,
                tokens_out=tokens_out,
            ))

    async def release_budget(self, tenant_id: uuid.UUID, amount: float) -> None:
        async with self.db.session() as session:
            await session.execute(
                update(Budget)
                .where(Budget.business_id == tenant_id)
                .values(pending_usage_usd=_pending_minus(amount))
                .execution_options(synchronize_session=False)
            )

    async def get_budget(self, tenant_id: uuid.UUID) -> Optional[BudgetSnapshot]:
        async with self.db.session() as session:
            row = (
                await session.execute(select(Budget).where(Budget.business_id == tenant_id))
            ).scalar_one_or_none()
            if row is None:
                return None
            return BudgetSnapshot(
                tenant_id=row.business_id,
                monthly_limit_usd=row.monthly_limit_usd,
                current_usage_usd=row.current_usage_usd,
                pending_usage_usd=row.pending_usage_usd,
            )
