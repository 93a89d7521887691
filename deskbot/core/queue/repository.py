"""
Queue table access.

Status moves only forward: pending -> processing -> completed | failed.
The claim is a conditional UPDATE, so two dispatchers that fetched the
same pending row cannot both process it.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import func, select, update

from deskbot.infra.database import Database
from deskbot.models.database import QueueItem, QueueStatus

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class QueueItemRecord:
    """A fetched queue row."""
    id: uuid.UUID
    business_id: uuid.UUID
    raw_payload: dict[str, Any]
    created_at: Optional[datetime] = None


class QueueRepository:
    """Reads pending items and records their transitions."""

    def __init__(self, db: Database, clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self._clock = clock

    async def fetch_pending(self, limit: int) -> list[QueueItemRecord]:
        """Oldest pending items first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(QueueItem)
                .where(QueueItem.status == QueueStatus.PENDING)
                .order_by(QueueItem.created_at.asc())
                .limit(limit)
            )
            return [
                QueueItemRecord(
                    id=row.id,
                    business_id=row.business_id,
                    raw_payload=dict(row.raw_payload or {}),
                    created_at=row.created_at,
                )
                for row in result.scalars()
            ]

    async def claim(self, item_id: uuid.UUID) -> bool:
        """
        Move an item from pending to processing.

        Returns:
            True if this caller made the transition
        """
        async with self.db.session() as session:
            result = await session.execute(
                update(QueueItem)
                .where(QueueItem.id == item_id, QueueItem.status == QueueStatus.PENDING)
                .values(status=QueueStatus.PROCESSING)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    async def mark_completed(self, item_id: uuid.UUID) -> None:
        await self._finish(item_id, QueueStatus.COMPLETED, None)

    async def mark_failed(self, item_id: uuid.UUID, error: str) -> None:
        await self._finish(item_id, QueueStatus.FAILED, error[:MAX_ERROR_LENGTH])

    async def _finish(self, item_id: uuid.UUID, status: QueueStatus, error: Optional[str]) -> None:
        async with self.db.session() as session:
            await session.execute(
                update(QueueItem)
                .where(QueueItem.id == item_id, QueueItem.status == QueueStatus.PROCESSING)
                .values(status=status, processed_at=self._clock(), error=error)
                .execution_options(synchronize_session=False)
            )

    async def count_pending(self) -> int:
        """Backlog size, reported by the readiness probe."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count()).select_from(QueueItem).where(QueueItem.status == QueueStatus.PENDING)
            )
            return result.scalar_one()
