"""Tenant (business) lookup."""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from deskbot.infra.database import Database
from deskbot.models.database import Business

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantProfile:
    """Everything the engine needs to serve one business."""

    id: uuid.UUID
    name: str
    timezone: str
    business_hours_start: str
    business_hours_end: str
    calendar_id: str = "primary"
    telegram_bot_token: Optional[str] = None
    calendar_access_token: Optional[str] = None

    @property
    def calendar_connected(self) -> bool:
        return bool(self.calendar_access_token)


class BusinessRepository:
    """Loads tenant profiles, filling gaps with configured defaults."""

    def __init__(
        self,
        db: Database,
        default_timezone: str = "Asia/Colombo",
        default_hours_start: str = "08:00",
        default_hours_end: str = "18:00",
    ):
        self.db = db
        self.default_timezone = default_timezone
        self.default_hours_start = default_hours_start
        self.default_hours_end = default_hours_end

    async def get(self, tenant_id: uuid.UUID) -> Optional[TenantProfile]:
        """
        Load a tenant.

        Returns:
            TenantProfile or None if the business does not exist
        """
        async with self.db.session() as session:
            business = await session.get(Business, tenant_id)
            if business is None:
                logger.warning(f"Business not found: {tenant_id}")
                return None

            hours = business.business_hours or {}
            token = business.google_calendar_token or {}
            return TenantProfile(
                id=business.id,
                name=business.name,
                timezone=business.timezone or self.default_timezone,
                business_hours_start=hours.get("start", self.default_hours_start),
                business_hours_end=hours.get("end", self.default_hours_end),
                calendar_id=business.calendar_id or "primary",
                telegram_bot_token=business.telegram_bot_token,
                calendar_access_token=token.get("access_token"),
            )


class TenantNotFoundError(Exception):
    """Raised when a queue item references an unknown business."""
    pass
