"""Appointment persistence."""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select

from deskbot.infra.database import Database
from deskbot.models.database import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppointmentSummary:
    """Customer-facing view of a booked appointment."""
    id: uuid.UUID
    service_type: str
    date: str
    time: str
    duration_minutes: int


class AppointmentRepository:
    """Reads and writes the appointments table."""

    def __init__(self, db: Database):
        self.db = db

    async def create(
        self,
        tenant_id: uuid.UUID,
        *,
        customer_name: str,
        customer_phone: str,
        service_type: str,
        date: str,
        time: str,
        duration_minutes: int,
        google_event_id: str,
        customer_chat_id: Optional[str] = None,
    ) -> uuid.UUID:
        """Record a confirmed appointment and return its id."""
        appointment = Appointment(
            id=uuid.uuid4(),
            business_id=tenant_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_chat_id=customer_chat_id,
            service_type=service_type,
            appointment_date=date,
            appointment_time=time,
            duration_minutes=duration_minutes,
            google_event_id=google_event_id,
            status=AppointmentStatus.CONFIRMED,
        )
        async with self.db.session() as session:
            session.add(appointment)

        logger.info(f"Appointment {appointment.id} stored for {date} {time}")
        return appointment.id

    async def list_upcoming(
        self,
        tenant_id: uuid.UUID,
        customer_chat_id: str,
        from_date: str,
        limit: int = 5,
    ) -> list[AppointmentSummary]:
        """
        Confirmed appointments of one customer on or after from_date.

        Dates are stored as YYYY-MM-DD strings, so string order is date order.
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(Appointment)
                .where(
                    Appointment.business_id == tenant_id,
                    Appointment.customer_chat_id == customer_chat_id,
                    Appointment.status == AppointmentStatus.CONFIRMED,
                    Appointment.appointment_date >= from_date,
                )
                .order_by(Appointment.appointment_date, Appointment.appointment_time)
                .limit(limit)
            )
            return [
                AppointmentSummary(
                    id=a.id,
                    service_type=a.service_type,
                    date=a.appointment_date,
                    time=a.appointment_time,
                    duration_minutes=a.duration_minutes,
                )
                for a in result.scalars()
            ]
