"""
Calendar tools exposed to the booking agent.

Arguments come from the model, so they are validated before anything
touches the calendar or the lock store. Problems the model can fix
(bad arguments, slot taken, calendar rejected the request) come back as
{"error": ...} payloads. Infrastructure failures (calendar or Redis
unreachable) raise, and the queue item fails.
"""

import logging
import re
from datetime import date as date_type
from datetime import datetime, time as time_type, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from deskbot.core.tenants import TenantProfile
from deskbot.infra.calendar import CalendarAPIError, GoogleCalendarClient
from deskbot.infra.llm.types import ToolSpec

from .appointments import AppointmentRepository
from .slot_lock import SlotKey, SlotLock

logger = logging.getLogger(__name__)

GET_AVAILABLE_SLOTS = "get_available_slots"
BOOK_APPOINTMENT = "book_appointment"

PHONE_PATTERN = re.compile(r"^0\d{9}$")

TOOL_DEFINITIONS: list[ToolSpec] = [
    ToolSpec(
        name=GET_AVAILABLE_SLOTS,
        description=(
            "Get available time slots for booking an appointment on a specific date. "
            "Returns list of available times in HH:MM format (24-hour)."
        ),
        parameters={
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "Date in YYYY-MM-DD format (e.g., 2025-11-25)",
                },
            },
            "required": ["date"],
        },
    ),
    ToolSpec(
        name=BOOK_APPOINTMENT,
        description=(
            "Book an appointment at a specific date and time. "
            "Call this AFTER confirming availability with get_available_slots."
        ),
        parameters={
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "Date in YYYY-MM-DD format (e.g., 2025-11-25)",
                },
                "time": {
                    "type": "string",
                    "description": "Time in HH:MM format, 24-hour (e.g., 14:00 for 2 PM)",
                },
                "customer_name": {
                    "type": "string",
                    "description": "Customer full name",
                },
                "customer_phone": {
                    "type": "string",
                    "description": "Customer phone number (10 digits, e.g., 0771234567)",
                },
                "service_type": {
                    "type": "string",
                    "description": "Type of service (e.g., AC Cleaning, Plumbing, General Cleaning)",
                },
                "duration": {
                    "type": "integer",
                    "description": "Duration in minutes (default: 60)",
                },
            },
            "required": ["date", "time", "customer_name", "customer_phone", "service_type"],
        },
    ),
]


def _check_date(value: str) -> str:
    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        raise PydanticCustomError("date_format", "Invalid date format. Use YYYY-MM-DD")
    try:
        date_type.fromisoformat(value)
    except ValueError:
        raise PydanticCustomError("date_value", "Invalid date: {value}", {"value": value}) from None
    return value


class SlotQuery(BaseModel):
    """Arguments of get_available_slots."""

    date: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_date(v.strip())


class BookingRequest(BaseModel):
    """Arguments of book_appointment."""

    date: str
    time: str
    customer_name: str = Field(min_length=1, max_length=255)
    customer_phone: str
    service_type: str = Field(min_length=1, max_length=255)
    duration: int = Field(default=60, ge=15, le=480)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_date(v.strip())

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        v = v.strip()
        if not re.fullmatch(r"([01]\d|2[0-3]):[0-5]\d", v):
            raise PydanticCustomError("time_format", "Invalid time format. Use HH:MM (24-hour)")
        return v

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        digits = re.sub(r"[\s-]", "", v)
        if not PHONE_PATTERN.match(digits):
            raise PydanticCustomError(
                "phone_format",
                "Invalid phone number. Please provide a valid 10-digit number (e.g., 0771234567)",
            )
        return digits

    @field_validator("customer_name", "service_type")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


def _validation_message(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        field = ".".join(str(loc) for loc in err["loc"])
        parts.append(f"{field}: {err['msg']}" if field else err["msg"])
    return "; ".join(parts)


class CalendarToolExecutor:
    """Runs the calendar tools for one tenant at a time."""

    def __init__(
        self,
        calendar: GoogleCalendarClient,
        slot_lock: SlotLock,
        appointments: AppointmentRepository,
        slot_minutes: int = 60,
        lock_ttl_seconds: int = 300,
    ):
        self.calendar = calendar
        self.slot_lock = slot_lock
        self.appointments = appointments
        self.slot_minutes = slot_minutes
        self.lock_ttl_seconds = lock_ttl_seconds

    async def execute(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        tenant: TenantProfile,
        customer_chat_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Execute one tool call.

        Args:
            tool_name: Tool requested by the model
            arguments: Raw arguments from the model
            tenant: Business the conversation belongs to
            customer_chat_id: Chat that will own a new appointment

        Returns:
            Result payload for the model ({"error": ...} on recoverable failure)

        Raises:
            CalendarUnavailableError: Calendar unreachable
            RedisConnectionError: Lock store unreachable
        """
        logger.info(f"Tool {tool_name} called for tenant {tenant.id}")

        match tool_name:
            case "get_available_slots":
                try:
                    query = SlotQuery.model_validate(arguments)
                except ValidationError as e:
                    return {"error": _validation_message(e)}
                return await self._get_available_slots(query, tenant)

            case "book_appointment":
                try:
                    request = BookingRequest.model_validate(arguments)
                except ValidationError as e:
                    return {"error": _validation_message(e)}
                return await self._book_appointment(request, tenant, customer_chat_id)

            case _:
                logger.warning(f"Unknown tool requested: {tool_name}")
                return {"error": f"Unknown tool: {tool_name}"}

    def _day_bounds(self, day: str, tenant: TenantProfile) -> tuple[datetime, datetime]:
        tz = ZoneInfo(tenant.timezone)
        d = date_type.fromisoformat(day)
        start = datetime.combine(d, time_type.fromisoformat(tenant.business_hours_start), tzinfo=tz)
        end = datetime.combine(d, time_type.fromisoformat(tenant.business_hours_end), tzinfo=tz)
        return start, end

    async def _get_available_slots(self, query: SlotQuery, tenant: TenantProfile) -> dict[str, Any]:
        if not tenant.calendar_connected:
            return {"error": "Calendar not connected"}

        day_start, day_end = self._day_bounds(query.date, tenant)
        try:
            busy = await self.calendar.query_busy(
                tenant.calendar_access_token, tenant.calendar_id, day_start, day_end
            )
        except CalendarAPIError as e:
            return {"error": f"Could not read the calendar: {e}"}

        step = timedelta(minutes=self.slot_minutes)
        available: list[str] = []
        slot_start = day_start
        while slot_start + step <= day_end:
            slot_end = slot_start + step
            label = slot_start.strftime("%H:%M")
            if not any(b.overlaps(slot_start, slot_end) for b in busy):
                if not await self.slot_lock.exists(SlotKey(tenant.id, query.date, label)):
                    available.append(label)
            slot_start = slot_end

        logger.info(f"Found {len(available)} available slots on {query.date}")
        return {"date": query.date, "available_slots": available, "count": len(available)}

    async def _book_appointment(
        self,
        request: BookingRequest,
        tenant: TenantProfile,
        customer_chat_id: Optional[str],
    ) -> dict[str, Any]:
        if not tenant.calendar_connected:
            return {"error": "Calendar not connected"}

        key = SlotKey(tenant.id, request.date, request.time)

        if await self.slot_lock.exists(key):
            return {
                "error": "This slot was just booked by another customer. "
                         "Please choose a different time."
            }

        if not await self.slot_lock.acquire(key, self.lock_ttl_seconds):
            return {"error": "This slot is currently being booked. Please try again in a moment."}

        tz = ZoneInfo(tenant.timezone)
        start = datetime.combine(
            date_type.fromisoformat(request.date),
            time_type.fromisoformat(request.time),
            tzinfo=tz,
        )
        end = start + timedelta(minutes=request.duration)

        try:
            event_id = await self.calendar.insert_event(
                tenant.calendar_access_token,
                tenant.calendar_id,
                summary=f"{request.service_type} - {request.customer_name}",
                description=(
                    f"Customer: {request.customer_name}\n"
                    f"Phone: {request.customer_phone}\n"
                    f"Service: {request.service_type}"
                ),
                start=start,
                end=end,
                timezone=tenant.timezone,
            )
            await self.appointments.create(
                tenant.id,
                customer_name=request.customer_name,
                customer_phone=request.customer_phone,
                customer_chat_id=customer_chat_id,
                service_type=request.service_type,
                date=request.date,
                time=request.time,
                duration_minutes=request.duration,
                google_event_id=event_id,
            )
        except CalendarAPIError as e:
            await self.slot_lock.release(key)
            return {"error": str(e)}
        except Exception:
            await self.slot_lock.release(key)
            raise

        logger.info(f"Appointment booked: {request.date} {request.time} (event {event_id})")
        return {
            "success": True,
            "event_id": event_id,
            "confirmation": (
                f"Appointment confirmed for {request.customer_name} "
                f"on {request.date} at {request.time}"
            ),
        }
