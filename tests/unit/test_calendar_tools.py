"""Tests for the calendar tool executor."""

import asyncio
from dataclasses import replace
from datetime import datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from deskbot.core.booking import AppointmentRepository, CalendarToolExecutor, SlotKey, SlotLock
from deskbot.core.booking.tools import BOOK_APPOINTMENT, GET_AVAILABLE_SLOTS, TOOL_DEFINITIONS
from deskbot.infra.calendar import (
    BusyInterval,
    CalendarAPIError,
    CalendarUnavailableError,
    GoogleCalendarClient,
)
from deskbot.infra.redis import RedisConnectionError

COLOMBO = ZoneInfo("Asia/Colombo")

BOOKING_ARGS = {
    "date": "2025-11-25",
    "time": "14:00",
    "customer_name": "Nimal Perera",
    "customer_phone": "0771234567",
    "service_type": "AC Cleaning",
}


@pytest.fixture
def calendar():
    calendar = AsyncMock(spec=GoogleCalendarClient)
    calendar.query_busy.return_value = []
    calendar.insert_event.return_value = "evt_123"
    return calendar


@pytest.fixture
def appointments():
    return AsyncMock(spec=AppointmentRepository)


@pytest.fixture
def slot_lock(fake_redis):
    return SlotLock(fake_redis, default_ttl=300)


@pytest.fixture
def executor(calendar, slot_lock, appointments):
    return CalendarToolExecutor(calendar, slot_lock, appointments, slot_minutes=60)


class TestToolDefinitions:
    """Test the tool schemas given to the model."""

    def test_names(self):
        assert [t.name for t in TOOL_DEFINITIONS] == [GET_AVAILABLE_SLOTS, BOOK_APPOINTMENT]

    def test_book_appointment_required_fields(self):
        book = TOOL_DEFINITIONS[1]
        assert set(book.parameters["required"]) == {
            "date", "time", "customer_name", "customer_phone", "service_type"
        }


class TestGetAvailableSlots:
    """Test availability lookup."""

    @pytest.mark.asyncio
    async def test_all_slots_free(self, executor, tenant):
        result = await executor.execute(GET_AVAILABLE_SLOTS, {"date": "2025-11-25"}, tenant)

        assert result["date"] == "2025-11-25"
        assert result["available_slots"] == [
            "08:00", "09:00", "10:00", "11:00", "12:00",
            "13:00", "14:00", "15:00", "16:00", "17:00",
        ]
        assert result["count"] == 10

    @pytest.mark.asyncio
    async def test_busy_and_locked_slots_removed(self, executor, calendar, slot_lock, tenant):
        calendar.query_busy.return_value = [
            BusyInterval(
                start=datetime(2025, 11, 25, 10, 0, tzinfo=COLOMBO),
                end=datetime(2025, 11, 25, 11, 30, tzinfo=COLOMBO),
            ),
        ]
        await slot_lock.acquire(SlotKey(tenant.id, "2025-11-25", "14:00"))

        result = await executor.execute(GET_AVAILABLE_SLOTS, {"date": "2025-11-25"}, tenant)

        assert "10:00" not in result["available_slots"]
        assert "11:00" not in result["available_slots"]
        assert "14:00" not in result["available_slots"]
        assert result["count"] == 7

    @pytest.mark.asyncio
    async def test_queries_business_day_in_tenant_timezone(self, executor, calendar, tenant):
        await executor.execute(GET_AVAILABLE_SLOTS, {"date": "2025-11-25"}, tenant)

        _, calendar_id, time_min, time_max = calendar.query_busy.await_args.args
        assert calendar_id == "primary"
        assert time_min == datetime(2025, 11, 25, 8, 0, tzinfo=COLOMBO)
        assert time_max == datetime(2025, 11, 25, 18, 0, tzinfo=COLOMBO)

    @pytest.mark.asyncio
    async def test_invalid_date(self, executor, calendar, tenant):
        result = await executor.execute(GET_AVAILABLE_SLOTS, {"date": "25/11/2025"}, tenant)

        assert "Invalid date format. Use YYYY-MM-DD" in result["error"]
        calendar.query_busy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_calendar_not_connected(self, executor, tenant):
        tenant = replace(tenant, calendar_access_token=None)
        result = await executor.execute(GET_AVAILABLE_SLOTS, {"date": "2025-11-25"}, tenant)
        assert result == {"error": "Calendar not connected"}

    @pytest.mark.asyncio
    async def test_calendar_api_error_is_tool_error(self, executor, calendar, tenant):
        calendar.query_busy.side_effect = CalendarAPIError("Calendar API error (401): bad token", 401)
        result = await executor.execute(GET_AVAILABLE_SLOTS, {"date": "2025-11-25"}, tenant)
        assert "error" in result

    @pytest.mark.asyncio
    async def test_calendar_unavailable_raises(self, executor, calendar, tenant):
        calendar.query_busy.side_effect = CalendarUnavailableError("timeout")
        with pytest.raises(CalendarUnavailableError):
            await executor.execute(GET_AVAILABLE_SLOTS, {"date": "2025-11-25"}, tenant)


class TestBookAppointment:
    """Test booking under the slot lock."""

    @pytest.mark.asyncio
    async def test_success(self, executor, calendar, appointments, slot_lock, tenant):
        result = await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant, customer_chat_id="555")

        assert result["success"] is True
        assert result["event_id"] == "evt_123"
        assert "Nimal Perera" in result["confirmation"]

        kwargs = calendar.insert_event.await_args.kwargs
        assert kwargs["summary"] == "AC Cleaning - Nimal Perera"
        assert kwargs["start"] == datetime(2025, 11, 25, 14, 0, tzinfo=COLOMBO)
        assert kwargs["end"] == datetime(2025, 11, 25, 15, 0, tzinfo=COLOMBO)
        assert kwargs["timezone"] == "Asia/Colombo"

        stored = appointments.create.await_args.kwargs
        assert stored["google_event_id"] == "evt_123"
        assert stored["customer_chat_id"] == "555"
        assert stored["duration_minutes"] == 60

        assert await slot_lock.exists(SlotKey(tenant.id, "2025-11-25", "14:00"))

    @pytest.mark.asyncio
    async def test_invalid_phone_rejected(self, executor, calendar, slot_lock, tenant):
        result = await executor.execute(
            BOOK_APPOINTMENT, {**BOOKING_ARGS, "customer_phone": "12345"}, tenant
        )

        assert "Invalid phone number" in result["error"]
        calendar.insert_event.assert_not_awaited()
        assert not await slot_lock.exists(SlotKey(tenant.id, "2025-11-25", "14:00"))

    @pytest.mark.asyncio
    async def test_phone_with_spaces_accepted(self, executor, appointments, tenant):
        result = await executor.execute(
            BOOK_APPOINTMENT, {**BOOKING_ARGS, "customer_phone": "077 123 4567"}, tenant
        )
        assert result["success"] is True
        assert appointments.create.await_args.kwargs["customer_phone"] == "0771234567"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_time", ["2pm", "24:00", "9:00"])
    async def test_invalid_time_rejected(self, executor, calendar, tenant, bad_time):
        result = await executor.execute(BOOK_APPOINTMENT, {**BOOKING_ARGS, "time": bad_time}, tenant)
        assert "error" in result
        calendar.insert_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_field_rejected(self, executor, tenant):
        args = {k: v for k, v in BOOKING_ARGS.items() if k != "customer_name"}
        result = await executor.execute(BOOK_APPOINTMENT, args, tenant)
        assert "customer_name" in result["error"]

    @pytest.mark.asyncio
    async def test_locked_slot_rejected(self, executor, calendar, slot_lock, tenant):
        await slot_lock.acquire(SlotKey(tenant.id, "2025-11-25", "14:00"))

        result = await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant)

        assert "just booked by another customer" in result["error"]
        calendar.insert_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_acquire_race(self, executor, calendar, slot_lock, tenant):
        slot_lock.acquire = AsyncMock(return_value=False)

        result = await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant)

        assert "currently being booked" in result["error"]
        calendar.insert_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_booking_of_same_slot_rejected(self, executor, calendar, tenant):
        first = await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant)
        second = await executor.execute(
            BOOK_APPOINTMENT, {**BOOKING_ARGS, "customer_name": "Kamal"}, tenant
        )

        assert first["success"] is True
        assert "error" in second
        assert calendar.insert_event.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_bookings_of_same_slot(self, executor, calendar, appointments, tenant):
        async def slow_insert(*args, **kwargs):
            await asyncio.sleep(0)
            return "evt_123"

        calendar.insert_event.side_effect = slow_insert

        results = await asyncio.gather(*[
            executor.execute(BOOK_APPOINTMENT, {**BOOKING_ARGS, "customer_name": f"Customer {i}"}, tenant)
            for i in range(5)
        ])

        assert sum(1 for r in results if r.get("success")) == 1
        assert sum(1 for r in results if "error" in r) == 4
        assert calendar.insert_event.await_count == 1
        assert appointments.create.await_count == 1

    @pytest.mark.asyncio
    async def test_calendar_error_releases_lock(self, executor, calendar, appointments, slot_lock, tenant):
        calendar.insert_event.side_effect = CalendarAPIError("Calendar API error (403): forbidden", 403)

        result = await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant)

        assert "403" in result["error"]
        appointments.create.assert_not_awaited()
        assert not await slot_lock.exists(SlotKey(tenant.id, "2025-11-25", "14:00"))

    @pytest.mark.asyncio
    async def test_calendar_unavailable_releases_lock_and_raises(self, executor, calendar, slot_lock, tenant):
        calendar.insert_event.side_effect = CalendarUnavailableError("connect timeout")

        with pytest.raises(CalendarUnavailableError):
            await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant)

        assert not await slot_lock.exists(SlotKey(tenant.id, "2025-11-25", "14:00"))

    @pytest.mark.asyncio
    async def test_database_failure_releases_lock_and_raises(self, executor, appointments, slot_lock, tenant):
        appointments.create.side_effect = RuntimeError("database gone")

        with pytest.raises(RuntimeError):
            await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant)

        assert not await slot_lock.exists(SlotKey(tenant.id, "2025-11-25", "14:00"))

    @pytest.mark.asyncio
    async def test_redis_down_raises(self, executor, calendar, fake_redis, tenant):
        fake_redis.fail = True

        with pytest.raises(RedisConnectionError):
            await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant)

        calendar.insert_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_calendar_not_connected(self, executor, tenant):
        tenant = replace(tenant, calendar_access_token=None)
        result = await executor.execute(BOOK_APPOINTMENT, BOOKING_ARGS, tenant)
        assert result == {"error": "Calendar not connected"}


class TestUnknownTool:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor, tenant):
        result = await executor.execute("cancel_appointment", {}, tenant)
        assert result == {"error": "Unknown tool: cancel_appointment"}
