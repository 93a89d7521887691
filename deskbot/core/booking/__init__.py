"""
Appointment booking.

A bounded tool-calling agent that checks calendar availability and books
slots, with a Redis lock guarding each slot while it is being written.
"""

from .agent import AgentResult, BookingAgent
from .appointments import AppointmentRepository, AppointmentSummary
from .slot_lock import SlotKey, SlotLock
from .tools import TOOL_DEFINITIONS, CalendarToolExecutor

__all__ = [
    "AgentResult",
    "BookingAgent",
    "AppointmentRepository",
    "AppointmentSummary",
    "SlotKey",
    "SlotLock",
    "TOOL_DEFINITIONS",
    "CalendarToolExecutor",
]
