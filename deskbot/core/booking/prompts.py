"""Prompts for the booking agent."""

import json
from datetime import date, timedelta

from deskbot.core.intelligence.conversation.models import BookingState

SYSTEM_PROMPT = """You are the booking assistant for {business_name}, a service business.

Your job is to book appointments using the calendar tools.
- Only offer times returned by get_available_slots.
- Never invent a booking confirmation; only book_appointment confirms a booking.
- Keep replies short, friendly, and professional."""

FALLBACK_MESSAGE = (
    "To complete your booking, please provide all details in one message: "
    "service, date, time, your name, and phone (10 digits)."
)

FIRST_CONTACT_TEMPLATE = """Customer message: "{message}"

WORKFLOW:
1. Extract info from message (service, date, time, name, phone)
2. If you have a date, call get_available_slots to check availability
3. If customer has picked a time and provided name+phone, call book_appointment
4. If info is missing, ask politely (specify format: phone must be 10 digits like 0771234567)

Current date: {today}
Tomorrow: {tomorrow}

Start by checking availability if you can determine the date."""

CONTINUATION_TEMPLATE = """Customer's new message: "{message}"

Continue helping them complete the booking. State: {state}
Still needed: {missing}"""


def system_prompt(business_name: str) -> str:
    return SYSTEM_PROMPT.format(business_name=business_name)


def first_contact_prompt(message: str, today: date) -> str:
    """Seed prompt for a conversation with no history."""
    return FIRST_CONTACT_TEMPLATE.format(
        message=message,
        today=today.isoformat(),
        tomorrow=(today + timedelta(days=1)).isoformat(),
    )


def continuation_prompt(message: str, state: BookingState) -> str:
    """Seed prompt for a returning customer, carrying what is known so far."""
    return CONTINUATION_TEMPLATE.format(
        message=message,
        state=json.dumps(state.to_dict()),
        missing=", ".join(state.missing_fields()) or "nothing, confirm and book",
    )
