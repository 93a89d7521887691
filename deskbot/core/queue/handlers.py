"""
Intent handlers.

Each handler turns a customer message into a reply and reports the model
tokens it spent, so the dispatcher can settle the budget reservation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from deskbot.core.billing.pricing import estimate_tokens
from deskbot.core.booking.agent import BookingAgent
from deskbot.core.booking.appointments import AppointmentRepository
from deskbot.core.intelligence.intent.types import Intent
from deskbot.core.knowledge.faq import FaqRepository, build_faq_prompt
from deskbot.core.tenants import TenantProfile
from deskbot.infra.llm.base import ChatOracle
from deskbot.infra.llm.types import Turn

from .payload import InboundMessage

logger = logging.getLogger(__name__)

GREETING_REPLY = "Hello! How can I help you today?"
COMPLAINT_REPLY = "Your complaint has been escalated to our team. We will contact you shortly."
UNKNOWN_REPLY = "I apologize, but I did not understand your request. Could you please rephrase?"
FAQ_NO_MATCH_REPLY = (
    "I don't have information about that. "
    "Let me connect you with a team member who can help."
)
FAQ_EMPTY_ANSWER_REPLY = "I apologize, I could not generate a response."
NO_APPOINTMENTS_REPLY = "You don't have any upcoming appointments. Would you like to book one?"

FAQ_SYSTEM_PROMPT = "You are a helpful assistant for a service business."


@dataclass
class HandlerResult:
    """Reply plus the model usage behind it."""
    reply: Optional[str]
    tokens_in: int = 0
    tokens_out: int = 0
    used_model: bool = False


class IntentHandlers:
    """Routes a classified message to its handler."""

    def __init__(
        self,
        oracle: ChatOracle,
        faqs: FaqRepository,
        appointments: AppointmentRepository,
        booking_agent: BookingAgent,
        faq_max_tokens: int = 150,
        chars_per_token: int = 3,
    ):
        self.oracle = oracle
        self.faqs = faqs
        self.appointments = appointments
        self.booking_agent = booking_agent
        self.faq_max_tokens = faq_max_tokens
        self.chars_per_token = chars_per_token

    async def usage_bound(
        self,
        intent: Intent,
        tenant: TenantProfile,
        message: InboundMessage,
    ) -> Optional[tuple[int, int]]:
        """
        Most tokens handling this message can spend, as (input, output).

        None for intents with no bound of their own; the caller then falls
        back to an estimate from the message text.
        """
        match intent:
            case Intent.BOOKING:
                return await self.booking_agent.worst_case_usage(
                    tenant, message.chat_id, message.text, self.chars_per_token
                )
            case Intent.FAQ:
                matches = await self.faqs.search(tenant.id, message.text)
                if not matches:
                    return None
                prompt = FAQ_SYSTEM_PROMPT + "\n" + build_faq_prompt(message.text, matches)
                return estimate_tokens(prompt, self.chars_per_token), self.faq_max_tokens
            case _:
                return None

    async def handle(
        self,
        intent: Intent,
        tenant: TenantProfile,
        message: InboundMessage,
        model: str,
    ) -> HandlerResult:
        """
        Produce a reply for one message.

        Args:
            intent: Classified (and possibly continued) intent
            tenant: Business the message was sent to
            message: Customer message
            model: Model name admitted for this request

        Returns:
            HandlerResult
        """
        match intent:
            case Intent.GREETING:
                return HandlerResult(reply=GREETING_REPLY)
            case Intent.FAQ:
                return await self.handle_faq(tenant, message, model)
            case Intent.BOOKING:
                return await self.handle_booking(tenant, message)
            case Intent.STATUS:
                return await self.handle_status(tenant, message)
            case Intent.COMPLAINT:
                logger.warning(
                    f"Complaint from chat {message.chat_id} (tenant {tenant.id}): "
                    f"{message.text[:200]}"
                )
                return HandlerResult(reply=COMPLAINT_REPLY)
            case _:
                return HandlerResult(reply=UNKNOWN_REPLY)

    async def handle_faq(
        self,
        tenant: TenantProfile,
        message: InboundMessage,
        model: str,
    ) -> HandlerResult:
        matches = await self.faqs.search(tenant.id, message.text)
        if not matches:
            return HandlerResult(reply=FAQ_NO_MATCH_REPLY)

        response = await self.oracle.complete(
            model=model,
            system=FAQ_SYSTEM_PROMPT,
            turns=[Turn.user(build_faq_prompt(message.text, matches))],
            max_tokens=self.faq_max_tokens,
            temperature=0.7,
        )
        return HandlerResult(
            reply=response.text or FAQ_EMPTY_ANSWER_REPLY,
            tokens_in=response.input_tokens,
            tokens_out=response.output_tokens,
            used_model=True,
        )

    async def handle_booking(self, tenant: TenantProfile, message: InboundMessage) -> HandlerResult:
        result = await self.booking_agent.run(tenant, message.chat_id, message.text)
        return HandlerResult(
            reply=result.reply,
            tokens_in=result.tokens_in,
            tokens_out=result.tokens_out,
            used_model=True,
        )

    async def handle_status(self, tenant: TenantProfile, message: InboundMessage) -> HandlerResult:
        today = datetime.now(ZoneInfo(tenant.timezone)).date().isoformat()
        upcoming = await self.appointments.list_upcoming(tenant.id, message.chat_id, today)
        if not upcoming:
            return HandlerResult(reply=NO_APPOINTMENTS_REPLY)

        lines = ["Your upcoming appointments:"]
        for a in upcoming:
            lines.append(f"- {a.service_type} on {a.date} at {a.time}")
        return HandlerResult(reply="\n".join(lines))
