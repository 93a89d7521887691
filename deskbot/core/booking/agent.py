"""
Booking Agent Loop

Drives a tool-calling conversation with the model until it produces a
final answer or runs out of round-trips.

    turn_start -> awaiting_oracle_response
        -> no tool calls: done
        -> tool calls: executing_tools -> turn_start

Each iteration is one model round-trip. Tool results become the pending
turn of the next iteration. The conversation is saved after every tool
execution and before returning, so a crash mid-turn loses at most the
round-trip in flight.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from deskbot.core.billing.pricing import estimate_tokens
from deskbot.core.intelligence.conversation import BookingState, ConversationStore
from deskbot.core.intelligence.intent.types import Intent
from deskbot.core.tenants import TenantProfile
from deskbot.infra.llm.base import ChatOracle
from deskbot.infra.llm.types import ToolCall, ToolResult, Turn

from .prompts import FALLBACK_MESSAGE, continuation_prompt, first_contact_prompt, system_prompt
from .tools import BOOK_APPOINTMENT, GET_AVAILABLE_SLOTS, TOOL_DEFINITIONS, CalendarToolExecutor

logger = logging.getLogger(__name__)


def _today_in(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()


@dataclass
class AgentResult:
    """Outcome of one customer message."""
    reply: str
    tokens_in: int
    tokens_out: int
    iterations: int
    tool_calls: int
    exhausted: bool
    conversation_id: Any = None
    booked: bool = False


def apply_tool_outcome(state: BookingState, call: ToolCall, result: dict[str, Any]) -> None:
    """Fold a tool call and its result into the booking state."""
    args = call.arguments

    if call.name == GET_AVAILABLE_SLOTS:
        if isinstance(args.get("date"), str):
            state.date = args["date"]
        if "available_slots" in result:
            state.offered_slots = list(result["available_slots"])

    elif call.name == BOOK_APPOINTMENT:
        for field_name in ("service_type", "date", "time", "customer_name", "customer_phone"):
            value = args.get(field_name)
            if isinstance(value, str) and value.strip():
                setattr(state, field_name, value.strip())
        if result.get("success"):
            state.booked = True
            state.event_id = result.get("event_id")


class BookingAgent:
    """Bounded tool-calling loop for booking conversations."""

    def __init__(
        self,
        oracle: ChatOracle,
        executor: CalendarToolExecutor,
        store: ConversationStore,
        model: str,
        max_iterations: int = 5,
        max_tokens: int = 1024,
        tool_result_tokens: int = 300,
        today: Optional[Callable[[str], date]] = None,
    ):
        self.oracle = oracle
        self.executor = executor
        self.store = store
        self.model = model
        self.max_iterations = max_iterations
        self.max_tokens = max_tokens
        self.tool_result_tokens = tool_result_tokens
        self._today = today or _today_in

    def _seed_prompt(self, tenant: TenantProfile, message: str, state: BookingState, history: list[Turn]) -> str:
        if history:
            return continuation_prompt(message, state)
        return first_contact_prompt(message, self._today(tenant.timezone))

    async def worst_case_usage(
        self,
        tenant: TenantProfile,
        customer_id: str,
        message: str,
        chars_per_token: int = 3,
    ) -> tuple[int, int]:
        """
        Upper bound on the tokens one run can spend, as (input, output).

        Every round-trip resends the system prompt, the tool schema, the
        stored history and the seed prompt. Each round-trip also appends its
        reply (at most max_tokens) and its tool results to the input of all
        later ones.
        """
        conversation = await self.store.get_active(tenant.id, customer_id)
        history = list(conversation.history) if conversation else []
        state = conversation.booking_state if conversation else BookingState()

        resent = "\n".join([
            system_prompt(tenant.name),
            json.dumps([asdict(spec) for spec in TOOL_DEFINITIONS]),
            json.dumps([turn.to_dict() for turn in history]),
            self._seed_prompt(tenant, message, state, history),
        ])
        base = estimate_tokens(resent, chars_per_token)
        n = self.max_iterations
        growth = self.max_tokens + self.tool_result_tokens

        tokens_in = n * base + growth * n * (n - 1) // 2
        tokens_out = n * self.max_tokens
        return tokens_in, tokens_out

    async def run(self, tenant: TenantProfile, customer_id: str, message: str) -> AgentResult:
        """
        Handle one customer message.

        Args:
            tenant: Business being booked with
            customer_id: Telegram chat id
            message: Customer's text

        Returns:
            AgentResult with the reply and summed token usage

        Raises:
            OracleError: Model call failed
            CalendarUnavailableError: Calendar unreachable during a tool call
            RedisConnectionError: Lock store unreachable during a tool call
        """
        conversation = await self.store.get_or_create(tenant.id, customer_id, Intent.BOOKING.value)
        state = conversation.booking_state
        history = list(conversation.history)

        pending = Turn.user(self._seed_prompt(tenant, message, state, history))

        system = system_prompt(tenant.name)
        tokens_in = tokens_out = tool_calls = 0

        for iteration in range(1, self.max_iterations + 1):
            logger.info(f"Booking turn {iteration}/{self.max_iterations} (conversation {conversation.id})")

            response = await self.oracle.complete(
                model=self.model,
                system=system,
                turns=history + [pending],
                tools=TOOL_DEFINITIONS,
                max_tokens=self.max_tokens,
            )
            tokens_in += response.input_tokens
            tokens_out += response.output_tokens

            history.append(pending)
            history.append(Turn.assistant(response.text, response.tool_calls))

            if not response.wants_tools:
                await self.store.update(conversation.id, state.to_dict(), history)
                return AgentResult(
                    reply=response.text or FALLBACK_MESSAGE,
                    tokens_in=tokens_in,
                    tokens_out=tokens_out,
                    iterations=iteration,
                    tool_calls=tool_calls,
                    exhausted=False,
                    conversation_id=conversation.id,
                    booked=state.booked,
                )

            results: list[ToolResult] = []
            for call in response.tool_calls:
                content = await self.executor.execute(call.name, call.arguments, tenant, customer_id)
                if "error" in content:
                    logger.info(f"Tool {call.name} returned error: {content['error']}")
                apply_tool_outcome(state, call, content)
                results.append(ToolResult(call_id=call.id, name=call.name, content=content))
                tool_calls += 1

            pending = Turn.tool(results)
            await self.store.update(conversation.id, state.to_dict(), history + [pending])

        logger.warning(f"Booking loop exhausted after {self.max_iterations} turns (conversation {conversation.id})")
        history.append(pending)
        await self.store.update(conversation.id, state.to_dict(), history)

        return AgentResult(
            reply=FALLBACK_MESSAGE,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            iterations=self.max_iterations,
            tool_calls=tool_calls,
            exhausted=True,
            conversation_id=conversation.id,
            booked=state.booked,
        )
