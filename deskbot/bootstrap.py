"""
Application wiring.

Builds every component once from settings and hands them to each other
explicitly. The FastAPI app and the polling worker share this.
"""

import logging
from dataclasses import dataclass

from deskbot.config import Settings
from deskbot.core.billing import AdmissionController, PricingTable, SQLBudgetLedger
from deskbot.core.booking import (
    AppointmentRepository,
    BookingAgent,
    CalendarToolExecutor,
    SlotLock,
)
from deskbot.core.intelligence.conversation import ConversationStore
from deskbot.core.intelligence.model_selector import Tier
from deskbot.core.knowledge.faq import FaqRepository
from deskbot.core.queue import QueueDispatcher, QueueRepository
from deskbot.core.queue.delivery import ReplyDelivery
from deskbot.core.queue.handlers import IntentHandlers
from deskbot.core.tenants import BusinessRepository
from deskbot.infra.calendar import GoogleCalendarClient
from deskbot.infra.database import Database
from deskbot.infra.llm import ChatOracle, build_oracle
from deskbot.infra.redis import RedisClient
from deskbot.infra.telegram import TelegramClient

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on environment."""
    log_level = logging.DEBUG if debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if debug else logging.WARNING
    )


@dataclass
class Container:
    """Constructed application components."""

    settings: Settings
    db: Database
    redis: RedisClient
    oracle: ChatOracle
    calendar: GoogleCalendarClient
    telegram: TelegramClient
    dispatcher: QueueDispatcher

    async def close(self) -> None:
        """Release every connection. Call on shutdown."""
        await self.telegram.close()
        await self.calendar.close()
        await self.oracle.close()
        await self.redis.close()
        await self.db.close()
        logger.info("All connections closed")


async def build_container(settings: Settings) -> Container:
    """
    Build and connect all components.

    Raises:
        RedisConnectionError: If Redis cannot be reached
        ValueError: If the configured model provider has no API key
    """
    db = Database.from_url(settings.database_url, echo=settings.debug)
    redis_client = RedisClient(settings.redis_url, socket_timeout=settings.redis_socket_timeout)
    await redis_client.connect()

    oracle = build_oracle(settings)
    calendar = GoogleCalendarClient(
        base_url=settings.google_calendar_base_url,
        timeout=settings.calendar_timeout_seconds,
    )
    telegram = TelegramClient(
        base_url=settings.telegram_api_base_url,
        timeout=settings.telegram_timeout_seconds,
    )

    pricing = PricingTable.from_settings(settings)
    admission = AdmissionController(
        ledger=SQLBudgetLedger(db),
        pricing=pricing,
        safety_margin=settings.budget_safety_margin,
        chars_per_token=settings.chars_per_token,
    )
    conversations = ConversationStore(
        db,
        ttl_minutes=settings.conversation_ttl_minutes,
        max_history_turns=settings.max_history_turns,
    )
    appointments = AppointmentRepository(db)
    executor = CalendarToolExecutor(
        calendar=calendar,
        slot_lock=SlotLock(redis_client.client, default_ttl=settings.slot_lock_ttl_seconds),
        appointments=appointments,
        slot_minutes=settings.slot_minutes,
        lock_ttl_seconds=settings.slot_lock_ttl_seconds,
    )
    agent = BookingAgent(
        oracle=oracle,
        executor=executor,
        store=conversations,
        model=pricing.model_for(Tier.CAPABLE),
        max_iterations=settings.max_agent_iterations,
    )
    handlers = IntentHandlers(
        oracle=oracle,
        faqs=FaqRepository(db),
        appointments=appointments,
        booking_agent=agent,
        faq_max_tokens=settings.expected_output_tokens,
        chars_per_token=settings.chars_per_token,
    )
    dispatcher = QueueDispatcher(
        queue=QueueRepository(db),
        tenants=BusinessRepository(
            db,
            default_timezone=settings.default_timezone,
            default_hours_start=settings.default_business_hours_start,
            default_hours_end=settings.default_business_hours_end,
        ),
        conversations=conversations,
        admission=admission,
        handlers=handlers,
        delivery=ReplyDelivery(telegram, reply_threaded=settings.reply_threaded),
        expected_output_tokens=settings.expected_output_tokens,
    )

    return Container(
        settings=settings,
        db=db,
        redis=redis_client,
        oracle=oracle,
        calendar=calendar,
        telegram=telegram,
        dispatcher=dispatcher,
    )
