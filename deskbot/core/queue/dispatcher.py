"""
Queue Dispatcher

Processes one batch of pending queue items, oldest first:

1. Claim the item (pending -> processing); skip it if another
   dispatcher got there first.
2. Parse the Telegram update and load the business.
3. Classify intent. An unclassifiable message from a customer who is
   mid-booking continues the booking.
4. Pick the model tier, bound the handler's token use, and reserve
   budget for that bound.
5. Run the intent handler, then commit actual usage or release.
6. Mark completed (or failed on exception) and deliver the reply.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from deskbot.core.billing.admission import AdmissionController
from deskbot.core.intelligence.conversation import ConversationStore
from deskbot.core.intelligence.intent import IntentClassifier
from deskbot.core.intelligence.intent.types import Intent
from deskbot.core.intelligence.model_selector import select_model
from deskbot.core.tenants import BusinessRepository, TenantNotFoundError, TenantProfile

from .delivery import ReplyDelivery
from .handlers import IntentHandlers
from .payload import InboundMessage, parse_update
from .repository import QueueItemRecord, QueueRepository

logger = logging.getLogger(__name__)

BUDGET_EXHAUSTED_REPLY = (
    "Sorry, we can't handle automated requests right now. "
    "Please contact the business directly."
)


@dataclass
class ItemOutcome:
    """What to send back after an item completes."""
    reply: Optional[str] = None
    message: Optional[InboundMessage] = None
    tenant: Optional[TenantProfile] = None
    intent: Optional[Intent] = None


class QueueDispatcher:
    """Drains pending queue items one batch at a time."""

    def __init__(
        self,
        queue: QueueRepository,
        tenants: BusinessRepository,
        conversations: ConversationStore,
        admission: AdmissionController,
        handlers: IntentHandlers,
        delivery: ReplyDelivery,
        classifier: Optional[IntentClassifier] = None,
        expected_output_tokens: int = 150,
    ):
        self.queue = queue
        self.tenants = tenants
        self.conversations = conversations
        self.admission = admission
        self.handlers = handlers
        self.delivery = delivery
        self.classifier = classifier or IntentClassifier()
        self.expected_output_tokens = expected_output_tokens

    async def process_batch(self, max_items: int = 10) -> int:
        """
        Process up to max_items pending items.

        Returns:
            Number of items this call moved to completed
        """
        items = await self.queue.fetch_pending(max_items)
        if not items:
            logger.debug("No pending queue items")
            return 0

        logger.info(f"Processing {len(items)} queue items")

        processed = 0
        for item in items:
            if await self._process_item(item):
                processed += 1

        logger.info(f"Processed {processed}/{len(items)} queue items")
        return processed

    async def _process_item(self, item: QueueItemRecord) -> bool:
        if not await self.queue.claim(item.id):
            logger.debug(f"Item {item.id} already claimed, skipping")
            return False

        try:
            outcome = await self._handle(item)
        except Exception as e:
            logger.error(f"Item {item.id} failed: {e}", exc_info=True)
            try:
                await self.queue.mark_failed(item.id, f"{type(e).__name__}: {e}")
            except Exception as store_error:
                logger.error(f"Could not mark item {item.id} failed: {store_error}")
            return False

        completed = True
        try:
            await self.queue.mark_completed(item.id)
            logger.info(f"Item {item.id} completed (intent={outcome.intent})")
        except Exception as e:
            # Reply is still sent
            logger.error(f"Could not mark item {item.id} completed: {e}")
            completed = False

        if outcome.reply and outcome.message and outcome.tenant:
            try:
                await self.delivery.deliver(outcome.tenant, outcome.message, outcome.reply)
            except Exception as e:
                logger.error(f"Reply delivery for item {item.id} failed: {e}")

        return completed

    async def resolve_intent(self, tenant: TenantProfile, message: InboundMessage) -> Intent:
        """Classify, continuing an active booking for unclassifiable text."""
        intent = self.classifier.classify(message.text)
        if intent == Intent.UNKNOWN:
            active = await self.conversations.get_active(tenant.id, message.chat_id)
            if active is not None and active.is_booking:
                logger.info(f"Continuing booking conversation {active.id}")
                return Intent.BOOKING
        return intent

    async def _handle(self, item: QueueItemRecord) -> ItemOutcome:
        message = parse_update(item.raw_payload)
        if message is None:
            logger.warning(f"No text message in item {item.id}")
            return ItemOutcome()

        tenant = await self.tenants.get(item.business_id)
        if tenant is None:
            raise TenantNotFoundError(f"Business {item.business_id} not found")

        intent = await self.resolve_intent(tenant, message)
        tier = select_model(intent)
        bound = await self.handlers.usage_bound(intent, tenant, message)
        if bound is None:
            estimate = self.admission.estimate(tier, message.text, self.expected_output_tokens)
        else:
            estimate = self.admission.estimate_usage(tier, *bound)
        logger.info(f"Item {item.id}: intent={intent.value} tier={tier.value} model={estimate.model}")

        async with self.admission.admit(tenant.id, estimate) as reservation:
            if reservation is None:
                return ItemOutcome(
                    reply=BUDGET_EXHAUSTED_REPLY, message=message, tenant=tenant, intent=intent
                )

            result = await self.handlers.handle(intent, tenant, message, estimate.model)

            if result.used_model:
                cost = self.admission.actual_cost(reservation.tier, result.tokens_in, result.tokens_out)
                await self.admission.commit(reservation, cost, result.tokens_in, result.tokens_out)

        return ItemOutcome(reply=result.reply, message=message, tenant=tenant, intent=intent)
