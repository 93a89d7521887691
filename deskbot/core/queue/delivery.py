"""Outbound reply delivery over Telegram."""

import asyncio
import logging

from deskbot.core.tenants import TenantProfile
from deskbot.infra.telegram import TelegramClient

from .payload import InboundMessage

logger = logging.getLogger(__name__)


class ReplyDelivery:
    """Sends a reply to the chat a message came from."""

    def __init__(
        self,
        telegram: TelegramClient,
        reply_threaded: bool = True,
        typing_delay_seconds: float = 0.5,
    ):
        self.telegram = telegram
        self.reply_threaded = reply_threaded
        self.typing_delay_seconds = typing_delay_seconds

    async def deliver(self, tenant: TenantProfile, message: InboundMessage, text: str) -> bool:
        """
        Show the typing indicator, then send the reply.

        Returns:
            True if Telegram accepted the message
        """
        if not tenant.telegram_bot_token:
            logger.error(f"No Telegram bot token for tenant {tenant.id}")
            return False

        await self.telegram.send_typing_action(tenant.telegram_bot_token, message.chat_id)
        if self.typing_delay_seconds:
            await asyncio.sleep(self.typing_delay_seconds)

        sent = await self.telegram.send_message(
            tenant.telegram_bot_token,
            message.chat_id,
            text,
            reply_to_message_id=message.message_id if self.reply_threaded else None,
        )
        if not sent:
            logger.error(f"Failed to deliver reply to chat {message.chat_id}")
        return sent
