"""
Telegram Bot API Client

Sends replies back to customers. Each business has its own bot, so the
token is passed per call.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

# Telegram rejects messages over 4096 characters
MAX_MESSAGE_LENGTH = 4000


def split_long_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """
    Split text into chunks no longer than max_length.

    Splits on line boundaries; a single line longer than max_length is cut
    into fixed-size pieces.
    """
    if len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    current = ""

    for line in text.split("\n"):
        while len(line) > max_length:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:max_length])
            line = line[max_length:]

        candidate = f"{current}\n{line}" if current else line
        if len(candidate) <= max_length:
            current = candidate
        else:
            chunks.append(current)
            current = line

    if current:
        chunks.append(current)

    return chunks


class TelegramClient:
    """Async Telegram Bot API client."""

    def __init__(
        self,
        base_url: str = "https://api.telegram.org",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _call(self, bot_token: str, method: str, payload: dict[str, Any]) -> bool:
        client = await self._get_client()
        try:
            response = await client.post(f"/bot{bot_token}/{method}", json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Telegram {method} failed: {e}")
            return False

        if not data.get("ok"):
            logger.error(f"Telegram {method} rejected: {data.get('description')}")
            return False
        return True

    async def send_typing_action(self, bot_token: str, chat_id: str) -> bool:
        """Show the typing indicator. Failure is harmless."""
        return await self._call(bot_token, "sendChatAction", {"chat_id": chat_id, "action": "typing"})

    async def send_message(
        self,
        bot_token: str,
        chat_id: str,
        text: str,
        reply_to_message_id: Optional[int] = None,
        parse_mode: str = "Markdown",
    ) -> bool:
        """
        Send a message, split into several if it is too long.

        Only the first chunk is threaded as a reply.

        Returns:
            True if every chunk was accepted
        """
        logger.info(f"Sending message to chat {chat_id}")

        for index, chunk in enumerate(split_long_message(text)):
            payload: dict[str, Any] = {
                "chat_id": chat_id,
                "text": chunk,
                "parse_mode": parse_mode,
            }
            if reply_to_message_id is not None and index == 0:
                payload["reply_to_message_id"] = reply_to_message_id

            if not await self._call(bot_token, "sendMessage", payload):
                return False

        return True
