"""Tests for the Telegram client and reply delivery."""

import json
from dataclasses import replace
from unittest.mock import AsyncMock

import httpx
import pytest

from deskbot.core.queue import InboundMessage
from deskbot.core.queue.delivery import ReplyDelivery
from deskbot.infra.telegram import TelegramClient, split_long_message

BASE_URL = "https://telegram.test"


def make_client(handler) -> TelegramClient:
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return TelegramClient(base_url=BASE_URL, client=http)


class TestSplitLongMessage:
    """Test message chunking."""

    def test_short_message_untouched(self):
        assert split_long_message("hello") == ["hello"]

    def test_splits_on_lines(self):
        text = "\n".join(["a" * 6] * 4)
        chunks = split_long_message(text, max_length=14)

        assert chunks == ["aaaaaa\naaaaaa", "aaaaaa\naaaaaa"]

    def test_long_line_is_cut(self):
        chunks = split_long_message("x" * 25, max_length=10)

        assert chunks == ["x" * 10, "x" * 10, "x" * 5]
        assert all(len(c) <= 10 for c in chunks)


class TestTelegramClient:
    """Test Bot API calls."""

    @pytest.mark.asyncio
    async def test_send_message(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True, "result": {}})

        client = make_client(handler)
        sent = await client.send_message("123:abc", "555", "Hello!", reply_to_message_id=42)

        assert sent
        path, body = requests[0]
        assert path == "/bot123:abc/sendMessage"
        assert body == {
            "chat_id": "555",
            "text": "Hello!",
            "parse_mode": "Markdown",
            "reply_to_message_id": 42,
        }

    @pytest.mark.asyncio
    async def test_only_first_chunk_threaded(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        client = make_client(handler)
        await client.send_message("t", "555", "a" * 3000 + "\n" + "b" * 3000, reply_to_message_id=7)

        assert len(bodies) == 2
        assert bodies[0]["reply_to_message_id"] == 7
        assert "reply_to_message_id" not in bodies[1]

    @pytest.mark.asyncio
    async def test_rejected_message(self):
        client = make_client(
            lambda request: httpx.Response(400, json={"ok": False, "description": "chat not found"})
        )
        assert not await client.send_message("t", "555", "hi")

    @pytest.mark.asyncio
    async def test_transport_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler)
        assert not await client.send_typing_action("t", "555")

    @pytest.mark.asyncio
    async def test_typing_action(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        client = make_client(handler)
        assert await client.send_typing_action("t", "555")
        assert seen["path"] == "/bott/sendChatAction"
        assert seen["body"] == {"chat_id": "555", "action": "typing"}


class TestReplyDelivery:
    """Test delivery to the originating chat."""

    @pytest.fixture
    def telegram(self):
        telegram = AsyncMock(spec=TelegramClient)
        telegram.send_typing_action.return_value = True
        telegram.send_message.return_value = True
        return telegram

    @pytest.fixture
    def message(self):
        return InboundMessage(text="hello", user_id="555", chat_id="555", message_id=42)

    @pytest.mark.asyncio
    async def test_threaded_reply(self, telegram, tenant, message):
        delivery = ReplyDelivery(telegram, reply_threaded=True, typing_delay_seconds=0)

        assert await delivery.deliver(tenant, message, "Hi there")

        telegram.send_typing_action.assert_awaited_once_with("123:bot-token", "555")
        telegram.send_message.assert_awaited_once_with(
            "123:bot-token", "555", "Hi there", reply_to_message_id=42
        )

    @pytest.mark.asyncio
    async def test_unthreaded_reply(self, telegram, tenant, message):
        delivery = ReplyDelivery(telegram, reply_threaded=False, typing_delay_seconds=0)

        await delivery.deliver(tenant, message, "Hi there")

        assert telegram.send_message.await_args.kwargs["reply_to_message_id"] is None

    @pytest.mark.asyncio
    async def test_missing_bot_token(self, telegram, tenant, message):
        delivery = ReplyDelivery(telegram, typing_delay_seconds=0)

        assert not await delivery.deliver(replace(tenant, telegram_bot_token=None), message, "Hi")
        telegram.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_failure_reported(self, telegram, tenant, message):
        telegram.send_message.return_value = False
        delivery = ReplyDelivery(telegram, typing_delay_seconds=0)

        assert not await delivery.deliver(tenant, message, "Hi")
