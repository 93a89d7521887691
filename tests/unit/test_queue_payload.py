"""Tests for Telegram update parsing."""

import pytest

from deskbot.core.queue import parse_update


class TestParseUpdate:

    def test_text_message(self):
        message = parse_update({
            "update_id": 1,
            "message": {
                "message_id": 42,
                "text": "book AC cleaning tomorrow",
                "chat": {"id": 555, "type": "private"},
                "from": {"id": 777, "first_name": "Nimal"},
                "date": 1732500000,
            },
        })

        assert message.text == "book AC cleaning tomorrow"
        assert message.chat_id == "555"
        assert message.user_id == "777"
        assert message.message_id == 42

    def test_edited_message_fallback(self):
        message = parse_update({
            "update_id": 2,
            "edited_message": {"message_id": 5, "text": "hello again", "chat": {"id": 1}},
        })
        assert message.text == "hello again"
        assert message.user_id == "unknown"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"update_id": 3},
            {"update_id": 4, "message": {"message_id": 1, "chat": {"id": 1}}},
            {"update_id": 5, "message": {"message_id": 1, "text": "   ", "chat": {"id": 1}}},
            {"update_id": 6, "message": {"message_id": 1, "text": "hi"}},
            {"update_id": 7, "message": "not an object"},
        ],
    )
    def test_no_usable_text(self, payload):
        assert parse_update(payload) is None
