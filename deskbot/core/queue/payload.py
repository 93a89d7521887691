"""Telegram update parsing."""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: Optional[int] = None
    text: Optional[str] = None
    chat: Optional[TelegramChat] = None
    sender: Optional[TelegramUser] = Field(default=None, alias="from")


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None


@dataclass(frozen=True)
class InboundMessage:
    """A customer text message extracted from an update."""
    text: str
    user_id: str
    chat_id: str
    message_id: Optional[int] = None


def parse_update(payload: dict[str, Any]) -> Optional[InboundMessage]:
    """
    Extract the text message from a Telegram update.

    Uses message, falling back to edited_message. Returns None for updates
    with no text (stickers, photos, joins) or that fail validation.
    """
    try:
        update = TelegramUpdate.model_validate(payload or {})
    except ValidationError as e:
        logger.warning(f"Malformed Telegram update: {e.error_count()} validation errors")
        return None

    message = update.message or update.edited_message
    if message is None or not message.text or not message.text.strip():
        return None
    if message.chat is None:
        return None

    return InboundMessage(
        text=message.text,
        user_id=str(message.sender.id) if message.sender else "unknown",
        chat_id=str(message.chat.id),
        message_id=message.message_id,
    )
