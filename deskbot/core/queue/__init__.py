"""
Inbound message queue processing.

Pulls pending Telegram updates, routes them by intent under budget
control, and sends the replies back.
"""

from .dispatcher import QueueDispatcher
from .payload import InboundMessage, parse_update
from .repository import QueueItemRecord, QueueRepository

__all__ = [
    "QueueDispatcher",
    "InboundMessage",
    "parse_update",
    "QueueItemRecord",
    "QueueRepository",
]
