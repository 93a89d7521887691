"""
Distributed slot lock.

A slot is locked while its Redis key exists. The key expires on its own,
so a crashed worker never holds a slot forever. There is no owner token:
any caller may release any key.
"""

import logging
import uuid
from typing import NamedTuple, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from deskbot.infra.redis import APP_PREFIX, RedisConnectionError

logger = logging.getLogger(__name__)

SLOT_PREFIX = f"{APP_PREFIX}slot:"


class SlotKey(NamedTuple):
    """One bookable slot of one business."""

    tenant_id: uuid.UUID
    date: str
    time: str

    @property
    def redis_key(self) -> str:
        return f"{SLOT_PREFIX}{self.tenant_id}:{self.date}:{self.time}"


class SlotLock:
    """
    SET NX EX based lock.

    Redis failures raise RedisConnectionError: a booking must not go ahead
    when exclusivity cannot be checked.
    """

    def __init__(self, redis: Redis, default_ttl: int = 300):
        self.redis = redis
        self.default_ttl = default_ttl

    async def acquire(self, key: SlotKey, ttl: Optional[int] = None) -> bool:
        """
        Lock a slot.

        Returns:
            True if this caller created the key, False if it already exists
        """
        try:
            created = await self.redis.set(key.redis_key, "1", nx=True, ex=ttl or self.default_ttl)
        except RedisError as e:
            raise RedisConnectionError(f"Slot lock acquire failed: {e}") from e

        if created:
            logger.info(f"Slot locked: {key.date} {key.time} (tenant {key.tenant_id})")
        return bool(created)

    async def exists(self, key: SlotKey) -> bool:
        """Check whether a slot is locked."""
        try:
            return bool(await self.redis.exists(key.redis_key))
        except RedisError as e:
            raise RedisConnectionError(f"Slot lock check failed: {e}") from e

    async def release(self, key: SlotKey) -> None:
        """Unlock a slot. Releasing an unlocked slot is a no-op."""
        try:
            await self.redis.delete(key.redis_key)
        except RedisError as e:
            raise RedisConnectionError(f"Slot lock release failed: {e}") from e
        logger.info(f"Slot unlocked: {key.date} {key.time} (tenant {key.tenant_id})")
