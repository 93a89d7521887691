"""
Redis Connection Management

Async Redis connection with retries and socket timeouts. Redis only backs
the slot locks, so unlike a cache it never fails open: an unreachable
server surfaces as RedisConnectionError and the caller treats it as a
transient failure.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

logger = logging.getLogger(__name__)

# App prefix for namespacing (allows multiple apps/versions on same Redis)
APP_PREFIX = "deskbot:v1:"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails after retries."""
    pass


class RedisClient:
    """
    Owns one Redis connection pool.

    Features:
    - Connection pooling
    - Automatic retries with exponential backoff
    - Socket timeouts on every command
    """

    def __init__(self, url: str, socket_timeout: float = 5.0, retries: int = 3):
        self.url = url
        self.socket_timeout = socket_timeout
        self.retries = retries
        self._client: Optional[Redis] = None

    async def connect(self) -> Redis:
        """
        Create the client and verify it with a PING.

        Returns:
            Connected Redis client

        Raises:
            RedisConnectionError: If the server cannot be reached
        """
        if self._client is not None:
            return self._client

        retry = Retry(ExponentialBackoff(), retries=self.retries)
        client = redis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=self.socket_timeout,
            socket_timeout=self.socket_timeout,
            retry_on_timeout=True,
            retry=retry,
        )

        try:
            await client.ping()
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            await client.aclose()
            raise RedisConnectionError(str(e)) from e

        self._client = client
        logger.info("Redis connection established successfully")
        return client

    @property
    def client(self) -> Redis:
        """Connected client. Call connect() first."""
        if self._client is None:
            raise RedisConnectionError("Redis client is not connected")
        return self._client

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client is None:
            return
        try:
            await self._client.aclose()
            logger.info("Redis connection closed")
        except RedisError as e:
            logger.error(f"Error closing Redis connection: {e}")
        finally:
            self._client = None

    async def check_health(self) -> bool:
        """
        Check Redis connectivity for health checks.

        Returns:
            bool: True if Redis answers PING, False otherwise
        """
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False
