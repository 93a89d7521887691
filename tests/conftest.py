"""Shared fixtures: in-memory database, fake Redis, scripted oracle."""

import os
import uuid
from typing import Optional

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionRefused
from sqlalchemy.pool import StaticPool

from deskbot.core.tenants import TenantProfile
from deskbot.infra.database import Database
from deskbot.infra.llm.base import ChatOracle
from deskbot.infra.llm.types import OracleResponse, ToolCall
from deskbot.models.database import Budget, Business


def pytest_configure(config):
    """Keep tests independent of any local .env file."""
    os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
    os.environ.setdefault("APP_ENV", "development")


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the slot lock."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionRefused("Connection refused")

    async def set(self, key, value, nx=False, ex=None):
        self._check()
        if nx and key in self.store:
            return None
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def exists(self, *keys):
        self._check()
        return sum(1 for k in keys if k in self.store)

    async def delete(self, *keys):
        self._check()
        removed = 0
        for k in keys:
            if self.store.pop(k, None) is not None:
                removed += 1
            self.ttls.pop(k, None)
        return removed


class ScriptedOracle(ChatOracle):
    """Oracle that replays canned responses (or raises queued exceptions) and records every request."""

    provider = "scripted"

    def __init__(self, responses: Optional[list] = None, repeat_last: bool = False):
        super().__init__(timeout_seconds=5.0, max_retries=1)
        self.responses = list(responses or [])
        self.repeat_last = repeat_last
        self.calls: list[dict] = []

    async def _complete(self, *, model, system, turns, tools, max_tokens, temperature):
        self.calls.append({
            "model": model,
            "system": system,
            "turns": list(turns),
            "tools": list(tools),
            "max_tokens": max_tokens,
        })
        if self.repeat_last and len(self.responses) == 1:
            return self.responses[0]
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def text_response(text: str, tokens_in: int = 100, tokens_out: int = 20) -> OracleResponse:
    return OracleResponse(
        text=text, tool_calls=[], input_tokens=tokens_in, output_tokens=tokens_out, model="test-model"
    )


def tool_response(*calls: ToolCall, tokens_in: int = 100, tokens_out: int = 20) -> OracleResponse:
    return OracleResponse(
        text="", tool_calls=list(calls), input_tokens=tokens_in, output_tokens=tokens_out, model="test-model"
    )


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database with all tables."""
    database = Database.from_url(
        "sqlite+aiosqlite://",
        engine_kwargs={
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        },
    )
    await database.create_all()
    yield database
    await database.close()


async def seed_business(db: Database, monthly_limit_usd: float = 10.0) -> Business:
    """Insert a business with a budget and a connected calendar."""
    row = Business(
        id=uuid.uuid4(),
        name="Lanka Cool Services",
        telegram_bot_token="123:bot-token",
        google_calendar_token={"access_token": "ya29.test"},
        calendar_id="primary",
        timezone="Asia/Colombo",
        business_hours={"start": "08:00", "end": "18:00"},
    )
    async with db.session() as session:
        session.add(row)
        session.add(Budget(
            business_id=row.id,
            monthly_limit_usd=monthly_limit_usd,
            current_usage_usd=0.0,
            pending_usage_usd=0.0,
        ))
    return row


@pytest_asyncio.fixture
async def file_db(tmp_path):
    """SQLite file database with one connection per session, for concurrency tests."""
    database = Database.from_url(f"sqlite+aiosqlite:///{tmp_path / 'deskbot.db'}")
    await database.create_all()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def business(db) -> Business:
    """A business with a $10 budget and a connected calendar."""
    return await seed_business(db)


@pytest.fixture
def tenant() -> TenantProfile:
    return TenantProfile(
        id=uuid.uuid4(),
        name="Lanka Cool Services",
        timezone="Asia/Colombo",
        business_hours_start="08:00",
        business_hours_end="18:00",
        calendar_id="primary",
        telegram_bot_token="123:bot-token",
        calendar_access_token="ya29.test",
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
