"""Shared test fixtures.

Tests run against in-memory SQLite (aiosqlite) and fakeredis, so no external
services are needed. Set ``redis_server.connected = False`` to simulate a Redis
outage; commands then raise ``redis.exceptions.ConnectionError``.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any

os.environ.setdefault("DP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DP_LOG_FORMAT", "console")
os.environ.setdefault("DP_RATE_LIMIT_REQUESTS", "100")

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import GameCache
from dailyplay.config import get_settings
from dailyplay.database import close_db, get_engine, get_session, init_db
from dailyplay.db.base import Base
from dailyplay.dependencies import get_locks, get_oracle
from dailyplay.game.game_config import GameConfig
from dailyplay.game.locks import WalletLocks
from dailyplay.game.referral_oracle import BaseReferralOracle, ReferralCodePost
from dailyplay.game.settings_store import update_settings
from dailyplay.metrics import MetricsSink
from dailyplay.redis_client import set_redis

get_settings.cache_clear()

# Sunday; also the reset day in calendar mode
LAUNCH = datetime(2026, 1, 4, tzinfo=timezone.utc)

WALLET = "0xAbC1234567890DEF1234567890abcdef12345678"
OTHER_WALLET = "0x9999999999999999999999999999999999999999"


class FakeReferralOracle(BaseReferralOracle):
    """Knows a fixed set of codes (matched case-insensitively by slug)."""

    def __init__(self, codes: set[str] | None = None) -> None:
        self.codes = {c.lower() for c in (codes if codes is not None else {"friend2026"})}
        self.lookups: list[str] = []

    async def lookup(self, code: str) -> ReferralCodePost | None:
        self.lookups.append(code)
        slug = code.strip().lower()
        if slug not in self.codes:
            return None
        return ReferralCodePost(id=1, slug=slug, title=slug.upper())


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis(redis_server: fakeredis.FakeServer) -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def cache(fake_redis: fakeredis.FakeAsyncRedis) -> GameCache:
    return GameCache(fake_redis)


@pytest.fixture
def metrics(fake_redis: fakeredis.FakeAsyncRedis) -> MetricsSink:
    return MetricsSink(fake_redis)


@pytest.fixture
def locks() -> WalletLocks:
    return WalletLocks()


@pytest.fixture
def oracle() -> FakeReferralOracle:
    return FakeReferralOracle()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory schema per test."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async for session in get_session():
        yield session
    await close_db()


@pytest_asyncio.fixture
async def configure(db_session: AsyncSession, cache: GameCache):
    """Return a coroutine that applies settings changes (launch date defaults to LAUNCH)."""

    async def _configure(**changes: Any) -> GameConfig:  # noqa: ANN401
        changes.setdefault("launch_date", LAUNCH)
        return await update_settings(db_session, cache, **changes)

    return _configure


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    fake_redis: fakeredis.FakeAsyncRedis,
    oracle: FakeReferralOracle,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the ASGI app, sharing the test database and fakeredis client."""
    from dailyplay.main import create_app

    set_redis(fake_redis)
    app = create_app()
    app.dependency_overrides[get_oracle] = lambda: oracle
    shared_locks = WalletLocks()
    app.dependency_overrides[get_locks] = lambda: shared_locks

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    set_redis(None)
