"""Load, bootstrap and update the singleton game settings row.

Snapshots are cached for a short TTL. A cached snapshot is only trusted
while the row's ``updated_at`` is not newer than the cached copy, so admin
changes take effect on the next request.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import SETTINGS_KEY, GameCache
from dailyplay.config import get_settings
from dailyplay.db.dialect import insert_ignore
from dailyplay.db.models import GameSettings, GameState
from dailyplay.game.errors import CacheUnavailableError
from dailyplay.game.game_config import GameConfig, ensure_utc
from dailyplay.metrics import MetricsSink

logger = logging.getLogger(__name__)

SETTINGS_ID = 1

_MUTABLE_FIELDS = frozenset({
    "launch_date",
    "seconds_per_day",
    "streak_base_multiplier",
    "streak_increment_per_day",
    "weekly_reset_enabled",
    "weekly_reset_day",
    "current_week_number",
    "referral_extra_plays",
    "game_state",
})


def _default_launch_date() -> datetime:
    configured = get_settings().game_launch_date
    day = date.fromisoformat(configured) if configured else datetime.now(timezone.utc).date()
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


async def get_or_create_settings_row(db: AsyncSession) -> GameSettings:
    """Return the settings row, creating it with defaults on first access."""
    row = await db.get(GameSettings, SETTINGS_ID, populate_existing=True)
    if row is not None:
        return row

    now = datetime.now(timezone.utc)
    launch_date = _default_launch_date()
    created = await insert_ignore(db, GameSettings, ["id"], {
        "id": SETTINGS_ID,
        "launch_date": launch_date,
        "seconds_per_day": None,
        "streak_base_multiplier": 1.0,
        "streak_increment_per_day": 0.1,
        "weekly_reset_enabled": False,
        "weekly_reset_day": 0,
        "current_week_number": None,
        "referral_extra_plays": get_settings().default_referral_extra_plays,
        "game_state": GameState.ACTIVE,
        "created_at": now,
        "updated_at": now,
    })
    await db.commit()
    if created:
        logger.info("Game settings initialized with launch date %s", launch_date.isoformat())

    row = await db.get(GameSettings, SETTINGS_ID, populate_existing=True)
    if row is None:
        msg = "Game settings row missing after bootstrap"
        raise RuntimeError(msg)
    return row


async def load_config(
    db: AsyncSession,
    cache: GameCache,
    metrics: MetricsSink | None = None,
) -> GameConfig:
    """Read-through load of the settings snapshot."""
    try:
        cached = await cache.get_json(SETTINGS_KEY)
    except RedisError:
        logger.error("Settings cache read failed, loading from database", exc_info=True)
        if metrics:
            metrics.incr("redis_errors_total", error_type="cache_read_error")
        cached = None

    if cached:
        if metrics:
            metrics.incr("cache_hits_total", cache_key_pattern="game:settings")
        config = GameConfig.from_dict(cached)
        result = await db.execute(
            select(GameSettings.updated_at).where(GameSettings.id == SETTINGS_ID)
        )
        db_updated_at = result.scalar_one_or_none()
        if (
            db_updated_at is not None
            and config.updated_at is not None
            and ensure_utc(db_updated_at) <= config.updated_at
        ):
            return config
        logger.info("Cached settings are stale, reloading")
    elif metrics:
        metrics.incr("cache_misses_total", cache_key_pattern="game:settings")

    row = await get_or_create_settings_row(db)
    config = GameConfig.from_model(row)

    try:
        await cache.set_json(SETTINGS_KEY, config.to_dict(), get_settings().settings_cache_ttl_seconds)
    except RedisError as exc:
        logger.critical("Cannot write settings to Redis; shared cache is required", exc_info=True)
        raise CacheUnavailableError(f"Cache write failed: {exc}") from exc
    return config


def touch_settings(row: GameSettings, now: datetime) -> None:
    """Advance ``updated_at``, strictly, even when the caller's clock is frozen."""
    previous = ensure_utc(row.updated_at) if row.updated_at else None
    row.updated_at = now if previous is None else max(now, previous + timedelta(microseconds=1))


async def update_settings(
    db: AsyncSession,
    cache: GameCache,
    now: datetime | None = None,
    **changes: Any,  # noqa: ANN401
) -> GameConfig:
    """Apply changes to the settings row, bump ``updated_at`` and drop the cache."""
    unknown = set(changes) - _MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown settings fields: {', '.join(sorted(unknown))}")
    if now is None:
        now = datetime.now(timezone.utc)

    row = await get_or_create_settings_row(db)
    for field, value in changes.items():
        setattr(row, field, value)
    touch_settings(row, now)
    await db.commit()

    try:
        await cache.delete(SETTINGS_KEY)
    except RedisError:
        logger.error("Settings cache invalidation failed", exc_info=True)
    return GameConfig.from_model(row)
