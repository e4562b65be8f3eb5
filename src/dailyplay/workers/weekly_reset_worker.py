"""arq worker for the weekly rollover sweep, ledger reconciliation and the
active-players gauge.

Every replica may run this worker; the sweep converges when run repeatedly.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from arq import cron
from arq.connections import RedisSettings
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import GameCache
from dailyplay.config import get_settings
from dailyplay.database import close_db, get_session, init_db
from dailyplay.db.models import Player
from dailyplay.game.ledger import count_active_players, reconcile_player
from dailyplay.game.settings_store import load_config
from dailyplay.game.weekly_reset import check_and_perform_reset
from dailyplay.metrics import MetricsSink
from dailyplay.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)

RECONCILE_BATCH_SIZE = 500
ACTIVE_PLAYER_WINDOW = timedelta(hours=24)
ACTIVE_PLAYERS_MINUTES = set(range(0, 60, 5))


async def _get_db_session() -> AsyncSession:
    """Get a database session for the worker."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


async def weekly_reset_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)

    redis_client = await init_redis(settings.redis_url, max_connections=10)
    ctx["cache"] = GameCache(redis_client)
    ctx["metrics"] = MetricsSink(redis_client)
    await ctx["cache"].ping()
    logger.info("Weekly reset worker started")


async def weekly_reset_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    metrics: MetricsSink | None = ctx.get("metrics")
    if metrics:
        await metrics.flush()
    await close_redis()
    await close_db()
    logger.info("Weekly reset worker shut down")


async def weekly_reset_check(ctx: dict) -> int | None:  # type: ignore[type-arg]
    """Scheduled sweep. Returns the week index when a reset happened."""
    db = await _get_db_session()
    try:
        result = await check_and_perform_reset(db, ctx["cache"], metrics=ctx.get("metrics"))
    except Exception:
        logger.exception("Scheduled weekly reset failed")
        return None
    finally:
        await db.close()
    return result.week_number if result.performed else None


async def weekly_reset_now(ctx: dict) -> dict[str, int | bool | None]:  # type: ignore[type-arg]
    """Manually enqueued sweep; errors propagate so arq records the failure."""
    logger.info("Manual weekly reset triggered")
    db = await _get_db_session()
    try:
        result = await check_and_perform_reset(db, ctx["cache"], metrics=ctx.get("metrics"))
    finally:
        await db.close()
    return {
        "performed": result.performed,
        "week_number": result.week_number,
        "players_reset": result.players_reset,
    }


async def reconcile_ledgers(ctx: dict) -> int:  # type: ignore[type-arg]
    """Recompute every player's score fields from the play log. Returns rows repaired."""
    cache: GameCache = ctx["cache"]
    db = await _get_db_session()
    repaired = 0
    try:
        config = await load_config(db, cache)
        last_id = 0
        while True:
            result = await db.execute(
                select(Player.id, Player.wallet_address)
                .where(Player.id > last_id)
                .order_by(Player.id)
                .limit(RECONCILE_BATCH_SIZE)
            )
            rows = result.all()
            if not rows:
                break
            for row in rows:
                if await reconcile_player(db, cache, row.wallet_address, config):
                    repaired += 1
            last_id = rows[-1].id
    finally:
        await db.close()

    logger.info("Ledger reconciliation complete: %d players repaired", repaired)
    return repaired


async def update_active_players(ctx: dict) -> int | None:  # type: ignore[type-arg]
    """Set the ``active_players`` gauge to players seen in the last 24 hours."""
    since = datetime.now(timezone.utc) - ACTIVE_PLAYER_WINDOW
    db = await _get_db_session()
    try:
        count = await count_active_players(db, since)
    except Exception:
        logger.exception("Active players update failed")
        return None
    finally:
        await db.close()

    metrics: MetricsSink | None = ctx.get("metrics")
    if metrics:
        metrics.gauge("active_players", count)
    logger.info("Active players: %d", count)
    return count


def _sweep_minutes() -> set[int]:
    interval = get_settings().weekly_reset_interval_minutes
    if interval <= 0 or interval >= 60:
        return {0}
    return set(range(0, 60, interval))


class WeeklyResetWorkerSettings:
    """arq worker settings for the weekly rollover scheduler."""

    functions = [weekly_reset_check, weekly_reset_now, reconcile_ledgers, update_active_players]
    cron_jobs = [
        cron(weekly_reset_check, minute=_sweep_minutes(), run_at_startup=True),
        cron(update_active_players, minute=ACTIVE_PLAYERS_MINUTES, run_at_startup=True),
    ]
    on_startup = weekly_reset_startup
    on_shutdown = weekly_reset_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
    job_timeout = get_settings().weekly_reset_job_timeout_seconds
    allow_abort_jobs = True
