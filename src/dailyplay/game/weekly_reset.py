"""Weekly rollover sweep.

Closes out weekly accounting when the week index advances: every player not
yet rolled into the new week gets a snapshot, has ``weekly_score`` folded into
``lifetime_total_score`` and starts the week with zeroed weekly counters.

The player predicate compares against each row's ``last_reset_week_number``,
so a sweep delayed across several boundaries jumps straight to the current
week and repeated runs converge. Two replicas sweeping the same rows at the
same instant can still double-fold; see DESIGN.md.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from redis.exceptions import RedisError
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import LEADERBOARD_PATTERN, PLAYER_PATTERN, SETTINGS_KEY, GameCache
from dailyplay.db.dialect import insert_ignore
from dailyplay.db.models import Player, WeeklySnapshot
from dailyplay.game.calendar import week_number
from dailyplay.game.game_config import GameConfig
from dailyplay.game.settings_store import get_or_create_settings_row, touch_settings
from dailyplay.metrics import MetricsSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResetResult:
    performed: bool
    week_number: int | None
    previous_week_number: int | None = None
    players_reset: int = 0


async def check_and_perform_reset(
    db: AsyncSession,
    cache: GameCache,
    now: datetime | None = None,
    metrics: MetricsSink | None = None,
) -> ResetResult:
    """Roll players into the current week if the stored week is behind."""
    if now is None:
        now = datetime.now(timezone.utc)

    row = await get_or_create_settings_row(db)
    if not row.weekly_reset_enabled:
        return ResetResult(performed=False, week_number=None)

    config = GameConfig.from_model(row)
    current = week_number(config, now)
    stored = row.current_week_number
    if stored is not None and stored >= current:
        logger.debug("No reset needed. Current week: %d, stored week: %d", current, stored)
        return ResetResult(performed=False, week_number=current, previous_week_number=stored)

    logger.info("Week changed from %s to %d. Performing reset...", stored, current)
    row.current_week_number = current
    touch_settings(row, now)

    result = await db.execute(
        select(Player)
        .where(or_(Player.last_reset_week_number.is_(None), Player.last_reset_week_number < current))
        .order_by(Player.id)
        .execution_options(populate_existing=True)
    )
    players = list(result.scalars())

    try:
        for player in players:
            weekly_score = player.weekly_score or 0
            lifetime = (player.lifetime_total_score or 0) + weekly_score
            await insert_ignore(db, WeeklySnapshot, ["player_id", "week_number"], {
                "week_number": current,
                "player_id": player.id,
                "wallet_address": player.wallet_address,
                "weekly_score": weekly_score,
                "weekly_streak": player.weekly_streak or 0,
                "weekly_longest_streak": player.weekly_longest_streak or 0,
                "lifetime_total_score": lifetime,
                "created_at": now,
            })
            player.lifetime_total_score = lifetime
            player.weekly_score = 0
            player.weekly_streak = 0
            player.weekly_longest_streak = 0
            player.last_reset_week_number = current
            player.last_reset_at = now
            player.updated_at = now
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    try:
        await cache.delete(SETTINGS_KEY)
        await cache.delete_pattern(LEADERBOARD_PATTERN)
        await cache.delete_pattern(PLAYER_PATTERN)
    except RedisError:
        logger.error("Cache invalidation after weekly reset failed", exc_info=True)

    if metrics:
        metrics.incr("weekly_resets_total")
        metrics.incr("weekly_reset_players_total", amount=len(players))
    logger.info("Weekly reset completed for %d players. Week %d started.", len(players), current)
    return ResetResult(
        performed=True,
        week_number=current,
        previous_week_number=stored,
        players_reset=len(players),
    )


async def trigger_reset(
    db: AsyncSession,
    cache: GameCache,
    now: datetime | None = None,
    metrics: MetricsSink | None = None,
) -> ResetResult:
    """Operator entry point; same checks as the scheduled sweep."""
    logger.info("Manual weekly reset triggered")
    return await check_and_perform_reset(db, cache, now=now, metrics=metrics)
