"""Leaderboard: paginated ranking by weekly or lifetime score.

Pages and per-user rank lookups are cached for a short TTL under
``leaderboard:{mode}:...``; any submission or sweep drops them all.
Ties on score rank the earlier-created player first.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import GameCache, leaderboard_page_key, leaderboard_user_key
from dailyplay.config import get_settings
from dailyplay.db.models import Player
from dailyplay.game.calendar import next_reset_time
from dailyplay.game.game_config import GameConfig
from dailyplay.game.settings_store import load_config
from dailyplay.game.streaks import streak_multiplier
from dailyplay.metrics import MetricsSink

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _score_column(weekly: bool):  # noqa: ANN202
    return Player.weekly_score if weekly else Player.total_score


def _entry(config: GameConfig, player: Player, rank: int) -> dict[str, Any]:
    if config.weekly_reset_enabled:
        score, streak, longest = player.weekly_score, player.weekly_streak, player.weekly_longest_streak
    else:
        score, streak, longest = player.total_score, player.current_streak, player.longest_streak
    streak = streak or 0
    return {
        "rank": rank,
        "wallet_address": player.wallet_address,
        "total_score": score or 0,
        "current_streak": streak,
        "longest_streak": longest or 0,
        "streak_multiplier": streak_multiplier(config, streak),
    }


async def _user_rank(
    db: AsyncSession, config: GameConfig, wallet_address: str,
) -> tuple[int | None, dict[str, Any] | None]:
    result = await db.execute(
        select(Player)
        .where(Player.wallet_address == wallet_address)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        return None, None

    score_col = _score_column(config.weekly_reset_enabled)
    score = (user.weekly_score if config.weekly_reset_enabled else user.total_score) or 0
    above = await db.execute(
        select(func.count(Player.id)).where(
            or_(score_col > score, and_(score_col == score, Player.id < user.id))
        )
    )
    rank = int(above.scalar_one()) + 1
    return rank, _entry(config, user, rank)


async def get_leaderboard(
    db: AsyncSession,
    cache: GameCache,
    limit: int = 10,
    page: int = 1,
    wallet_address: str | None = None,
    now: datetime | None = None,
    metrics: MetricsSink | None = None,
) -> dict[str, Any]:
    """One page of the leaderboard, plus the caller's rank when a wallet is given."""
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if page < 1:
        raise ValueError("page must be >= 1")
    if now is None:
        now = datetime.now(timezone.utc)

    config = await load_config(db, cache, metrics)
    weekly = config.weekly_reset_enabled
    mode = "weekly" if weekly else "lifetime"
    page_key = leaderboard_page_key(mode, page, limit)
    user_key = leaderboard_user_key(mode, wallet_address) if wallet_address else None

    try:
        cached_page = await cache.get_json(page_key)
        cached_user = await cache.get_json(user_key) if user_key else None
    except RedisError:
        logger.error("Leaderboard cache read failed, querying database", exc_info=True)
        if metrics:
            metrics.incr("redis_errors_total", error_type="cache_read_error")
        cached_page = cached_user = None

    if cached_page and (not user_key or cached_user):
        if metrics:
            metrics.incr("cache_hits_total", cache_key_pattern="leaderboard:*")
            metrics.incr("leaderboard_views_total", mode=mode)
        cached_page.update(cached_user or {"user_rank": None, "user_entry": None})
        return cached_page
    if metrics:
        metrics.incr("cache_misses_total", cache_key_pattern="leaderboard:*")

    score_col = _score_column(weekly)
    total = int((await db.execute(select(func.count(Player.id)))).scalar_one())
    offset = (page - 1) * limit
    result = await db.execute(
        select(Player)
        .order_by(score_col.desc(), Player.id.asc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    entries = [_entry(config, p, offset + i + 1) for i, p in enumerate(result.scalars())]

    user_rank, user_entry = (None, None)
    if wallet_address:
        user_rank, user_entry = await _user_rank(db, config, wallet_address)

    board = {
        "entries": entries,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
        "user_rank": None,
        "user_entry": None,
        "next_reset_time": next_reset_time(config, now).isoformat() if weekly else None,
        "weekly_reset_enabled": weekly,
    }

    ttl = get_settings().leaderboard_cache_ttl_seconds
    try:
        # Pages are shared between callers; the user part is cached on its own
        await cache.set_json(page_key, board, ttl)
        if user_key:
            await cache.set_json(user_key, {"user_rank": user_rank, "user_entry": user_entry}, ttl)
    except RedisError:
        logger.error("Leaderboard cache write failed", exc_info=True)

    board.update(user_rank=user_rank, user_entry=user_entry)

    if metrics:
        metrics.incr("leaderboard_views_total", mode=mode)
    return board
