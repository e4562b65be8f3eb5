"""Player ledger: lazy creation, cached snapshots and play-log queries.

The ``players`` row is a materialized view of ``play_sessions``; usage
counts are always recomputed from the log and :func:`reconcile_player`
repairs score drift.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import GameCache, player_key
from dailyplay.config import get_settings
from dailyplay.db.dialect import insert_ignore
from dailyplay.db.models import PlaySession, Player, StreakRecord
from dailyplay.game.calendar import normalize_to_virtual_day, week_number
from dailyplay.game.game_config import GameConfig, ensure_utc
from dailyplay.metrics import MetricsSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerSnapshot:
    """Cache-friendly copy of a player row."""

    id: int
    wallet_address: str
    total_score: int
    lifetime_total_score: int
    weekly_score: int
    current_streak: int
    longest_streak: int
    weekly_streak: int
    weekly_longest_streak: int
    last_play_date: datetime | None
    last_reset_week_number: int | None

    @classmethod
    def from_model(cls, player: Player) -> PlayerSnapshot:
        return cls(
            id=player.id,
            wallet_address=player.wallet_address,
            total_score=player.total_score or 0,
            lifetime_total_score=player.lifetime_total_score or 0,
            weekly_score=player.weekly_score or 0,
            current_streak=player.current_streak or 0,
            longest_streak=player.longest_streak or 0,
            weekly_streak=player.weekly_streak or 0,
            weekly_longest_streak=player.weekly_longest_streak or 0,
            last_play_date=ensure_utc(player.last_play_date) if player.last_play_date else None,
            last_reset_week_number=player.last_reset_week_number,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_play_date"] = self.last_play_date.isoformat() if self.last_play_date else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlayerSnapshot:
        values = dict(data)
        if values.get("last_play_date"):
            values["last_play_date"] = ensure_utc(datetime.fromisoformat(values["last_play_date"]))
        return cls(**values)


async def get_player(db: AsyncSession, wallet_address: str) -> Player | None:
    """Fetch a player row straight from the database, refreshing any stale identity."""
    result = await db.execute(
        select(Player)
        .where(Player.wallet_address == wallet_address)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_or_create_player(db: AsyncSession, wallet_address: str, config: GameConfig) -> Player:
    """Return the player row, creating a zeroed one on first sight."""
    player = await get_player(db, wallet_address)
    if player is not None:
        return player

    now = datetime.now(timezone.utc)
    created = await insert_ignore(db, Player, ["wallet_address"], {
        "wallet_address": wallet_address,
        "launch_date": config.launch_date,
        "total_score": 0,
        "lifetime_total_score": 0,
        "weekly_score": 0,
        "current_streak": 0,
        "longest_streak": 0,
        "weekly_streak": 0,
        "weekly_longest_streak": 0,
        "created_at": now,
        "updated_at": now,
    })
    await db.commit()
    if created:
        logger.info("Created player %s", wallet_address)

    player = await get_player(db, wallet_address)
    if player is None:
        msg = f"Player {wallet_address} missing after insert"
        raise RuntimeError(msg)
    return player


async def load_player_snapshot(
    db: AsyncSession,
    cache: GameCache,
    wallet_address: str,
    config: GameConfig,
    metrics: MetricsSink | None = None,
) -> PlayerSnapshot:
    """Read-through cached player snapshot; creates the player if absent."""
    key = player_key(wallet_address)
    try:
        cached = await cache.get_json(key)
    except RedisError:
        logger.error("Player cache read failed for %s", wallet_address, exc_info=True)
        cached = None

    if cached:
        if metrics:
            metrics.incr("cache_hits_total", cache_key_pattern="player:*")
        return PlayerSnapshot.from_dict(cached)
    if metrics:
        metrics.incr("cache_misses_total", cache_key_pattern="player:*")

    snapshot = PlayerSnapshot.from_model(await find_or_create_player(db, wallet_address, config))
    try:
        await cache.set_json(key, snapshot.to_dict(), get_settings().player_cache_ttl_seconds)
    except RedisError:
        logger.error("Player cache write failed for %s", wallet_address, exc_info=True)
    return snapshot


async def count_lifetime_plays(db: AsyncSession, player_id: int, config: GameConfig) -> int:
    """Plays since launch, counted from the append-only session log."""
    since = normalize_to_virtual_day(config.launch_date, config)
    result = await db.execute(
        select(func.count(PlaySession.id)).where(
            PlaySession.player_id == player_id,
            PlaySession.play_date >= since,
        )
    )
    return int(result.scalar_one())


async def record_streak_day(
    db: AsyncSession, player_id: int, streak_date: datetime, streak_count: int,
) -> bool:
    """Insert the day's streak record; a duplicate for the same day is a no-op."""
    created = await insert_ignore(db, StreakRecord, ["player_id", "streak_date"], {
        "player_id": player_id,
        "streak_date": streak_date,
        "streak_count": streak_count,
        "created_at": datetime.now(timezone.utc),
    })
    if not created:
        logger.info("Streak already recorded for player %d on %s", player_id, streak_date.isoformat())
    return created


async def get_play_history(db: AsyncSession, player_id: int, limit: int = 50) -> list[PlaySession]:
    """Most recent sessions first."""
    result = await db.execute(
        select(PlaySession)
        .where(PlaySession.player_id == player_id)
        .order_by(PlaySession.created_at.desc(), PlaySession.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def reconcile_player(
    db: AsyncSession,
    cache: GameCache,
    wallet_address: str,
    config: GameConfig,
    now: datetime | None = None,
) -> dict[str, int]:
    """Recompute derived score fields from the play log and repair drift.

    ``total_score`` is the sum of every session's final score. In weekly mode
    ``weekly_score`` is the sum of sessions recorded after the player's last
    rollover, checked only once the player has been rolled into the current
    week. Session week labels are not used: plays between a week boundary and
    the sweep are folded by that sweep. Returns the corrections made.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    player = await get_player(db, wallet_address)
    if player is None:
        return {}

    total = await db.execute(
        select(func.coalesce(func.sum(PlaySession.final_score), 0)).where(PlaySession.player_id == player.id)
    )
    expected_total = int(total.scalar_one())
    corrections: dict[str, int] = {}
    if expected_total != player.total_score:
        corrections["total_score"] = expected_total - player.total_score
        player.total_score = expected_total

    if config.weekly_reset_enabled:
        current_week = week_number(config, now)
        rolled_into_week = (
            player.last_reset_week_number is not None
            and player.last_reset_week_number >= current_week
            and player.last_reset_at is not None
        )
        if rolled_into_week:
            weekly = await db.execute(
                select(func.coalesce(func.sum(PlaySession.final_score), 0)).where(
                    PlaySession.player_id == player.id,
                    PlaySession.created_at > player.last_reset_at,
                )
            )
            expected_weekly = int(weekly.scalar_one())
            if expected_weekly != player.weekly_score:
                corrections["weekly_score"] = expected_weekly - player.weekly_score
                player.weekly_score = expected_weekly

    if corrections:
        player.updated_at = now
        await db.commit()
        await cache.invalidate_player(wallet_address)
        logger.warning("Reconciled ledger for %s: %s", wallet_address, corrections)
    return corrections


async def count_active_players(db: AsyncSession, since: datetime) -> int:
    """Distinct players with a session created at or after ``since``."""
    result = await db.execute(
        select(func.count(func.distinct(PlaySession.player_id))).where(PlaySession.created_at >= since)
    )
    return int(result.scalar_one())
