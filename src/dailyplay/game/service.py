"""Game service: player status, score submission and history.

Status and submission share :func:`dailyplay.game.streaks.project_play`, so
the multiplier a player is shown is the multiplier the next play applies.

Submission order: quota check -> streak/multiplier -> session insert ->
streak record -> referral unit -> ledger update -> commit -> cache
invalidation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import GameCache
from dailyplay.db.models import PlaySession, Player, ReferralGrant
from dailyplay.game.calendar import (
    game_day_info,
    normalize_to_virtual_day,
    virtual_day_index,
    week_number,
)
from dailyplay.game.errors import PlayerNotFoundError, QuotaExhaustedError
from dailyplay.game.game_config import GameConfig, ensure_utc
from dailyplay.game.ledger import (
    count_lifetime_plays,
    find_or_create_player,
    get_play_history,
    get_player,
    load_player_snapshot,
    record_streak_day,
)
from dailyplay.game.locks import WalletLocks, get_wallet_locks
from dailyplay.game.quota import QuotaSnapshot, compute_quota
from dailyplay.game.referral import get_referral_grant
from dailyplay.game.settings_store import load_config
from dailyplay.game.streaks import PlayOutcome, project_play
from dailyplay.game.validation import validate_score, validate_wallet_address
from dailyplay.metrics import MetricsSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerStatus:
    wallet_address: str
    total_score: int
    lifetime_total_score: int
    current_streak: int
    longest_streak: int
    plays_remaining: int
    can_play: bool
    streak_multiplier: float
    has_valid_streak: bool
    weekly_reset_enabled: bool
    next_available_at: datetime | None
    seconds_to_next_play: int | None
    debug_info: dict[str, Any] | None = None


@dataclass(frozen=True)
class SubmitResult:
    session_id: int
    wallet_address: str
    score: int
    final_score: int
    streak_multiplier: float
    current_streak: int
    play_date: datetime
    week_number: int | None
    used_referral_play: bool
    created_at: datetime


@dataclass(frozen=True)
class GameStateInfo:
    game_state: str
    launch_date: datetime
    is_launched: bool


def _outcome_for(
    config: GameConfig,
    now: datetime,
    last_play_date: datetime | None,
    lifetime_streak: int,
    weekly_streak: int,
) -> PlayOutcome:
    info = game_day_info(config, now)
    last_play = normalize_to_virtual_day(last_play_date, config) if last_play_date else None
    return project_play(config, last_play, info.today, info.yesterday, lifetime_streak, weekly_streak)


async def _quota_for(
    db: AsyncSession, config: GameConfig, player_id: int, wallet_address: str, now: datetime,
) -> tuple[QuotaSnapshot, ReferralGrant | None]:
    # Count plays before reading the grant: the grant is written after the session
    total_plays = await count_lifetime_plays(db, player_id, config)
    grant = await get_referral_grant(db, wallet_address)
    quota = compute_quota(
        config,
        now,
        total_plays,
        referral_total=grant.extra_plays_total if grant else 0,
        referral_used=grant.extra_plays_used if grant else 0,
        wallet_address=wallet_address,
    )
    return quota, grant


async def get_player_status(
    db: AsyncSession,
    cache: GameCache,
    wallet_address: str,
    now: datetime | None = None,
    metrics: MetricsSink | None = None,
) -> PlayerStatus:
    """What the player would get by playing right now. Creates the player if absent."""
    validate_wallet_address(wallet_address)
    now = ensure_utc(now) if now else datetime.now(timezone.utc)

    config = await load_config(db, cache, metrics)
    player = await load_player_snapshot(db, cache, wallet_address, config, metrics)
    quota, _grant = await _quota_for(db, config, player.id, wallet_address, now)

    weekly = config.weekly_reset_enabled
    outcome = _outcome_for(config, now, player.last_play_date, player.current_streak, player.weekly_streak)
    info = game_day_info(config, now)
    last_play = normalize_to_virtual_day(player.last_play_date, config) if player.last_play_date else None

    debug_info = None
    if config.virtual_time:
        debug_info = {
            "seconds_per_day": config.seconds_per_day,
            "virtual_day": info.days_since_launch,
            "virtual_day_start": info.today.isoformat(),
            "virtual_day_end": (info.next_day_start - timedelta(milliseconds=1)).isoformat(),
            "next_virtual_day_start": info.next_day_start.isoformat(),
            "base_plays_allowed": quota.base_plays_allowed,
            "base_plays_remaining": quota.base_plays_remaining,
            "referral_plays_remaining": quota.referral_plays_remaining,
            "total_plays_remaining": quota.plays_remaining,
            "total_plays_used": quota.total_plays_used,
            "last_play_virtual_day": (
                virtual_day_index(last_play, config.launch_date, info.day_length) if last_play else None
            ),
            "launch_date": config.launch_date.isoformat(),
        }
        if weekly:
            debug_info["current_week_number"] = week_number(config, info.today)

    status = PlayerStatus(
        wallet_address=player.wallet_address,
        total_score=player.weekly_score if weekly else player.total_score,
        lifetime_total_score=player.lifetime_total_score,
        current_streak=outcome.active.resulting_streak,
        longest_streak=player.weekly_longest_streak if weekly else player.longest_streak,
        plays_remaining=quota.plays_remaining,
        can_play=quota.can_play,
        streak_multiplier=outcome.multiplier,
        has_valid_streak=last_play is None or last_play in (info.today, info.yesterday),
        weekly_reset_enabled=weekly,
        next_available_at=quota.next_available_at,
        seconds_to_next_play=quota.seconds_to_next_play,
        debug_info=debug_info,
    )

    if metrics:
        metrics.incr("player_status_checks_total", can_play=str(status.can_play).lower())
    return status


async def submit_score(
    db: AsyncSession,
    cache: GameCache,
    wallet_address: str,
    score: int,
    game_data: str | None = None,
    now: datetime | None = None,
    metrics: MetricsSink | None = None,
    locks: WalletLocks | None = None,
) -> SubmitResult:
    """Record one play. Raises QuotaExhaustedError when no plays are left."""
    validate_wallet_address(wallet_address)
    validate_score(score)
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    locks = locks or get_wallet_locks()

    async with locks.lock_for(wallet_address):
        config = await load_config(db, cache, metrics)
        player = await find_or_create_player(db, wallet_address, config)
        quota, grant = await _quota_for(db, config, player.id, wallet_address, now)
        if not quota.can_play:
            logger.info("Quota exhausted for %s", wallet_address)
            if metrics:
                metrics.incr("scores_rejected_total", reason="quota_exhausted")
            raise QuotaExhaustedError(quota.next_available_at, quota.seconds_to_next_play)

        weekly = config.weekly_reset_enabled
        info = game_day_info(config, now)
        last_play = ensure_utc(player.last_play_date) if player.last_play_date else None
        outcome = _outcome_for(config, now, last_play, player.current_streak, player.weekly_streak or 0)
        multiplier = outcome.multiplier
        final_score = math.floor(score * multiplier)
        session_week = week_number(config, info.today) if weekly else None

        try:
            session = PlaySession(
                player_id=player.id,
                score=score,
                play_date=info.today,
                week_number=session_week,
                streak_multiplier=multiplier,
                final_score=final_score,
                game_data=game_data,
                created_at=now,
            )
            db.add(session)
            await db.flush()

            if outcome.lifetime.first_play_today:
                await record_streak_day(db, player.id, info.today, outcome.lifetime.resulting_streak)

            used_referral = False
            if grant is not None and grant.extra_plays_used < grant.extra_plays_total:
                consumed = await db.execute(
                    update(ReferralGrant)
                    .where(
                        ReferralGrant.id == grant.id,
                        ReferralGrant.extra_plays_used < ReferralGrant.extra_plays_total,
                    )
                    .values(extra_plays_used=ReferralGrant.extra_plays_used + 1, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                used_referral = bool(consumed.rowcount)

            values: dict[str, Any] = {
                "total_score": Player.total_score + final_score,
                "last_play_date": info.today,
                "updated_at": now,
            }
            if outcome.lifetime.first_play_today:
                values["current_streak"] = outcome.lifetime.resulting_streak
                values["longest_streak"] = max(player.longest_streak or 0, outcome.lifetime.resulting_streak)
            if outcome.weekly is not None:
                values["weekly_score"] = Player.weekly_score + final_score
                if outcome.weekly.first_play_today:
                    values["weekly_streak"] = outcome.weekly.resulting_streak
                    values["weekly_longest_streak"] = max(
                        player.weekly_longest_streak or 0, outcome.weekly.resulting_streak,
                    )
            await db.execute(
                update(Player)
                .where(Player.id == player.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await cache.invalidate_player(wallet_address)

    active = outcome.active
    if metrics:
        metrics.incr("scores_submitted_total", has_streak_multiplier=str(active.resulting_streak > 1).lower())
        metrics.observe("streak_multiplier", multiplier, streak_length=str(active.resulting_streak))

    logger.info(
        "Score submitted for %s: score=%d multiplier=%.2f final=%d streak=%d referral=%s",
        wallet_address, score, multiplier, final_score, active.resulting_streak, used_referral,
    )
    return SubmitResult(
        session_id=session.id,
        wallet_address=wallet_address,
        score=score,
        final_score=final_score,
        streak_multiplier=multiplier,
        current_streak=active.resulting_streak,
        play_date=info.today,
        week_number=session_week,
        used_referral_play=used_referral,
        created_at=now,
    )


async def get_player_history(db: AsyncSession, wallet_address: str, limit: int = 50) -> list[PlaySession]:
    """Recent sessions for an existing player. Does not create players."""
    validate_wallet_address(wallet_address)
    player = await get_player(db, wallet_address)
    if player is None:
        raise PlayerNotFoundError("Player not found")
    return await get_play_history(db, player.id, limit)


async def get_game_state(db: AsyncSession, cache: GameCache, now: datetime | None = None) -> GameStateInfo:
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    config = await load_config(db, cache)
    return GameStateInfo(
        game_state=config.game_state.value,
        launch_date=config.launch_date,
        is_launched=now >= config.launch_date,
    )
