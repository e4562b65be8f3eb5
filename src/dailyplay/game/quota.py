"""Play quota: one play unlocked per elapsed virtual day, plus referral extras."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from dailyplay.game.calendar import game_day_info
from dailyplay.game.game_config import GameConfig, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaSnapshot:
    base_plays_allowed: int
    base_plays_remaining: int
    referral_plays_remaining: int
    total_plays_used: int
    referral_plays_used: int
    plays_remaining: int
    next_available_at: datetime | None
    seconds_to_next_play: int | None
    inconsistent: bool = False

    @property
    def can_play(self) -> bool:
        return self.plays_remaining > 0


def compute_quota(
    config: GameConfig,
    now: datetime,
    total_plays_used: int,
    referral_total: int = 0,
    referral_used: int = 0,
    wallet_address: str | None = None,
) -> QuotaSnapshot:
    """Plays remaining for a wallet as of ``now``.

    ``total_plays_used`` must come from the play log. Referral usage is
    written separately, so it is clamped to the play count before it is
    subtracted.
    """
    now = ensure_utc(now)
    info = game_day_info(config, now)
    base_allowed = max(1, info.days_since_launch + 1)

    referral_remaining = max(0, referral_total - referral_used)
    referral_used_safe = min(referral_used, total_plays_used)
    inconsistent = referral_used > total_plays_used
    if inconsistent:
        logger.warning(
            "Referral usage exceeds play count for %s: plays_used=%d referral_used=%d (clamped)",
            wallet_address, total_plays_used, referral_used,
        )

    base_used = max(0, total_plays_used - referral_used_safe)
    base_remaining = max(0, base_allowed - base_used)
    plays_remaining = base_remaining + referral_remaining

    next_available_at = None
    seconds_to_next = None
    if plays_remaining <= 0:
        next_available_at = info.next_day_start
        seconds_to_next = max(0, math.floor((next_available_at - now).total_seconds()))

    return QuotaSnapshot(
        base_plays_allowed=base_allowed,
        base_plays_remaining=base_remaining,
        referral_plays_remaining=referral_remaining,
        total_plays_used=total_plays_used,
        referral_plays_used=referral_used,
        plays_remaining=plays_remaining,
        next_available_at=next_available_at,
        seconds_to_next_play=seconds_to_next,
        inconsistent=inconsistent,
    )
