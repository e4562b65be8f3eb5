"""Streak transitions and score multipliers.

One pure transition is shared by the status projection and the submission
write path, and by the lifetime and weekly streak lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from dailyplay.game.game_config import GameConfig


@dataclass(frozen=True)
class StreakProjection:
    """Outcome of a play at a given virtual day.

    ``multiplier_basis`` is the streak *before* this play's increment.
    """

    resulting_streak: int
    multiplier_basis: int
    first_play_today: bool


def project_streak(
    last_play: datetime | None,
    today: datetime,
    yesterday: datetime,
    stored_streak: int,
) -> StreakProjection:
    """Decide the streak that results from playing on ``today``.

    ``last_play``, ``today`` and ``yesterday`` must already be normalized to
    virtual-day starts.
    """
    if last_play is None:
        return StreakProjection(resulting_streak=1, multiplier_basis=0, first_play_today=True)
    if last_play == today:
        return StreakProjection(
            resulting_streak=stored_streak, multiplier_basis=stored_streak, first_play_today=False,
        )
    if last_play == yesterday:
        return StreakProjection(
            resulting_streak=stored_streak + 1, multiplier_basis=stored_streak, first_play_today=True,
        )
    # Gap of two or more virtual days; also covers a last play after ``today``
    return StreakProjection(resulting_streak=1, multiplier_basis=0, first_play_today=True)


def streak_multiplier(config: GameConfig, basis: int) -> float:
    """Base multiplier up to a 1-day streak, then +increment per extra day."""
    if basis <= 1:
        return config.streak_base_multiplier
    return config.streak_base_multiplier + (basis - 1) * config.streak_increment_per_day


@dataclass(frozen=True)
class PlayOutcome:
    """Both streak lines for one play, plus the multiplier the play earns."""

    lifetime: StreakProjection
    weekly: StreakProjection | None
    multiplier: float

    @property
    def active(self) -> StreakProjection:
        """The line that drives display and multiplier for the current mode."""
        return self.weekly if self.weekly is not None else self.lifetime


def project_play(
    config: GameConfig,
    last_play: datetime | None,
    today: datetime,
    yesterday: datetime,
    lifetime_streak: int,
    weekly_streak: int,
) -> PlayOutcome:
    """Run the transition for each active streak line."""
    lifetime = project_streak(last_play, today, yesterday, lifetime_streak)
    weekly = (
        project_streak(last_play, today, yesterday, weekly_streak)
        if config.weekly_reset_enabled
        else None
    )
    basis = (weekly or lifetime).multiplier_basis
    return PlayOutcome(lifetime=lifetime, weekly=weekly, multiplier=streak_multiplier(config, basis))
