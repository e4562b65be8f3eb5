"""Virtual day and week arithmetic.

A "virtual day" is ``seconds_per_day`` long (a real day when unset), counted
from UTC midnight of the launch date. Every "same day" comparison in the game
goes through :func:`normalize_to_virtual_day`.

Weeks have two modes:

- virtual mode (``seconds_per_day`` set): week = floor(day index / 7)
- calendar mode: weeks start on ``weekly_reset_day`` (0 = Sunday) at
  01:00 UTC, counted from the reset-aligned start of the launch week
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone

from dailyplay.game.game_config import GameConfig, ensure_utc

SECONDS_PER_REAL_DAY = 86400
RESET_HOUR_UTC = 1
WEEK = timedelta(days=7)


@dataclass(frozen=True)
class GameDayInfo:
    today: datetime
    yesterday: datetime
    next_day_start: datetime
    days_since_launch: int
    day_length: timedelta


def day_duration_ms(config: GameConfig) -> int:
    """Length of a game day in milliseconds."""
    seconds = config.seconds_per_day if config.virtual_time else SECONDS_PER_REAL_DAY
    return seconds * 1000


def day_length(config: GameConfig) -> timedelta:
    return timedelta(milliseconds=day_duration_ms(config))


def launch_midnight(launch_date: datetime) -> datetime:
    """UTC midnight of the launch date."""
    launch = ensure_utc(launch_date)
    return datetime.combine(launch.date(), time.min, tzinfo=timezone.utc)


def virtual_day_index(now: datetime, launch_date: datetime, length: timedelta) -> int:
    """Number of whole virtual days elapsed since launch (never negative)."""
    elapsed = ensure_utc(now) - launch_midnight(launch_date)
    return max(0, elapsed // length)


def virtual_day_start(index: int, launch_date: datetime, length: timedelta) -> datetime:
    return launch_midnight(launch_date) + index * length


def normalize_to_virtual_day(moment: datetime, config: GameConfig) -> datetime:
    """Collapse an instant to the start of its containing virtual day."""
    length = day_length(config)
    index = virtual_day_index(moment, config.launch_date, length)
    return virtual_day_start(index, config.launch_date, length)


def game_day_info(config: GameConfig, now: datetime) -> GameDayInfo:
    """Today/yesterday/next-day anchors for ``now``."""
    length = day_length(config)
    index = virtual_day_index(now, config.launch_date, length)
    today = virtual_day_start(index, config.launch_date, length)
    return GameDayInfo(
        today=today,
        yesterday=today - length,
        next_day_start=today + length,
        days_since_launch=index,
        day_length=length,
    )


def _weekday_sunday_zero(moment: datetime) -> int:
    # datetime.weekday() is Monday=0; the reset day setting is Sunday=0
    return (moment.weekday() + 1) % 7


def calendar_week_start(moment: datetime, reset_day: int) -> datetime:
    """Midnight UTC of the reset day that opens ``moment``'s week.

    An instant on the reset day before 01:00 UTC still belongs to the
    previous week.
    """
    moment = ensure_utc(moment)
    days_back = (_weekday_sunday_zero(moment) - reset_day) % 7
    if days_back == 0 and moment.hour < RESET_HOUR_UTC:
        days_back = 7
    start_date = moment.date() - timedelta(days=days_back)
    return datetime.combine(start_date, time.min, tzinfo=timezone.utc)


def week_number(config: GameConfig, moment: datetime) -> int:
    """Week index of ``moment``; week 0 is the launch week."""
    if config.virtual_time:
        length = day_length(config)
        return virtual_day_index(moment, config.launch_date, length) // 7

    launch = launch_midnight(config.launch_date)
    reset_day = config.weekly_reset_day % 7
    launch_days_back = (_weekday_sunday_zero(launch) - reset_day) % 7
    launch_week_start = launch - timedelta(days=launch_days_back)
    weeks = (calendar_week_start(moment, reset_day) - launch_week_start) // WEEK
    return max(0, weeks)


def next_reset_time(config: GameConfig, now: datetime) -> datetime:
    """When the next weekly rollover becomes due."""
    now = ensure_utc(now)
    if config.virtual_time:
        length = day_length(config)
        elapsed = now - launch_midnight(config.launch_date)
        current_week = elapsed // (length * 7)
        return launch_midnight(config.launch_date) + (current_week + 1) * 7 * length

    reset_day = config.weekly_reset_day % 7
    days_until = (reset_day - _weekday_sunday_zero(now)) % 7
    if days_until == 0 and now.hour >= RESET_HOUR_UTC:
        days_until = 7
    reset_date = now.date() + timedelta(days=days_until)
    return datetime.combine(reset_date, time(RESET_HOUR_UTC), tzinfo=timezone.utc)
