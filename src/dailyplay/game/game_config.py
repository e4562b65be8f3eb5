"""Immutable snapshot of the game settings row.

Loaded once per operation and passed explicitly to the calendar, quota and
streak functions so they never read mutable global state.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from dailyplay.db.models import GameSettings, GameState


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class GameConfig:
    launch_date: datetime
    seconds_per_day: int | None = None
    streak_base_multiplier: float = 1.0
    streak_increment_per_day: float = 0.1
    weekly_reset_enabled: bool = False
    weekly_reset_day: int = 0
    current_week_number: int | None = None
    referral_extra_plays: int = 3
    game_state: GameState = GameState.ACTIVE
    updated_at: datetime | None = None

    @property
    def virtual_time(self) -> bool:
        """True when an accelerated day length is configured."""
        return bool(self.seconds_per_day and self.seconds_per_day > 0)

    @classmethod
    def from_model(cls, row: GameSettings) -> GameConfig:
        return cls(
            launch_date=ensure_utc(row.launch_date),
            seconds_per_day=row.seconds_per_day,
            streak_base_multiplier=row.streak_base_multiplier,
            streak_increment_per_day=row.streak_increment_per_day,
            weekly_reset_enabled=bool(row.weekly_reset_enabled),
            weekly_reset_day=row.weekly_reset_day if row.weekly_reset_day is not None else 0,
            current_week_number=row.current_week_number,
            referral_extra_plays=row.referral_extra_plays if row.referral_extra_plays is not None else 3,
            game_state=GameState(row.game_state),
            updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation for the cache."""
        data = asdict(self)
        data["launch_date"] = self.launch_date.isoformat()
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        data["game_state"] = self.game_state.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameConfig:
        values = dict(data)
        values["launch_date"] = ensure_utc(datetime.fromisoformat(values["launch_date"]))
        if values.get("updated_at"):
            values["updated_at"] = ensure_utc(datetime.fromisoformat(values["updated_at"]))
        values["game_state"] = GameState(values.get("game_state", GameState.ACTIVE.value))
        return cls(**values)
