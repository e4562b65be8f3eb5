"""ORM models for the daily play game.

``players`` is the mutable per-wallet ledger. ``play_sessions``,
``streak_records`` and ``weekly_snapshots`` are append-only logs.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dailyplay.db.base import Base

# SQLite only auto-increments INTEGER PRIMARY KEY columns
_BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


class GameState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    IN_MAINTENANCE = "IN_MAINTENANCE"
    DISABLED = "DISABLED"
    HIDDEN = "HIDDEN"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class GameSettings(Base):
    """Singleton row (id=1) holding tunable game parameters."""

    __tablename__ = "game_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    launch_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    seconds_per_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    streak_base_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    streak_increment_per_day: Mapped[float] = mapped_column(Float, nullable=False, default=0.1)
    weekly_reset_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    weekly_reset_day: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    referral_extra_plays: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    game_state: Mapped[GameState] = mapped_column(
        Enum(GameState, name="game_state", native_enum=False, length=16),
        nullable=False,
        default=GameState.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------


class Player(Base):
    """Per-wallet ledger row. Score and streak fields are derived from play_sessions."""

    __tablename__ = "players"
    __table_args__ = (
        Index("idx_players_total_score", "total_score", "id"),
        Index("idx_players_weekly_score", "weekly_score", "id"),
        Index("idx_players_last_reset_week", "last_reset_week_number"),
    )

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    launch_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    lifetime_total_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    weekly_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekly_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekly_longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_play_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_reset_week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_reset_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    sessions: Mapped[list[PlaySession]] = relationship("PlaySession", back_populates="player")


class PlaySession(Base):
    """One accepted score submission. Immutable once written."""

    __tablename__ = "play_sessions"

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True
    )
    score: Mapped[int] = mapped_column(BigInteger, nullable=False)
    play_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    streak_multiplier: Mapped[float] = mapped_column(Float, nullable=False)
    final_score: Mapped[int] = mapped_column(BigInteger, nullable=False)
    game_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    player: Mapped[Player] = relationship("Player", back_populates="sessions")


class StreakRecord(Base):
    """At most one row per player per virtual day."""

    __tablename__ = "streak_records"
    __table_args__ = (
        UniqueConstraint("player_id", "streak_date", name="streak_records_player_date_key"),
    )

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    streak_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    streak_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WeeklySnapshot(Base):
    """Weekly figures captured at rollover. Write-once per (player, week)."""

    __tablename__ = "weekly_snapshots"
    __table_args__ = (
        UniqueConstraint("player_id", "week_number", name="weekly_snapshots_player_week_key"),
    )

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    player_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    wallet_address: Mapped[str] = mapped_column(String(128), nullable=False)
    weekly_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    weekly_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekly_longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lifetime_total_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ReferralGrant(Base):
    """Extra plays granted to a wallet by a referral code. One per wallet."""

    __tablename__ = "referral_grants"

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(String(128), nullable=False)
    extra_plays_total: Mapped[int] = mapped_column(Integer, nullable=False)
    extra_plays_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
