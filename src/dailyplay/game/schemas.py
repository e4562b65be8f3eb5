"""Pydantic schemas for the game API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dailyplay.game.validation import WALLET_PATTERN


# --- Game state ---


class GameStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    game_state: str
    launch_date: datetime
    is_launched: bool


# --- Status / submission ---


class PlayerStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    wallet_address: str
    plays_remaining: int
    can_play: bool
    current_streak: int
    longest_streak: int
    total_score: int
    lifetime_total_score: int
    streak_multiplier: float
    has_valid_streak: bool
    next_available_at: datetime | None = None
    seconds_to_next_play: int | None = None
    weekly_reset_enabled: bool
    debug_info: dict[str, Any] | None = None


class SubmitScoreRequest(BaseModel):
    wallet_address: str = Field(pattern=WALLET_PATTERN)
    score: int = Field(ge=0)
    game_data: str | None = Field(default=None, max_length=65536)


class SubmitScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: int
    score: int
    final_score: int
    streak_multiplier: float
    current_streak: int
    week_number: int | None
    used_referral_play: bool


class QuotaExhaustedResponse(BaseModel):
    detail: str
    next_available_at: datetime | None
    seconds_to_next_play: int | None


# --- Leaderboard ---


class LeaderboardEntry(BaseModel):
    rank: int
    wallet_address: str
    total_score: int
    current_streak: int
    longest_streak: int
    streak_multiplier: float


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
    pagination: Pagination
    user_rank: int | None = None
    user_entry: LeaderboardEntry | None = None
    next_reset_time: datetime | None = None
    weekly_reset_enabled: bool


# --- History ---


class PlaySessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    score: int
    final_score: int
    streak_multiplier: float
    play_date: datetime
    week_number: int | None
    game_data: str | None
    created_at: datetime


class PlayHistoryResponse(BaseModel):
    wallet_address: str
    sessions: list[PlaySessionResponse]
    total: int


# --- Referral ---


class ApplyReferralRequest(BaseModel):
    wallet_address: str = Field(pattern=WALLET_PATTERN)
    code: str = Field(min_length=1, max_length=128)


class ApplyReferralResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    extra_plays: int
    message: str


class ReferralInfoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    has_referral: bool
    code: str | None = None
    extra_plays_total: int | None = None
    extra_plays_used: int | None = None
    extra_plays_remaining: int | None = None


# --- Admin ---


class WeeklyResetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    performed: bool
    week_number: int | None
    previous_week_number: int | None = None
    players_reset: int = 0
