"""Game domain errors. The router maps these onto HTTP status codes."""

from __future__ import annotations

from datetime import datetime


class QuotaExhaustedError(PermissionError):
    """No plays left; carries when the next one unlocks."""

    def __init__(self, next_available_at: datetime | None, seconds_to_next_play: int | None) -> None:
        super().__init__("No plays remaining")
        self.next_available_at = next_available_at
        self.seconds_to_next_play = seconds_to_next_play


class InvalidWalletError(ValueError):
    pass


class InvalidScoreError(ValueError):
    pass


class PlayerNotFoundError(LookupError):
    pass


class ReferralAlreadyAppliedError(ValueError):
    pass


class InvalidReferralCodeError(LookupError):
    pass


class GameUnavailableError(RuntimeError):
    """Game is disabled, under maintenance, or not launched yet."""

    def __init__(self, message: str, status_code: int, launch_date: datetime | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.launch_date = launch_date


class CacheUnavailableError(RuntimeError):
    """Redis is required for multi-replica correctness; raised when it is unusable."""
