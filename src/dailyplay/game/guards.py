"""Game-state gate for the play endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import GameCache
from dailyplay.db.models import GameState
from dailyplay.dependencies import get_cache, get_db
from dailyplay.game.errors import GameUnavailableError
from dailyplay.game.game_config import GameConfig
from dailyplay.game.settings_store import load_config


def check_game_available(config: GameConfig, now: datetime) -> None:
    """Raise GameUnavailableError unless plays are currently accepted.

    HIDDEN accepts plays like ACTIVE and also skips the launch-date check;
    it only affects how clients list the game.
    """
    if config.game_state == GameState.DISABLED:
        raise GameUnavailableError("Game is currently disabled", status_code=503)
    if config.game_state == GameState.IN_MAINTENANCE:
        raise GameUnavailableError("Game is currently under maintenance", status_code=503)
    if config.game_state == GameState.ACTIVE and now < config.launch_date:
        raise GameUnavailableError(
            "Game has not launched yet", status_code=403, launch_date=config.launch_date,
        )


async def require_game_available(
    db: AsyncSession = Depends(get_db),
    cache: GameCache = Depends(get_cache),
) -> GameConfig:
    """FastAPI dependency wrapping :func:`check_game_available`."""
    config = await load_config(db, cache)
    try:
        check_game_available(config, datetime.now(timezone.utc))
    except GameUnavailableError as e:
        detail: dict[str, str] | str = str(e)
        if e.launch_date is not None:
            detail = {"message": str(e), "launch_date": e.launch_date.isoformat()}
        raise HTTPException(status_code=e.status_code, detail=detail) from e
    return config
