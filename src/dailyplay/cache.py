"""JSON read-through cache over Redis.

Writes invalidate rather than update in place. Key layout:

- ``game:settings``                                    settings snapshot
- ``player:{wallet}``                                  player ledger snapshot
- ``leaderboard:{mode}:page:{page}:limit:{limit}``     leaderboard page
- ``leaderboard:{mode}:user:{wallet}``                 user rank
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from dailyplay.game.errors import CacheUnavailableError

logger = logging.getLogger(__name__)

SETTINGS_KEY = "game:settings"
PLAYER_PATTERN = "player:*"
LEADERBOARD_PATTERN = "leaderboard:*"


def player_key(wallet_address: str) -> str:
    return f"player:{wallet_address}"


def leaderboard_page_key(mode: str, page: int, limit: int) -> str:
    return f"leaderboard:{mode}:page:{page}:limit:{limit}"


def leaderboard_user_key(mode: str, wallet_address: str) -> str:
    return f"leaderboard:{mode}:user:{wallet_address}"


def _json_default(value: Any) -> Any:  # noqa: ANN401
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class GameCache:
    """Thin JSON wrapper around a ``redis.asyncio`` client."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    async def get_json(self, key: str) -> Any:  # noqa: ANN401
        raw = await self.redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:  # noqa: ANN401
        await self.redis.set(key, json.dumps(value, default=_json_default), ex=ttl_seconds)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.redis.delete(*keys))

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching ``pattern`` using SCAN (never KEYS)."""
        keys = [key async for key in self.redis.scan_iter(match=pattern, count=500)]
        if not keys:
            return 0
        return int(await self.redis.delete(*keys))

    async def ping(self) -> None:
        """Raise CacheUnavailableError when Redis cannot be reached."""
        try:
            await self.redis.ping()
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(f"Redis unreachable: {exc}") from exc

    async def invalidate_player(self, wallet_address: str) -> None:
        """Drop a player's snapshot and every leaderboard page.

        Failures are logged, not raised.
        """
        try:
            await self.delete(player_key(wallet_address))
            removed = await self.delete_pattern(LEADERBOARD_PATTERN)
            logger.debug("Invalidated player %s and %d leaderboard keys", wallet_address, removed)
        except RedisError:
            logger.error("Cache invalidation failed for %s", wallet_address, exc_info=True)
