"""Process-wide Redis client.

The settings, player and leaderboard caches, the rate limiter and the
metrics sink all share it. Every replica must point at the same instance.
"""

import redis.asyncio as redis

_client: redis.Redis | None = None


def build_redis(url: str, max_connections: int = 50) -> redis.Redis:
    """Client returning ``str`` values, which the JSON cache relies on."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
        health_check_interval=30,
    )


async def init_redis(url: str, max_connections: int = 50) -> redis.Redis:
    """Create the shared client and return it."""
    set_redis(build_redis(url, max_connections))
    return get_redis()


def set_redis(client: redis.Redis | None) -> None:
    """Install a prebuilt client, or clear it with None."""
    global _client  # noqa: PLW0603
    _client = client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Shared client (FastAPI dependency). Raises until :func:`init_redis` ran."""
    if _client is None:
        msg = "Redis client not initialized; call init_redis() during startup"
        raise RuntimeError(msg)
    return _client
