"""Fire-and-forget game metrics stored as Redis hashes.

Counters and gauges live under ``metrics:{name}`` with one hash field per label set.
Histograms add one counter per bucket (``le=...``) plus ``_sum``/``_count``
fields. Emission runs in background tasks and never fails the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

MULTIPLIER_BUCKETS = (1.0, 1.1, 1.2, 1.3, 1.4, 1.5, 2.0, 2.5, 3.0, 4.0, 5.0)


def _label_field(labels: dict[str, str]) -> str:
    if not labels:
        return "_"
    return ",".join(f"{k}={labels[k]}" for k in sorted(labels))


class MetricsSink:
    """Counters, gauges and histograms for cache hits, submissions, players and multipliers."""

    def __init__(self, redis: Redis, prefix: str = "metrics") -> None:
        self.redis = redis
        self.prefix = prefix
        self._pending: set[asyncio.Task[None]] = set()

    def incr(self, name: str, amount: int = 1, **labels: str) -> None:
        self._spawn(self._incr(name, amount, labels))

    def gauge(self, name: str, value: float, **labels: str) -> None:
        self._spawn(self._set(name, value, labels))

    def observe(
        self, name: str, value: float, buckets: Iterable[float] = MULTIPLIER_BUCKETS, **labels: str,
    ) -> None:
        self._spawn(self._observe(name, value, tuple(buckets), labels))

    async def flush(self) -> None:
        """Wait for in-flight emissions (tests and shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def read(self, name: str) -> dict[str, float]:
        raw = await self.redis.hgetall(f"{self.prefix}:{name}")
        return {field: float(value) for field, value in raw.items()}

    def _spawn(self, coro) -> None:  # noqa: ANN001
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _incr(self, name: str, amount: int, labels: dict[str, str]) -> None:
        try:
            await self.redis.hincrby(f"{self.prefix}:{name}", _label_field(labels), amount)
        except RedisError:
            logger.debug("Metric %s not recorded", name, exc_info=True)

    async def _set(self, name: str, value: float, labels: dict[str, str]) -> None:
        try:
            await self.redis.hset(f"{self.prefix}:{name}", _label_field(labels), value)
        except RedisError:
            logger.debug("Metric %s not recorded", name, exc_info=True)

    async def _observe(
        self, name: str, value: float, buckets: tuple[float, ...], labels: dict[str, str],
    ) -> None:
        key = f"{self.prefix}:{name}"
        base = _label_field(labels)
        try:
            pipe = self.redis.pipeline()
            for bound in buckets:
                if value <= bound:
                    pipe.hincrby(key, f"{base}|le={bound}", 1)
            pipe.hincrby(key, f"{base}|le=+Inf", 1)
            pipe.hincrbyfloat(key, f"{base}|_sum", value)
            pipe.hincrby(key, f"{base}|_count", 1)
            await pipe.execute()
        except RedisError:
            logger.debug("Metric %s not recorded", name, exc_info=True)
