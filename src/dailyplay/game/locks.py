"""Per-wallet serialization of submissions inside one process.

Concurrent submissions for the same wallet (double clicks, client retries)
queue behind one lock shard. Replicas do not share these locks.
"""

from __future__ import annotations

import asyncio
import zlib

DEFAULT_SHARDS = 64


class WalletLocks:
    """Fixed pool of asyncio locks addressed by a stable hash of the wallet."""

    def __init__(self, shards: int = DEFAULT_SHARDS) -> None:
        if shards < 1:
            raise ValueError("shards must be positive")
        self._locks = [asyncio.Lock() for _ in range(shards)]

    def shard_for(self, wallet_address: str) -> int:
        return zlib.crc32(wallet_address.encode("utf-8")) % len(self._locks)

    def lock_for(self, wallet_address: str) -> asyncio.Lock:
        return self._locks[self.shard_for(wallet_address)]


_wallet_locks: WalletLocks | None = None


def get_wallet_locks() -> WalletLocks:
    """Process-wide lock pool (FastAPI dependency)."""
    global _wallet_locks  # noqa: PLW0603
    if _wallet_locks is None:
        _wallet_locks = WalletLocks()
    return _wallet_locks
