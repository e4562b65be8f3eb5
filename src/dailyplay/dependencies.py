"""Shared FastAPI dependencies."""

from __future__ import annotations

from dailyplay.cache import GameCache
from dailyplay.database import get_session as _get_session
from dailyplay.game.locks import WalletLocks, get_wallet_locks
from dailyplay.game.referral_oracle import BaseReferralOracle, get_referral_oracle
from dailyplay.metrics import MetricsSink
from dailyplay.redis_client import get_redis

get_db = _get_session


def get_cache() -> GameCache:
    return GameCache(get_redis())


def get_metrics() -> MetricsSink:
    return MetricsSink(get_redis())


def get_locks() -> WalletLocks:
    return get_wallet_locks()


def get_oracle() -> BaseReferralOracle:
    return get_referral_oracle()
