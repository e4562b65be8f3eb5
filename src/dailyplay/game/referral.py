"""Referral grants: one code per wallet, redeemed as extra plays."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import GameCache
from dailyplay.db.dialect import insert_ignore
from dailyplay.db.models import ReferralGrant
from dailyplay.game.errors import InvalidReferralCodeError, ReferralAlreadyAppliedError
from dailyplay.game.referral_oracle import BaseReferralOracle
from dailyplay.game.settings_store import load_config
from dailyplay.game.validation import validate_wallet_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferralApplied:
    extra_plays: int
    message: str


@dataclass(frozen=True)
class ReferralInfo:
    has_referral: bool
    code: str | None = None
    extra_plays_total: int | None = None
    extra_plays_used: int | None = None
    extra_plays_remaining: int | None = None


def normalize_wallet(wallet_address: str) -> str:
    return wallet_address.lower()


async def get_referral_grant(db: AsyncSession, wallet_address: str) -> ReferralGrant | None:
    result = await db.execute(
        select(ReferralGrant)
        .where(ReferralGrant.wallet_address == normalize_wallet(wallet_address))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def apply_referral_code(
    db: AsyncSession,
    cache: GameCache,
    oracle: BaseReferralOracle,
    wallet_address: str,
    code: str,
    now: datetime | None = None,
) -> ReferralApplied:
    """Attach a referral code to a wallet, granting the configured extra plays.

    Raises:
        ReferralAlreadyAppliedError: the wallet already redeemed a code.
        InvalidReferralCodeError: the oracle does not know the code.
    """
    validate_wallet_address(wallet_address)
    if now is None:
        now = datetime.now(timezone.utc)
    wallet = normalize_wallet(wallet_address)

    if await get_referral_grant(db, wallet) is not None:
        raise ReferralAlreadyAppliedError("This wallet has already used a referral code")

    post = await oracle.lookup(code)
    if post is None:
        raise InvalidReferralCodeError("Invalid referral code")

    config = await load_config(db, cache)
    extra_plays = config.referral_extra_plays

    created = await insert_ignore(db, ReferralGrant, ["wallet_address"], {
        "wallet_address": wallet,
        "code": post.slug.lower(),
        "extra_plays_total": extra_plays,
        "extra_plays_used": 0,
        "created_at": now,
        "updated_at": now,
    })
    await db.commit()
    if not created:
        raise ReferralAlreadyAppliedError("This wallet has already used a referral code")

    await cache.invalidate_player(wallet_address)
    logger.info("Referral code %s applied to %s (%d extra plays)", post.slug, wallet, extra_plays)
    return ReferralApplied(
        extra_plays=extra_plays,
        message=f"Referral code applied! You received {extra_plays} extra plays.",
    )


async def get_referral_info(db: AsyncSession, wallet_address: str) -> ReferralInfo:
    validate_wallet_address(wallet_address)
    grant = await get_referral_grant(db, wallet_address)
    if grant is None:
        return ReferralInfo(has_referral=False)
    return ReferralInfo(
        has_referral=True,
        code=grant.code,
        extra_plays_total=grant.extra_plays_total,
        extra_plays_used=grant.extra_plays_used,
        extra_plays_remaining=grant.extra_plays_total - grant.extra_plays_used,
    )
