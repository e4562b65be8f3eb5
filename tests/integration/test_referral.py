"""Referral code redemption."""

import pytest

from conftest import LAUNCH, WALLET, FakeReferralOracle
from dailyplay.cache import player_key
from dailyplay.game.errors import InvalidReferralCodeError, InvalidWalletError, ReferralAlreadyAppliedError
from dailyplay.game.referral import apply_referral_code, get_referral_grant, get_referral_info


class TestApplyReferralCode:
    @pytest.mark.asyncio
    async def test_grants_configured_extra_plays(self, db_session, cache, oracle, configure):
        await configure(referral_extra_plays=5)
        applied = await apply_referral_code(db_session, cache, oracle, WALLET, "FRIEND2026", now=LAUNCH)

        assert applied.extra_plays == 5
        assert applied.message == "Referral code applied! You received 5 extra plays."
        grant = await get_referral_grant(db_session, WALLET)
        assert grant.wallet_address == WALLET.lower()
        assert grant.code == "friend2026"
        assert grant.extra_plays_total == 5
        assert grant.extra_plays_used == 0

    @pytest.mark.asyncio
    async def test_one_code_per_wallet(self, db_session, cache, oracle, configure):
        await configure()
        await apply_referral_code(db_session, cache, oracle, WALLET, "friend2026")

        with pytest.raises(ReferralAlreadyAppliedError):
            await apply_referral_code(db_session, cache, oracle, WALLET.lower(), "friend2026")
        # Rejected before the oracle is consulted again
        assert oracle.lookups == ["friend2026"]

    @pytest.mark.asyncio
    async def test_unknown_code(self, db_session, cache, configure):
        await configure()
        with pytest.raises(InvalidReferralCodeError):
            await apply_referral_code(db_session, cache, FakeReferralOracle(set()), WALLET, "nobody")
        assert await get_referral_grant(db_session, WALLET) is None

    @pytest.mark.asyncio
    async def test_invalid_wallet(self, db_session, cache, oracle):
        with pytest.raises(InvalidWalletError):
            await apply_referral_code(db_session, cache, oracle, "bad wallet", "friend2026")
        assert oracle.lookups == []

    @pytest.mark.asyncio
    async def test_drops_player_cache(self, db_session, cache, fake_redis, oracle, configure):
        await configure()
        await fake_redis.set(player_key(WALLET), "{}")
        await apply_referral_code(db_session, cache, oracle, WALLET, "friend2026")
        assert not await fake_redis.exists(player_key(WALLET))


class TestReferralInfo:
    @pytest.mark.asyncio
    async def test_without_grant(self, db_session):
        info = await get_referral_info(db_session, WALLET)
        assert info.has_referral is False
        assert info.code is None

    @pytest.mark.asyncio
    async def test_with_grant(self, db_session, cache, oracle, configure):
        await configure()
        await apply_referral_code(db_session, cache, oracle, WALLET, "friend2026")

        info = await get_referral_info(db_session, WALLET)
        assert info.has_referral is True
        assert info.code == "friend2026"
        assert info.extra_plays_total == 3
        assert info.extra_plays_remaining == 3
