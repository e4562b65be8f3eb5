"""End-to-end play scenarios on accelerated virtual days."""

from datetime import timedelta

import pytest

from conftest import LAUNCH, WALLET
from dailyplay.game.ledger import get_player
from dailyplay.game.referral import apply_referral_code, get_referral_info
from dailyplay.game.service import get_player_status, submit_score


class TestTwoMinuteDays:
    @pytest.mark.asyncio
    async def test_full_day_cycle(self, db_session, cache, locks, oracle, configure):
        await configure(seconds_per_day=120, streak_base_multiplier=1.0, streak_increment_per_day=0.1)
        # Extra plays so the wallet can play twice on day 0
        await apply_referral_code(db_session, cache, oracle, WALLET, "friend2026", now=LAUNCH)

        status = await get_player_status(db_session, cache, WALLET, now=LAUNCH)
        assert status.can_play
        assert status.streak_multiplier == 1.0

        first = await submit_score(db_session, cache, WALLET, 500, now=LAUNCH, locks=locks)
        assert first.final_score == 500
        assert first.streak_multiplier == 1.0

        second = await submit_score(db_session, cache, WALLET, 800, now=LAUNCH + timedelta(seconds=5), locks=locks)
        assert second.final_score == 800
        assert second.streak_multiplier == 1.0
        assert second.current_streak == 1

        next_day = LAUNCH + timedelta(seconds=121)
        status = await get_player_status(db_session, cache, WALLET, now=next_day)
        assert status.current_streak == 2
        assert status.streak_multiplier == 1.0

        third = await submit_score(db_session, cache, WALLET, 100, now=next_day, locks=locks)
        assert third.final_score == 100
        player = await get_player(db_session, WALLET)
        assert player.current_streak == 2
        assert player.total_score == 1400

        day_after = LAUNCH + timedelta(seconds=245)
        status = await get_player_status(db_session, cache, WALLET, now=day_after)
        assert status.current_streak == 3
        assert status.streak_multiplier == pytest.approx(1.1)

    @pytest.mark.asyncio
    async def test_debug_info_in_virtual_time(self, db_session, cache, configure):
        await configure(seconds_per_day=120, weekly_reset_enabled=True)
        status = await get_player_status(db_session, cache, WALLET, now=LAUNCH + timedelta(seconds=250))

        debug = status.debug_info
        assert debug["seconds_per_day"] == 120
        assert debug["virtual_day"] == 2
        assert debug["virtual_day_start"] == (LAUNCH + timedelta(seconds=240)).isoformat()
        assert debug["next_virtual_day_start"] == (LAUNCH + timedelta(seconds=360)).isoformat()
        assert debug["base_plays_allowed"] == 3
        assert debug["total_plays_used"] == 0
        assert debug["last_play_virtual_day"] is None
        assert debug["current_week_number"] == 0

    @pytest.mark.asyncio
    async def test_no_debug_info_in_real_time(self, db_session, cache, configure):
        await configure()
        status = await get_player_status(db_session, cache, WALLET, now=LAUNCH + timedelta(hours=2))
        assert status.debug_info is None


class TestStreakBoundary:
    @pytest.mark.asyncio
    async def test_yesterday_extends(self, db_session, cache, locks, configure):
        await configure(seconds_per_day=60)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH + timedelta(seconds=3 * 60), locks=locks)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH + timedelta(seconds=4 * 60 + 59), locks=locks)

        player = await get_player(db_session, WALLET)
        assert player.current_streak == 2
        assert player.longest_streak == 2

    @pytest.mark.asyncio
    async def test_two_days_back_resets(self, db_session, cache, locks, configure):
        await configure(seconds_per_day=60)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH + timedelta(seconds=3 * 60), locks=locks)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH + timedelta(seconds=4 * 60), locks=locks)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH + timedelta(seconds=6 * 60), locks=locks)

        player = await get_player(db_session, WALLET)
        assert player.current_streak == 1
        assert player.longest_streak == 2

    @pytest.mark.asyncio
    async def test_has_valid_streak(self, db_session, cache, locks, configure):
        await configure(seconds_per_day=60)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)

        ok = await get_player_status(db_session, cache, WALLET, now=LAUNCH + timedelta(seconds=90))
        assert ok.has_valid_streak
        lapsed = await get_player_status(db_session, cache, WALLET, now=LAUNCH + timedelta(seconds=150))
        assert not lapsed.has_valid_streak
        assert lapsed.current_streak == 1


class TestProjectedMultiplier:
    @pytest.mark.asyncio
    async def test_status_matches_applied_multiplier(self, db_session, cache, locks, configure):
        await configure(seconds_per_day=60, streak_increment_per_day=0.25)
        for day in range(5):
            now = LAUNCH + timedelta(seconds=day * 60 + 1)
            status = await get_player_status(db_session, cache, WALLET, now=now)
            result = await submit_score(db_session, cache, WALLET, 1000, now=now, locks=locks)
            assert result.streak_multiplier == status.streak_multiplier
            assert result.current_streak == status.current_streak

        # Day 4 played on a 4-day streak basis
        assert result.streak_multiplier == pytest.approx(1.75)
        assert result.final_score == 1750

    @pytest.mark.asyncio
    async def test_weekly_mode_multiplier_restarts_after_rollover(self, db_session, cache, locks, configure):
        from dailyplay.game.weekly_reset import check_and_perform_reset

        await configure(seconds_per_day=60, weekly_reset_enabled=True)
        for day in range(7):
            await submit_score(db_session, cache, WALLET, 10, now=LAUNCH + timedelta(seconds=day * 60), locks=locks)

        week_one = LAUNCH + timedelta(seconds=7 * 60)
        await check_and_perform_reset(db_session, cache, now=week_one)
        status = await get_player_status(db_session, cache, WALLET, now=week_one)
        # Lifetime streak continues; the weekly line was zeroed
        assert status.streak_multiplier == 1.0
        assert status.current_streak == 1
        assert status.total_score == 0
        assert status.lifetime_total_score == 70


class TestReferralScenario:
    @pytest.mark.asyncio
    async def test_extra_plays_after_base_is_exhausted(self, db_session, cache, locks, oracle, configure):
        await configure(seconds_per_day=60)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)
        status = await get_player_status(db_session, cache, WALLET, now=LAUNCH)
        assert status.plays_remaining == 0
        assert not status.can_play

        applied = await apply_referral_code(db_session, cache, oracle, WALLET, "Friend2026", now=LAUNCH)
        assert applied.extra_plays == 3

        status = await get_player_status(db_session, cache, WALLET, now=LAUNCH)
        assert status.plays_remaining == 3
        assert status.can_play

        for _ in range(3):
            result = await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)
            assert result.used_referral_play

        info = await get_referral_info(db_session, WALLET)
        assert info.extra_plays_used == 3
        assert info.extra_plays_remaining == 0
        status = await get_player_status(db_session, cache, WALLET, now=LAUNCH)
        assert status.plays_remaining == 0
        assert status.seconds_to_next_play == 60
