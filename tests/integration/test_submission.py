"""Score submission write path."""

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from conftest import LAUNCH, OTHER_WALLET, WALLET
from dailyplay.db.models import PlaySession, StreakRecord
from dailyplay.game.errors import InvalidScoreError, InvalidWalletError, QuotaExhaustedError
from dailyplay.game.ledger import get_player
from dailyplay.game.referral import apply_referral_code, get_referral_grant
from dailyplay.game.service import get_player_history, submit_score

DAY = timedelta(seconds=60)


@pytest_asyncio.fixture
async def virtual_minutes(configure):
    """One-minute virtual days starting at LAUNCH."""
    return await configure(seconds_per_day=60)


async def _count(db, model, player_id) -> int:  # noqa: ANN001
    result = await db.execute(select(func.count(model.id)).where(model.player_id == player_id))
    return int(result.scalar_one())


class TestSubmitScore:
    @pytest.mark.asyncio
    async def test_first_play_writes_session_and_ledger(self, db_session, cache, locks, virtual_minutes):
        result = await submit_score(
            db_session, cache, WALLET, 700, game_data='{"level": 3}', now=LAUNCH + timedelta(seconds=5), locks=locks,
        )

        assert result.score == 700
        assert result.final_score == 700
        assert result.streak_multiplier == 1.0
        assert result.current_streak == 1
        assert result.play_date == LAUNCH
        assert result.week_number is None
        assert result.used_referral_play is False

        player = await get_player(db_session, WALLET)
        assert player.total_score == 700
        assert player.current_streak == 1
        assert player.longest_streak == 1

        sessions = await get_player_history(db_session, WALLET)
        assert len(sessions) == 1
        assert sessions[0].id == result.session_id
        assert sessions[0].game_data == '{"level": 3}'
        assert await _count(db_session, StreakRecord, player.id) == 1

    @pytest.mark.asyncio
    async def test_final_score_is_floored(self, db_session, cache, locks, configure):
        await configure(seconds_per_day=60, streak_increment_per_day=0.15)
        for day in range(3):
            await submit_score(db_session, cache, WALLET, 1, now=LAUNCH + day * DAY, locks=locks)

        # Basis 3 -> 1.3 multiplier; 333 * 1.3 = 432.9
        result = await submit_score(db_session, cache, WALLET, 333, now=LAUNCH + 3 * DAY, locks=locks)
        assert result.streak_multiplier == pytest.approx(1.3)
        assert result.final_score == 432

    @pytest.mark.asyncio
    async def test_quota_exhausted(self, db_session, cache, locks, metrics, virtual_minutes):
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)

        with pytest.raises(QuotaExhaustedError) as exc_info:
            await submit_score(
                db_session, cache, WALLET, 10, now=LAUNCH + timedelta(seconds=20), metrics=metrics, locks=locks,
            )
        assert exc_info.value.next_available_at == LAUNCH + DAY
        assert exc_info.value.seconds_to_next_play == 40

        await metrics.flush()
        assert await metrics.read("scores_rejected_total") == {"reason=quota_exhausted": 1.0}
        player = await get_player(db_session, WALLET)
        assert await _count(db_session, PlaySession, player.id) == 1

    @pytest.mark.asyncio
    async def test_unused_days_can_be_caught_up(self, db_session, cache, locks, virtual_minutes):
        now = LAUNCH + 2 * DAY
        for _ in range(3):
            await submit_score(db_session, cache, WALLET, 10, now=now, locks=locks)
        with pytest.raises(QuotaExhaustedError):
            await submit_score(db_session, cache, WALLET, 10, now=now, locks=locks)

    @pytest.mark.asyncio
    async def test_streak_record_only_on_first_play_of_day(self, db_session, cache, locks, virtual_minutes):
        now = LAUNCH + 1 * DAY
        await submit_score(db_session, cache, WALLET, 10, now=now, locks=locks)
        await submit_score(db_session, cache, WALLET, 20, now=now + timedelta(seconds=10), locks=locks)

        player = await get_player(db_session, WALLET)
        assert await _count(db_session, PlaySession, player.id) == 2
        assert await _count(db_session, StreakRecord, player.id) == 1
        assert player.current_streak == 1
        assert player.total_score == 30

    @pytest.mark.asyncio
    async def test_referral_plays_are_spent_first(self, db_session, cache, locks, oracle, virtual_minutes):
        await apply_referral_code(db_session, cache, oracle, WALLET, "friend2026", now=LAUNCH)

        first = await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)
        second = await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)

        assert first.used_referral_play is True
        assert second.used_referral_play is True
        grant = await get_referral_grant(db_session, WALLET)
        assert grant.extra_plays_used == 2

    @pytest.mark.asyncio
    async def test_players_are_independent(self, db_session, cache, locks, virtual_minutes):
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)
        await submit_score(db_session, cache, OTHER_WALLET, 99, now=LAUNCH, locks=locks)

        assert (await get_player(db_session, WALLET)).total_score == 10
        assert (await get_player(db_session, OTHER_WALLET)).total_score == 99

    @pytest.mark.asyncio
    async def test_weekly_mode_tracks_both_lines(self, db_session, cache, locks, configure):
        await configure(seconds_per_day=60, weekly_reset_enabled=True)
        result = await submit_score(db_session, cache, WALLET, 250, now=LAUNCH + 8 * DAY, locks=locks)

        assert result.week_number == 1
        player = await get_player(db_session, WALLET)
        assert player.total_score == 250
        assert player.weekly_score == 250
        assert player.weekly_streak == 1
        assert player.weekly_longest_streak == 1


class TestSubmitValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("wallet", ["", "short", "0x-not-hex!", "a" * 129])
    async def test_bad_wallet(self, db_session, cache, locks, wallet):
        with pytest.raises(InvalidWalletError):
            await submit_score(db_session, cache, wallet, 10, locks=locks)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [-1, 1.5, True, "10"])
    async def test_bad_score(self, db_session, cache, locks, score):
        with pytest.raises(InvalidScoreError):
            await submit_score(db_session, cache, WALLET, score, locks=locks)
