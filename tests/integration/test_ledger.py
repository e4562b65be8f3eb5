"""Player ledger: lazy creation, snapshots, history and reconciliation."""

from datetime import timedelta

import pytest
from sqlalchemy import update

from conftest import LAUNCH, WALLET
from dailyplay.cache import player_key
from dailyplay.db.models import Player
from dailyplay.game.errors import PlayerNotFoundError
from dailyplay.game.ledger import (
    count_lifetime_plays,
    find_or_create_player,
    get_player,
    load_player_snapshot,
    reconcile_player,
)
from dailyplay.game.service import get_player_history, submit_score
from dailyplay.game.weekly_reset import check_and_perform_reset

DAY = timedelta(seconds=60)


class TestPlayerRows:
    @pytest.mark.asyncio
    async def test_find_or_create_is_idempotent(self, db_session, configure):
        config = await configure()
        first = await find_or_create_player(db_session, WALLET, config)
        second = await find_or_create_player(db_session, WALLET, config)
        assert first.id == second.id
        assert first.total_score == 0
        assert first.last_play_date is None

    @pytest.mark.asyncio
    async def test_snapshot_is_cached(self, db_session, cache, fake_redis, configure):
        config = await configure()
        snapshot = await load_player_snapshot(db_session, cache, WALLET, config)
        assert snapshot.wallet_address == WALLET
        assert await fake_redis.exists(player_key(WALLET))
        assert 3590 < await fake_redis.ttl(player_key(WALLET)) <= 3600

        again = await load_player_snapshot(db_session, cache, WALLET, config)
        assert again == snapshot

    @pytest.mark.asyncio
    async def test_play_count_comes_from_log(self, db_session, cache, locks, configure):
        config = await configure(seconds_per_day=60)
        for day in range(3):
            await submit_score(db_session, cache, WALLET, 5, now=LAUNCH + day * DAY, locks=locks)

        player = await get_player(db_session, WALLET)
        assert await count_lifetime_plays(db_session, player.id, config) == 3


class TestHistory:
    @pytest.mark.asyncio
    async def test_newest_first_and_limited(self, db_session, cache, locks, configure):
        await configure(seconds_per_day=60)
        for day in range(4):
            await submit_score(db_session, cache, WALLET, day, now=LAUNCH + day * DAY, locks=locks)

        sessions = await get_player_history(db_session, WALLET, limit=2)
        assert [s.score for s in sessions] == [3, 2]

    @pytest.mark.asyncio
    async def test_unknown_player(self, db_session):
        with pytest.raises(PlayerNotFoundError):
            await get_player_history(db_session, WALLET)


class TestReconcile:
    @pytest.mark.asyncio
    async def test_repairs_drifted_total(self, db_session, cache, locks, configure):
        config = await configure(seconds_per_day=60)
        await submit_score(db_session, cache, WALLET, 120, now=LAUNCH, locks=locks)
        await db_session.execute(update(Player).where(Player.wallet_address == WALLET).values(total_score=999))
        await db_session.commit()

        corrections = await reconcile_player(db_session, cache, WALLET, config, now=LAUNCH + DAY)

        assert corrections == {"total_score": 120 - 999}
        assert (await get_player(db_session, WALLET)).total_score == 120

    @pytest.mark.asyncio
    async def test_consistent_ledger_is_untouched(self, db_session, cache, locks, configure):
        config = await configure(seconds_per_day=60)
        await submit_score(db_session, cache, WALLET, 120, now=LAUNCH, locks=locks)
        assert await reconcile_player(db_session, cache, WALLET, config, now=LAUNCH) == {}

    @pytest.mark.asyncio
    async def test_weekly_score_checked_once_rolled_over(self, db_session, cache, locks, configure):
        config = await configure(seconds_per_day=60, weekly_reset_enabled=True, current_week_number=0)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)
        await check_and_perform_reset(db_session, cache, now=LAUNCH + 7 * DAY)
        await submit_score(db_session, cache, WALLET, 80, now=LAUNCH + 8 * DAY, locks=locks)
        await db_session.execute(update(Player).where(Player.wallet_address == WALLET).values(weekly_score=5))
        await db_session.commit()

        corrections = await reconcile_player(db_session, cache, WALLET, config, now=LAUNCH + 8 * DAY)
        assert corrections == {"weekly_score": 75}

    @pytest.mark.asyncio
    async def test_play_before_late_sweep_stays_folded(self, db_session, cache, locks, configure):
        config = await configure(seconds_per_day=60, weekly_reset_enabled=True, current_week_number=0)
        await submit_score(db_session, cache, WALLET, 10, now=LAUNCH, locks=locks)
        # Week 1 has begun but the sweep has not run yet
        await submit_score(db_session, cache, WALLET, 20, now=LAUNCH + 7 * DAY + timedelta(seconds=10), locks=locks)
        await check_and_perform_reset(db_session, cache, now=LAUNCH + 7 * DAY + timedelta(seconds=30))

        player = await get_player(db_session, WALLET)
        assert (player.lifetime_total_score, player.weekly_score) == (30, 0)

        sweep_done = LAUNCH + 7 * DAY + timedelta(seconds=40)
        assert await reconcile_player(db_session, cache, WALLET, config, now=sweep_done) == {}
        await check_and_perform_reset(db_session, cache, now=sweep_done)

        player = await get_player(db_session, WALLET)
        assert (player.lifetime_total_score, player.weekly_score, player.total_score) == (30, 0, 30)

    @pytest.mark.asyncio
    async def test_reset_day_play_in_calendar_mode(self, db_session, cache, locks, configure):
        # Virtual days roll at midnight, weeks at 01:00 on the reset day
        config = await configure(weekly_reset_enabled=True, weekly_reset_day=0, current_week_number=0)
        await submit_score(db_session, cache, WALLET, 30, now=LAUNCH + timedelta(hours=2), locks=locks)
        next_sunday = LAUNCH + timedelta(days=7)
        await check_and_perform_reset(db_session, cache, now=next_sunday + timedelta(hours=1, minutes=5))
        await submit_score(db_session, cache, WALLET, 50, now=next_sunday + timedelta(hours=2, minutes=5), locks=locks)

        corrections = await reconcile_player(
            db_session, cache, WALLET, config, now=next_sunday + timedelta(hours=3),
        )

        assert corrections == {}
        player = await get_player(db_session, WALLET)
        assert (player.weekly_score, player.lifetime_total_score) == (50, 30)

    @pytest.mark.asyncio
    async def test_missing_player(self, db_session, cache, configure):
        config = await configure()
        assert await reconcile_player(db_session, cache, WALLET, config) == {}
