"""Daily play tables.

Creates game_settings, players, play_sessions, streak_records,
weekly_snapshots and referral_grants.

Revision ID: 001_daily_play_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_daily_play_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Settings (singleton) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS game_settings (
            id INTEGER PRIMARY KEY DEFAULT 1,
            launch_date TIMESTAMPTZ NOT NULL,
            seconds_per_day INTEGER,
            streak_base_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            streak_increment_per_day DOUBLE PRECISION NOT NULL DEFAULT 0.1,
            weekly_reset_enabled BOOLEAN NOT NULL DEFAULT false,
            weekly_reset_day INTEGER NOT NULL DEFAULT 0,
            current_week_number INTEGER,
            referral_extra_plays INTEGER NOT NULL DEFAULT 3,
            game_state VARCHAR(16) NOT NULL DEFAULT 'ACTIVE',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT game_settings_singleton CHECK (id = 1),
            CONSTRAINT game_settings_reset_day CHECK (weekly_reset_day BETWEEN 0 AND 6)
        )
    """)

    # --- Players ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS players (
            id BIGSERIAL PRIMARY KEY,
            wallet_address VARCHAR(128) UNIQUE NOT NULL,
            launch_date TIMESTAMPTZ NOT NULL,
            total_score BIGINT NOT NULL DEFAULT 0,
            lifetime_total_score BIGINT NOT NULL DEFAULT 0,
            weekly_score BIGINT NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            weekly_streak INTEGER NOT NULL DEFAULT 0,
            weekly_longest_streak INTEGER NOT NULL DEFAULT 0,
            last_play_date TIMESTAMPTZ,
            last_reset_week_number INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_players_total_score
        ON players(total_score, id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_players_weekly_score
        ON players(weekly_score, id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_players_last_reset_week
        ON players(last_reset_week_number)
    """)

    # --- Play sessions (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS play_sessions (
            id BIGSERIAL PRIMARY KEY,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            score BIGINT NOT NULL,
            play_date TIMESTAMPTZ NOT NULL,
            week_number INTEGER,
            streak_multiplier DOUBLE PRECISION NOT NULL,
            final_score BIGINT NOT NULL,
            game_data TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_play_sessions_player_id
        ON play_sessions(player_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_play_sessions_play_date
        ON play_sessions(play_date)
    """)

    # --- Streak records (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_records (
            id BIGSERIAL PRIMARY KEY,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            streak_date TIMESTAMPTZ NOT NULL,
            streak_count INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT streak_records_player_date_key UNIQUE (player_id, streak_date)
        )
    """)

    # --- Weekly snapshots (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS weekly_snapshots (
            id BIGSERIAL PRIMARY KEY,
            week_number INTEGER NOT NULL,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            wallet_address VARCHAR(128) NOT NULL,
            weekly_score BIGINT NOT NULL DEFAULT 0,
            weekly_streak INTEGER NOT NULL DEFAULT 0,
            weekly_longest_streak INTEGER NOT NULL DEFAULT 0,
            lifetime_total_score BIGINT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT weekly_snapshots_player_week_key UNIQUE (player_id, week_number)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_weekly_snapshots_week_number
        ON weekly_snapshots(week_number)
    """)

    # --- Referral grants ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS referral_grants (
            id BIGSERIAL PRIMARY KEY,
            wallet_address VARCHAR(128) UNIQUE NOT NULL,
            code VARCHAR(128) NOT NULL,
            extra_plays_total INTEGER NOT NULL,
            extra_plays_used INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT referral_grants_used_cap CHECK (extra_plays_used <= extra_plays_total)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS referral_grants")
    op.execute("DROP TABLE IF EXISTS weekly_snapshots")
    op.execute("DROP TABLE IF EXISTS streak_records")
    op.execute("DROP TABLE IF EXISTS play_sessions")
    op.execute("DROP TABLE IF EXISTS players")
    op.execute("DROP TABLE IF EXISTS game_settings")
