"""Record when each player was last rolled into a new week.

Revision ID: 002_player_last_reset_at
Revises: 001_daily_play_tables
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_player_last_reset_at"
down_revision: str | None = "001_daily_play_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("ALTER TABLE players ADD COLUMN IF NOT EXISTS last_reset_at TIMESTAMPTZ")


def downgrade() -> None:
    op.execute("ALTER TABLE players DROP COLUMN IF EXISTS last_reset_at")
