"""games and line snapshots

Revision ID: 0001_games_and_line_snapshots
Revises:
Create Date: 2026-10-01 01:00:00

"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_games_and_line_snapshots"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sport", sa.String(length=16), nullable=False),
        sa.Column("event_key", sa.Text(), nullable=False, unique=True),
        sa.Column("commence_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("home_team", sa.Text(), nullable=False),
        sa.Column("away_team", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="scheduled"),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_games_sport", "games", ["sport"])
    op.create_index("ix_games_commence_time", "games", ["commence_time"])

    op.create_table(
        "line_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sport", sa.String(length=16), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("external_id", sa.Text(), nullable=False),
        sa.Column("home_team", sa.Text(), nullable=False),
        sa.Column("away_team", sa.Text(), nullable=False),
        sa.Column("spread_home", sa.Numeric(6, 2), nullable=True),
        sa.Column("spread_home_price", sa.Integer(), nullable=True),
        sa.Column("spread_away", sa.Numeric(6, 2), nullable=True),
        sa.Column("spread_away_price", sa.Integer(), nullable=True),
        sa.Column("total_line", sa.Numeric(6, 2), nullable=True),
        sa.Column("total_over_price", sa.Integer(), nullable=True),
        sa.Column("total_under_price", sa.Integer(), nullable=True),
        sa.Column("home_ml", sa.Integer(), nullable=True),
        sa.Column("away_ml", sa.Integer(), nullable=True),
        sa.Column("is_opening", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_closing", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("game_id", "provider", "captured_at", name="uq_line_snapshots_capture"),
    )
    op.create_index("ix_line_snapshots_game_id", "line_snapshots", ["game_id"])
    op.create_index("ix_line_snapshots_lookup", "line_snapshots", ["game_id", "provider", "captured_at"])
    op.create_index(
        "uq_line_snapshots_opening",
        "line_snapshots",
        ["game_id", "provider"],
        unique=True,
        postgresql_where=sa.text("is_opening"),
        sqlite_where=sa.text("is_opening = 1"),
    )


def downgrade() -> None:
    op.drop_index("uq_line_snapshots_opening", table_name="line_snapshots")
    op.drop_index("ix_line_snapshots_lookup", table_name="line_snapshots")
    op.drop_index("ix_line_snapshots_game_id", table_name="line_snapshots")
    op.drop_table("line_snapshots")
    op.drop_index("ix_games_commence_time", table_name="games")
    op.drop_index("ix_games_sport", table_name="games")
    op.drop_table("games")
