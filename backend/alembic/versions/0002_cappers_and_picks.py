"""cappers and picks

Revision ID: 0002_cappers_and_picks
Revises: 0001_games_and_line_snapshots
Create Date: 2026-10-01 02:00:00

"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002_cappers_and_picks"
down_revision: str | None = "0001_games_and_line_snapshots"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "cappers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pushes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("units", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("units_wagered", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "picks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("capper_id", sa.Integer(), sa.ForeignKey("cappers.id"), nullable=False),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("sport", sa.String(length=16), nullable=False),
        sa.Column("bet_type", sa.String(length=16), nullable=False),
        sa.Column("selection", sa.String(length=16), nullable=False),
        sa.Column("line_at_pick", sa.Numeric(6, 2), nullable=True),
        sa.Column("price_at_pick", sa.Integer(), nullable=True),
        sa.Column("stake", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("profit_loss", sa.Numeric(12, 2), nullable=True),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("grade_note", sa.Text(), nullable=True),
        sa.Column("clv", sa.Numeric(8, 2), nullable=True),
        sa.Column("closing_line", sa.Numeric(6, 2), nullable=True),
        sa.Column("closing_price", sa.Integer(), nullable=True),
        sa.Column("closing_provider", sa.String(length=32), nullable=True),
        sa.Column("clv_computed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_picks_capper_id", "picks", ["capper_id"])
    op.create_index("ix_picks_game_id", "picks", ["game_id"])
    op.create_index("ix_picks_status_game", "picks", ["status", "game_id"])


def downgrade() -> None:
    op.drop_index("ix_picks_status_game", table_name="picks")
    op.drop_index("ix_picks_game_id", table_name="picks")
    op.drop_index("ix_picks_capper_id", table_name="picks")
    op.drop_table("picks")
    op.drop_table("cappers")
