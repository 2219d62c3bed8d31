"""pipeline runs

Revision ID: 0003_pipeline_runs
Revises: 0002_cappers_and_picks
Create Date: 2026-10-01 03:00:00

"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0003_pipeline_runs"
down_revision: str | None = "0002_cappers_and_picks"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "pipeline_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("run_type", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("stats_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pipeline_runs_run_type_created", "pipeline_runs", ["run_type", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_pipeline_runs_run_type_created", table_name="pipeline_runs")
    op.drop_table("pipeline_runs")
