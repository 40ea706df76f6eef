"""token_prices and backfill_jobs

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "token_prices",
        sa.Column("id", sa.Integer(), autoincrement=True),
        sa.Column("token_address", sa.String(255), nullable=False),
        sa.Column("network", sa.String(50), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("price", sa.Numeric(20, 8), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("source", sa.String(20), nullable=False, server_default="external"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_token_prices")),
        sa.UniqueConstraint("token_address", "network", "date", name="uq_token_prices_token_network_date"),
    )
    op.create_index("ix_token_prices_token_network_timestamp", "token_prices", ["token_address", "network", "timestamp"])
    op.create_index(op.f("ix_token_prices_date"), "token_prices", ["date"])

    op.create_table(
        "backfill_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("job_id", sa.String(100), nullable=False),
        sa.Column("token_address", sa.String(255), nullable=False),
        sa.Column("network", sa.String(50), nullable=False),
        sa.Column("start_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("total_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_backfill_jobs")),
        sa.UniqueConstraint("job_id", name=op.f("uq_backfill_jobs_job_id")),
        sa.CheckConstraint("completed_days <= total_days", name=op.f("ck_backfill_jobs_progress")),
    )
    op.create_index(op.f("ix_backfill_jobs_token_address"), "backfill_jobs", ["token_address"])
    op.create_index(op.f("ix_backfill_jobs_status"), "backfill_jobs", ["status"])


def downgrade() -> None:
    op.drop_index(op.f("ix_backfill_jobs_status"), table_name="backfill_jobs")
    op.drop_index(op.f("ix_backfill_jobs_token_address"), table_name="backfill_jobs")
    op.drop_table("backfill_jobs")
    op.drop_index(op.f("ix_token_prices_date"), table_name="token_prices")
    op.drop_index("ix_token_prices_token_network_timestamp", table_name="token_prices")
    op.drop_table("token_prices")
