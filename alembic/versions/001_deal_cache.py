"""Deal cache, cache metadata and org mapping tables.

Revision ID: 001_deal_cache
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_deal_cache"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "deal_cache",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("value", sa.Numeric(14, 2), nullable=True),
        sa.Column("currency", sa.String(10), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("stage_id", sa.Integer(), nullable=True),
        sa.Column("pipeline_id", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("creator_user_id", sa.BigInteger(), nullable=True),
        sa.Column("person_id", sa.BigInteger(), nullable=True),
        sa.Column("org_id", sa.BigInteger(), nullable=True),
        sa.Column("add_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("won_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lost_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lost_reason", sa.Text(), nullable=True),
        sa.Column("deal_type", sa.String(50), nullable=True),
        sa.Column("country", sa.String(50), nullable=True),
        sa.Column("origin", sa.String(50), nullable=True),
        sa.Column("employee_count", sa.String(50), nullable=True),
        sa.Column("sales_cycle_days", sa.Integer(), nullable=True),
        sa.Column("cached_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_deal_cache_status", "deal_cache", ["status"])
    op.create_index("ix_deal_cache_pipeline_id", "deal_cache", ["pipeline_id"])
    op.create_index("ix_deal_cache_user_id", "deal_cache", ["user_id"])

    op.create_table(
        "cache_metadata",
        sa.Column("cache_key", sa.String(100), primary_key=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_status", sa.String(20), nullable=False, server_default="never_synced"),
        sa.Column("last_sync_error", sa.Text(), nullable=True),
        sa.Column("total_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sync_duration_ms", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "people",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column(
            "team_id",
            sa.Integer(),
            sa.ForeignKey("teams.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("pipedrive_user_id", sa.BigInteger(), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_people_team_id", "people", ["team_id"])


def downgrade() -> None:
    op.drop_index("ix_people_team_id", table_name="people")
    op.drop_table("people")
    op.drop_table("teams")
    op.drop_table("cache_metadata")
    op.drop_index("ix_deal_cache_user_id", table_name="deal_cache")
    op.drop_index("ix_deal_cache_pipeline_id", table_name="deal_cache")
    op.drop_index("ix_deal_cache_status", table_name="deal_cache")
    op.drop_table("deal_cache")
