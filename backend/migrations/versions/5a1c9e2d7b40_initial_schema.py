"""initial_schema

Revision ID: 5a1c9e2d7b40
Revises:
Create Date: 2026-10-19 09:12:31.402118

"""

from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5a1c9e2d7b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Counter per branch + year
    op.create_table(
        "sequence_counters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("partition_key", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("current_value", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("partition_key", "period", name="uq_sequence_counter_partition_period"),
        sa.CheckConstraint("current_value >= 0", name="ck_sequence_counter_non_negative"),
    )

    # Submissions (ULID as UUID)
    op.create_table(
        "submissions",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("partition_key", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_submissions_partition_key"), "submissions", ["partition_key"], unique=False)
    op.create_index(op.f("ix_submissions_period"), "submissions", ["period"], unique=False)

    # Numbered items
    op.create_table(
        "sequenced_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("submission_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("partition_key", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("article_number", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("ean", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("order_quantity", sa.Float(), nullable=True),
        sa.Column("order_unit", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("complaint_quantity", sa.Float(), nullable=True),
        sa.Column("complaint_unit", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.ForeignKeyConstraint(["submission_id"], ["submissions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "partition_key", "period", "sequence_number", name="uq_sequenced_item_partition_period_number"
        ),
        sa.CheckConstraint("sequence_number > 0", name="ck_sequenced_item_positive"),
    )
    op.create_index(op.f("ix_sequenced_items_submission_id"), "sequenced_items", ["submission_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_sequenced_items_submission_id"), table_name="sequenced_items")
    op.drop_table("sequenced_items")

    op.drop_index(op.f("ix_submissions_period"), table_name="submissions")
    op.drop_index(op.f("ix_submissions_partition_key"), table_name="submissions")
    op.drop_table("submissions")

    op.drop_table("sequence_counters")
