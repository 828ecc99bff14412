"""Submission and SequencedItem database models."""

from datetime import UTC, date, datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel
from ulid import ULID

from running_numbers.models.types import ULIDType


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


class Submission(SQLModel, table=True):
    """Complaint submission owning a set of numbered items.

    partition_key (branch) and period (year of the effective date) are fixed
    when the submission is created and are never re-derived on edit.
    """

    __tablename__ = "submissions"

    # ULID stored as UUID
    id: str = Field(
        default_factory=_ulid,
        max_length=26,
        sa_column=Column(ULIDType, primary_key=True),
    )

    partition_key: str = Field(max_length=64, index=True)
    period: int = Field(index=True)
    effective_date: date | None = Field(default=None, sa_column=Column(Date, nullable=True))
    created_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))

    # Relationships
    items: list["SequencedItem"] = Relationship(
        back_populates="submission",
        sa_relationship_kwargs={"order_by": "SequencedItem.sequence_number"},
    )


# A running number exists at most once per branch and year
SEQUENCED_ITEM_NUMBER_CONSTRAINT = UniqueConstraint(
    "partition_key", "period", "sequence_number", name="uq_sequenced_item_partition_period_number"
)


class SequencedItem(SQLModel, table=True):
    """Complaint position carrying a running number (lfd_nr)."""

    __tablename__ = "sequenced_items"
    __table_args__ = (
        SEQUENCED_ITEM_NUMBER_CONSTRAINT,
        CheckConstraint("sequence_number > 0", name="ck_sequenced_item_positive"),
    )

    id: int | None = Field(default=None, primary_key=True)
    submission_id: str = Field(
        sa_column=Column(ULIDType, ForeignKey("submissions.id", ondelete="CASCADE"), index=True, nullable=False),
    )
    # Copied from the submission at insert time
    partition_key: str = Field(max_length=64)
    period: int
    sequence_number: int

    article_number: str | None = None
    ean: str | None = None
    order_quantity: float | None = None
    order_unit: str | None = None
    complaint_quantity: float | None = None
    complaint_unit: str | None = None

    # Relationships
    submission: Submission = Relationship(back_populates="items")
