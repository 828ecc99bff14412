"""Per-branch, per-year counter model for running numbers."""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

SEQUENCE_COUNTER_KEY_CONSTRAINT = UniqueConstraint(
    "partition_key", "period", name="uq_sequence_counter_partition_period"
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SequenceCounter(SQLModel, table=True):
    """Highest running number ever handed out for one (partition_key, period).

    Rows are created lazily with current_value=0 and never deleted.
    Only SequenceAllocator writes current_value, always under
    SELECT ... FOR UPDATE, so the value never decreases.
    """

    __tablename__ = "sequence_counters"
    __table_args__ = (
        SEQUENCE_COUNTER_KEY_CONSTRAINT,
        CheckConstraint("current_value >= 0", name="ck_sequence_counter_non_negative"),
    )

    id: int | None = Field(default=None, primary_key=True)
    partition_key: str = Field(max_length=64)
    period: int
    current_value: int = Field(default=0)
    updated_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
