"""Persistent per-(partition_key, period) counters."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from running_numbers.models.sequence_counter import SEQUENCE_COUNTER_KEY_CONSTRAINT, SequenceCounter

logger = structlog.get_logger(__name__)

_COUNTER_TABLE = SequenceCounter.__table__  # type: ignore[attr-defined]


class CounterStore:
    """Read/write access to SequenceCounter rows.

    The counter is a cache of "highest number ever issued", not the source of
    truth for existing items (see DriftReconciler). Only SequenceAllocator
    should call this, inside the transaction that holds the row lock.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def _dialect(self) -> str:
        return self.session.get_bind().dialect.name

    async def get_or_create(self, partition_key: str, period: int) -> int:
        """Ensure the counter row exists and return its current value.

        Idempotent under concurrency: a creator racing another one converges
        on the existing row instead of raising.
        """
        values = {
            "partition_key": partition_key,
            "period": period,
            "current_value": 0,
            "updated_at": datetime.now(UTC),
        }
        key_columns = ["partition_key", "period"]

        if self._dialect == "postgresql":
            await self.session.execute(
                pg_insert(_COUNTER_TABLE).values(**values).on_conflict_do_nothing(index_elements=key_columns)
            )
        elif self._dialect == "sqlite":
            await self.session.execute(
                sqlite_insert(_COUNTER_TABLE).values(**values).on_conflict_do_nothing(index_elements=key_columns)
            )
        else:
            await self._insert_in_savepoint(values)

        return await self.get(partition_key, period)

    async def _insert_in_savepoint(self, values: dict[str, object]) -> None:
        savepoint = await self.session.begin_nested()
        try:
            await self.session.execute(insert(_COUNTER_TABLE).values(**values))
        except IntegrityError as e:
            await savepoint.rollback()
            if SEQUENCE_COUNTER_KEY_CONSTRAINT.name not in str(e):
                raise
            logger.debug(
                "Counter row created concurrently",
                partition_key=values["partition_key"],
                period=values["period"],
            )
        else:
            await savepoint.commit()

    async def get(self, partition_key: str, period: int, *, for_update: bool = False) -> int:
        """Read current_value. With ``for_update`` the row stays locked until the transaction ends."""
        stmt = select(SequenceCounter.current_value).where(
            SequenceCounter.partition_key == partition_key,
            SequenceCounter.period == period,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        value = result.scalar_one_or_none()
        return int(value) if value is not None else 0

    async def lock(self, partition_key: str, period: int) -> int:
        """SELECT ... FOR UPDATE the counter row (blocking) and return current_value."""
        return await self.get(partition_key, period, for_update=True)

    async def set(self, partition_key: str, period: int, new_value: int, *, expected: int) -> int | None:
        """Persist ``new_value`` if the row still holds ``expected``.

        Returns the persisted value, or None when zero rows were affected
        (row vanished or was changed outside the lock).
        """
        stmt = (
            update(SequenceCounter)
            .where(
                SequenceCounter.partition_key == partition_key,  # type: ignore[arg-type]
                SequenceCounter.period == period,  # type: ignore[arg-type]
                SequenceCounter.current_value == expected,  # type: ignore[arg-type]
            )
            .values(current_value=new_value, updated_at=datetime.now(UTC))
            .returning(SequenceCounter.current_value)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        persisted = result.scalar_one_or_none()
        return int(persisted) if persisted is not None else None
