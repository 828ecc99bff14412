"""Safety floor derived from running numbers already persisted."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from running_numbers.models.submission import SequencedItem


class DriftReconciler:
    """Reads the highest running number actually stored for a partition/period.

    Items can reach the table without going through the allocator (bulk
    import, manual correction, a counter row that was reset or lost), so the
    counter may under-report. The allocator never issues a number at or
    below this floor.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def observed_floor(self, partition_key: str, period: int) -> int:
        """Return MAX(sequence_number) for the partition/period, 0 if there are no items."""
        stmt = select(func.coalesce(func.max(SequencedItem.sequence_number), 0)).where(
            SequencedItem.partition_key == partition_key,
            SequencedItem.period == period,
        )
        result = await self.session.execute(stmt)
        value: int = result.scalar_one()
        return int(value)
