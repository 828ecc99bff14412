"""Block allocation of running numbers per (partition_key, period)."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from running_numbers.config import settings
from running_numbers.services.exceptions import AllocationFailed, InvalidArgument
from running_numbers.services.sequencing.counter_store import CounterStore
from running_numbers.services.sequencing.drift import DriftReconciler
from running_numbers.utils.datetime_utils import is_valid_period

logger = structlog.get_logger(__name__)


def validate_partition_key(partition_key: object) -> str:
    if not isinstance(partition_key, str) or not partition_key.strip():
        raise InvalidArgument(f"Partition key must be a non-empty string, got {partition_key!r}")
    return partition_key


def validate_period(period: object) -> int:
    if not is_valid_period(period):
        raise InvalidArgument(
            f"Period must be an integer between {settings.period_min} and {settings.period_max}, got {period!r}"
        )
    return period  # type: ignore[return-value]


def validate_count(count: object) -> int:
    if not isinstance(count, int) or isinstance(count, bool) or count < 0:
        raise InvalidArgument(f"Count must be a non-negative integer, got {count!r}")
    return count


class SequenceAllocator:
    """Reserves contiguous blocks of running numbers.

    Must run inside the caller's transaction: the counter row stays locked
    (SELECT ... FOR UPDATE) until that transaction commits or rolls back, and
    the counter advance rolls back together with everything else.

    Usage:
        allocator = SequenceAllocator(session)
        start = await allocator.allocate_block("F01", 2025, len(items))
        for offset, item in enumerate(items):
            item.sequence_number = start + offset
        await session.commit()
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.counters = CounterStore(session)
        self.reconciler = DriftReconciler(session)

    async def allocate_block(self, partition_key: str, period: int, count: int) -> int | None:
        """Reserve ``count`` numbers and return the first one.

        The caller owns ``start .. start + count - 1`` (inclusive) and must
        assign them in order. ``count == 0`` reserves nothing and returns None.

        Raises:
            InvalidArgument: malformed partition key, period or count
            AllocationFailed: the counter update did not apply, produced an
                inconsistent delta, or the row lock timed out / deadlocked
        """
        validate_partition_key(partition_key)
        validate_period(period)
        validate_count(count)
        if count == 0:
            return None

        log = logger.bind(partition_key=partition_key, period=period, count=count)

        async with self._counter_lock_errors(partition_key, period, log):
            current, floor = await self._lock_counter(partition_key, period, log)
            base = max(current, floor)
            persisted = await self.counters.set(partition_key, period, base + count, expected=current)

        if persisted is None:
            log.error("Counter update affected no rows", counter_value=current, base=base)
            raise AllocationFailed(f"Counter update for {partition_key}/{period} did not apply")

        if persisted - base != count:
            log.error("Counter values inconsistent", base=base, persisted=persisted)
            raise AllocationFailed(
                f"Counter update for {partition_key}/{period} is inconsistent: base={base}, new={persisted}"
            )

        start = base + 1
        log.info(
            "Allocated running numbers",
            start=start,
            end=persisted,
            counter_before=current,
            observed_floor=floor,
        )
        return start

    async def allocate_range(self, partition_key: str, period: int, count: int) -> range:
        """Like allocate_block(), but returns the reserved numbers as a range (empty for count 0)."""
        start = await self.allocate_block(partition_key, period, count)
        if start is None:
            return range(0)
        return range(start, start + count)

    async def reconcile(self, partition_key: str, period: int) -> int:
        """Raise the counter to the highest stored number if it lags behind.

        Must run before items are deleted: numbers that only exist in stored
        rows (imports, manual fixes) would otherwise become issuable again.
        Returns the counter value after reconciliation.

        Raises:
            InvalidArgument: malformed partition key or period
            AllocationFailed: the counter update did not apply, or the row
                lock timed out / deadlocked
        """
        validate_partition_key(partition_key)
        validate_period(period)

        log = logger.bind(partition_key=partition_key, period=period)

        async with self._counter_lock_errors(partition_key, period, log):
            current, floor = await self._lock_counter(partition_key, period, log)
            if floor <= current:
                return current
            persisted = await self.counters.set(partition_key, period, floor, expected=current)

        if persisted != floor:
            log.error("Counter reconciliation did not apply", counter_value=current, persisted=persisted)
            raise AllocationFailed(f"Counter reconciliation for {partition_key}/{period} did not apply")

        log.info("Counter raised to observed floor", counter_before=current, counter_after=persisted)
        return persisted

    async def _lock_counter(self, partition_key: str, period: int, log) -> tuple[int, int]:
        """Ensure and lock the counter row, then read the drift floor. Returns (counter, floor)."""
        await self._apply_lock_timeout()
        await self.counters.get_or_create(partition_key, period)
        current = await self.counters.lock(partition_key, period)
        floor = await self.reconciler.observed_floor(partition_key, period)

        if floor > current:
            log.warning("Counter drift detected", counter_value=current, observed_floor=floor)
        return current, floor

    @asynccontextmanager
    async def _counter_lock_errors(self, partition_key: str, period: int, log) -> AsyncIterator[None]:
        """Map row-lock timeouts and deadlocks to AllocationFailed."""
        try:
            yield
        except (OperationalError, DBAPIError) as e:
            txt = str(e).lower()
            if "lock" in txt or "deadlock" in txt:
                log.warning("Counter lock not obtained", error=str(e))
                raise AllocationFailed(
                    f"Counter {partition_key}/{period} is locked by another transaction, retry"
                ) from e
            raise

    async def _apply_lock_timeout(self) -> None:
        """Bound the row-lock wait on PostgreSQL (SET LOCAL lasts until the transaction ends)."""
        if settings.lock_timeout_ms <= 0:
            return
        if self.session.get_bind().dialect.name != "postgresql":
            return
        await self.session.execute(text(f"SET LOCAL lock_timeout = '{int(settings.lock_timeout_ms)}ms'"))
