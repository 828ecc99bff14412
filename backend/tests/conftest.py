"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database file per test (aiosqlite), schema from SQLModel metadata
- Session maker / session fixtures
- Helpers to read counters and to insert items that bypass the allocator
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select

from running_numbers.models import SequenceCounter, SequencedItem, Submission
from running_numbers.utils.keyed_lock import KeyedLock

PARTITION = "F01"
PERIOD = 2025


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """Engine on a throwaway SQLite file, tables created from model metadata."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'running_numbers.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def locks() -> KeyedLock:
    """Private lock map so tests never share state through the module-level one."""
    return KeyedLock()


@pytest.fixture
def counter_value(
    session_maker: async_sessionmaker[AsyncSession],
) -> Callable[[str, int], Awaitable[int | None]]:
    """Read a counter's committed value in a separate session (None if the row does not exist)."""

    async def read(partition_key: str = PARTITION, period: int = PERIOD) -> int | None:
        async with session_maker() as s:
            result = await s.execute(
                select(SequenceCounter.current_value).where(
                    SequenceCounter.partition_key == partition_key,
                    SequenceCounter.period == period,
                )
            )
            return result.scalar_one_or_none()

    return read


@pytest.fixture
def import_items(
    session_maker: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[str]]:
    """Insert a submission with given numbers directly, the way a bulk import would (no allocator)."""

    async def insert(numbers: list[int], partition_key: str = PARTITION, period: int = PERIOD) -> str:
        async with session_maker() as s:
            submission = Submission(partition_key=partition_key, period=period, effective_date=date(period, 1, 15))
            s.add(submission)
            await s.flush()
            for n in numbers:
                s.add(
                    SequencedItem(
                        submission_id=submission.id,
                        partition_key=partition_key,
                        period=period,
                        sequence_number=n,
                        article_number=f"IMPORT-{n}",
                    )
                )
            await s.commit()
            return submission.id

    return insert
