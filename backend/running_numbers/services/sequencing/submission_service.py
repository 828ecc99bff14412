"""Submission sequencing service.

Creates submissions with numbered items and replaces item sets on edit while
keeping already issued running numbers stable. Every mutating method is one
unit of work: it holds the in-process lock for the submission's
(partition_key, period), commits on success and rolls back on any error, so
a counter advance never outlives a failed item insert.
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from functools import partial

import structlog
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select
from ulid import ULID

from running_numbers.config import settings
from running_numbers.models.submission import SEQUENCED_ITEM_NUMBER_CONSTRAINT, SequencedItem, Submission
from running_numbers.services.exceptions import AllocationFailed, ConstraintViolation, SubmissionNotFound
from running_numbers.services.sequencing.allocator import SequenceAllocator, validate_partition_key
from running_numbers.services.sequencing.renumbering import renumber
from running_numbers.services.sequencing.schemas import ItemInput, SequenceSummary
from running_numbers.utils.datetime_utils import parse_effective_date, period_from_effective_date
from running_numbers.utils.keyed_lock import KeyedLock, LockUnavailable, sequence_locks

logger = structlog.get_logger(__name__)


class SubmissionSequencingService:
    """Service for numbering submission items.

    Note: This service commits. The calling API should not wrap it in a
    transaction of its own and should map service exceptions to responses.
    AllocationFailed may be retried with utils.allocation_retry.
    """

    def __init__(self, session: AsyncSession, *, locks: KeyedLock = sequence_locks):
        self.session = session
        self.locks = locks
        self.allocator = SequenceAllocator(session)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_submission(self, submission_id: str) -> Submission:
        """Get submission by id."""
        try:
            ULID.from_str(submission_id)
        except ValueError as e:
            raise SubmissionNotFound(f"Submission {submission_id} not found") from e

        result = await self.session.execute(select(Submission).where(Submission.id == submission_id))
        submission = result.scalars().first()
        if not submission:
            raise SubmissionNotFound(f"Submission {submission_id} not found")
        return submission

    async def list_items(self, submission_id: str) -> list[SequencedItem]:
        """Items of a submission ordered by running number."""
        result = await self.session.execute(
            select(SequencedItem)
            .where(SequencedItem.submission_id == submission_id)
            .order_by(col(SequencedItem.sequence_number))
        )
        return list(result.scalars().all())

    async def existing_numbers(self, submission_id: str) -> set[int]:
        """Running numbers currently persisted for a submission."""
        result = await self.session.execute(
            select(SequencedItem.sequence_number).where(SequencedItem.submission_id == submission_id)
        )
        return {int(n) for n in result.scalars().all() if n is not None}

    async def list_sequence_summaries(
        self,
        *,
        partition_key: str | None = None,
        period: int | None = None,
    ) -> list[SequenceSummary]:
        """Item count and lowest running number per submission, newest first."""
        statement = (
            select(
                Submission.id,
                Submission.partition_key,
                Submission.period,
                func.count(col(SequencedItem.id)),
                func.min(SequencedItem.sequence_number),
            )
            .join(SequencedItem, col(SequencedItem.submission_id) == col(Submission.id), isouter=True)
            .group_by(
                col(Submission.id),
                col(Submission.partition_key),
                col(Submission.period),
                col(Submission.created_at),
            )
            .order_by(col(Submission.created_at).desc())
        )
        if partition_key is not None:
            statement = statement.where(Submission.partition_key == partition_key)
        if period is not None:
            statement = statement.where(Submission.period == period)

        result = await self.session.execute(statement)
        return [
            SequenceSummary(
                submission_id=row[0],
                partition_key=row[1],
                period=row[2],
                item_count=row[3] or 0,
                min_sequence_number=row[4],
            )
            for row in result.all()
        ]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create_submission(
        self,
        partition_key: str,
        items: Sequence[ItemInput],
        *,
        effective_date: date | datetime | str | None = None,
    ) -> Submission:
        """Create a submission and number all of its items in one block.

        The period is the year of ``effective_date`` (current year if missing
        or invalid) and stays fixed for the life of the submission. Numbers
        sent by the client are ignored: a new submission owns no numbers yet.
        """
        validate_partition_key(partition_key)
        parsed_date = parse_effective_date(effective_date)
        period = period_from_effective_date(parsed_date)

        async with self._unit_of_work(partition_key, period):
            submission = Submission(partition_key=partition_key, period=period, effective_date=parsed_date)
            self.session.add(submission)
            await self.session.flush()

            numbered = await renumber(
                set(), items, partial(self.allocator.allocate_block, partition_key, period)
            )
            await self._insert_items(submission, numbered)

        logger.info(
            "Created submission",
            submission_id=submission.id,
            partition_key=partition_key,
            period=period,
            item_count=len(items),
        )
        return submission

    async def replace_items(
        self,
        submission_id: str,
        items: Sequence[ItemInput],
        *,
        effective_date: date | datetime | str | None = None,
    ) -> list[SequencedItem]:
        """Replace a submission's item set, keeping numbers of retained items.

        Items declaring one of the submission's current numbers keep it. All
        other items get fresh numbers from a single block. Dropped numbers are
        burned, never reissued.

        ``effective_date`` only updates the stored date. The submission keeps
        the period it was created with.
        """
        submission = await self.get_submission(submission_id)
        partition_key, period = submission.partition_key, submission.period

        async with self._unit_of_work(partition_key, period):
            existing = await self.existing_numbers(submission.id)

            # Allocate and reconcile before deleting so the drift floor still sees this submission's items
            numbered = await renumber(
                existing, items, partial(self.allocator.allocate_block, partition_key, period)
            )
            await self.allocator.reconcile(partition_key, period)

            await self.session.execute(
                delete(SequencedItem)
                .where(col(SequencedItem.submission_id) == submission.id)
                .execution_options(synchronize_session=False)
            )

            if effective_date is not None:
                self._update_effective_date(submission, effective_date)
            submission.updated_at = datetime.now(UTC)

            new_items = await self._insert_items(submission, numbered)

        retained = sum(1 for _, n in numbered if n in existing)
        logger.info(
            "Replaced submission items",
            submission_id=submission.id,
            partition_key=partition_key,
            period=period,
            retained=retained,
            renumbered=len(numbered) - retained,
            dropped=len(existing) - retained,
        )
        return new_items

    async def delete_submission(self, submission_id: str) -> None:
        """Delete a submission and its items. Their numbers are never reused."""
        submission = await self.get_submission(submission_id)

        async with self._unit_of_work(submission.partition_key, submission.period):
            await self.allocator.reconcile(submission.partition_key, submission.period)
            await self.session.execute(
                delete(SequencedItem)
                .where(col(SequencedItem.submission_id) == submission.id)
                .execution_options(synchronize_session=False)
            )
            await self.session.execute(
                delete(Submission)
                .where(col(Submission.id) == submission.id)
                .execution_options(synchronize_session=False)
            )
            self.session.expunge(submission)

        logger.info("Deleted submission", submission_id=submission_id)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _unit_of_work(self, partition_key: str, period: int) -> AsyncIterator[None]:
        try:
            async with self.locks.hold(partition_key, period, timeout=settings.allocation_lock_timeout):
                try:
                    yield
                    await self.session.commit()
                except Exception:
                    await self.session.rollback()
                    raise
        except LockUnavailable as e:
            logger.warning("Sequence lock not acquired", partition_key=partition_key, period=period)
            raise AllocationFailed(f"Numbering for {partition_key}/{period} is busy, retry") from e

    async def _insert_items(
        self,
        submission: Submission,
        numbered: Sequence[tuple[ItemInput, int]],
    ) -> list[SequencedItem]:
        rows = [
            item.to_model(
                submission_id=submission.id,
                partition_key=submission.partition_key,
                period=submission.period,
                sequence_number=number,
            )
            for item, number in numbered
        ]
        self.session.add_all(rows)

        try:
            await self.session.flush()
        except IntegrityError as e:
            constraint = SEQUENCED_ITEM_NUMBER_CONSTRAINT.name
            logger.error(
                "Running number constraint violated",
                submission_id=submission.id,
                partition_key=submission.partition_key,
                period=submission.period,
                numbers=[n for _, n in numbered],
                error=str(e),
            )
            raise ConstraintViolation(
                f"Running numbers for {submission.partition_key}/{submission.period} collide with stored items",
                constraint=constraint,
            ) from e

        return rows

    def _update_effective_date(self, submission: Submission, value: date | datetime | str) -> None:
        parsed = parse_effective_date(value)
        submission.effective_date = parsed
        derived = period_from_effective_date(parsed)
        if derived != submission.period:
            logger.info(
                "Effective date moved to another year, keeping original period",
                submission_id=submission.id,
                period=submission.period,
                effective_period=derived,
            )
