"""Retry utilities for running-number allocation using tenacity."""

from dataclasses import dataclass

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from running_numbers.config import settings
from running_numbers.services.exceptions import AllocationFailed


@dataclass
class AllocationRetryConfig:
    """Configuration for allocation retries with exponential backoff."""

    max_attempts: int = settings.allocation_retry_attempts
    min_wait: float = 0.05
    max_wait: float = 1.0
    multiplier: float = 0.1


def get_allocation_retrying(config: AllocationRetryConfig | None = None) -> AsyncRetrying:
    """Get configured AsyncRetrying for AllocationFailed.

    Each attempt must redo the complete unit of work in a fresh transaction.
    The failed attempt has already been rolled back, so no numbers leak.

    Usage:
        async for attempt in get_allocation_retrying():
            with attempt:
                async with async_session_maker() as session:
                    service = SubmissionSequencingService(session)
                    await service.replace_items(submission_id, items)

    Args:
        config: Optional retry configuration. Uses defaults if not provided.

    Returns:
        AsyncRetrying instance configured for AllocationFailed retries.
    """
    cfg = config or AllocationRetryConfig()
    return AsyncRetrying(
        retry=retry_if_exception_type(AllocationFailed),
        stop=stop_after_attempt(cfg.max_attempts),
        wait=wait_exponential(
            multiplier=cfg.multiplier,
            min=cfg.min_wait,
            max=cfg.max_wait,
        ),
        reraise=True,
    )
