"""Utility functions and helpers."""

from running_numbers.utils.datetime_utils import current_period, period_from_effective_date, to_local_timezone
from running_numbers.utils.keyed_lock import KeyedLock, LockUnavailable, sequence_locks

__all__ = [
    "KeyedLock",
    "LockUnavailable",
    "current_period",
    "period_from_effective_date",
    "sequence_locks",
    "to_local_timezone",
]
