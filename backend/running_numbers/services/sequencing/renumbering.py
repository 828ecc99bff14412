"""Stable renumbering of a submission's items on edit.

Items that keep a number they already had stay untouched. Only the
remaining items get fresh numbers, taken from one block allocation.
"""

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from running_numbers.services.exceptions import AllocationFailed

T = TypeVar("T")

AllocateFn = Callable[[int], Awaitable[int | None]]
NumberGetter = Callable[[Any], object]


def _declared_attr(item: Any) -> object:
    if isinstance(item, dict):
        return item.get("sequence_number")
    return getattr(item, "sequence_number", None)


def coerce_declared_number(value: object) -> int | None:
    """Interpret a client-declared running number.

    Accepts ints and integral strings or floats (form payloads send "8" or
    8.0). Anything else, including bools, counts as "no number".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdecimal():
            return int(text)
    return None


@dataclass
class Classification(Generic[T]):
    """Result of classify(): per proposed item, the number it keeps (or None if it needs a new one)."""

    items: list[T]
    kept: list[int | None]
    retained: list[T] = field(default_factory=list)
    new: list[T] = field(default_factory=list)

    @property
    def new_count(self) -> int:
        return len(self.new)


def classify(
    existing_numbers: Iterable[int],
    proposed_items: Sequence[T],
    *,
    number_of: NumberGetter = _declared_attr,
) -> Classification[T]:
    """Split proposed items into retained and new.

    An item is retained when it declares a number that belongs to this
    submission's existing numbers. A declared number outside that set
    (fabricated, or belonging to another submission) is ignored. If two
    items declare the same existing number, only the first keeps it.
    """
    available = set(existing_numbers)
    result: Classification[T] = Classification(items=list(proposed_items), kept=[])

    for item in result.items:
        declared = coerce_declared_number(number_of(item))
        if declared is not None and declared in available:
            available.discard(declared)
            result.kept.append(declared)
            result.retained.append(item)
        else:
            result.kept.append(None)
            result.new.append(item)

    return result


async def renumber(
    existing_numbers: Iterable[int],
    proposed_items: Sequence[T],
    allocate: AllocateFn,
    *,
    number_of: NumberGetter = _declared_attr,
) -> list[tuple[T, int]]:
    """Assign final running numbers to ``proposed_items`` in their given order.

    ``allocate(n)`` is called exactly once with the number of new items and
    must return the first number of a contiguous block (None for n == 0),
    typically ``partial(allocator.allocate_block, partition_key, period)``.

    Returns:
        (item, sequence_number) pairs in proposed order
    """
    classification = classify(existing_numbers, proposed_items, number_of=number_of)
    start = await allocate(classification.new_count)

    if classification.new_count and start is None:
        raise AllocationFailed(f"No block returned for {classification.new_count} new items")

    cursor = start or 0
    numbered: list[tuple[T, int]] = []
    for item, kept in zip(classification.items, classification.kept, strict=True):
        if kept is not None:
            numbered.append((item, kept))
        else:
            numbered.append((item, cursor))
            cursor += 1
    return numbered
