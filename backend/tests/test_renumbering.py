"""Tests for the stable-renumbering editor (pure classification + single block request)."""

import pytest

from running_numbers.services.exceptions import AllocationFailed
from running_numbers.services.sequencing.renumbering import classify, coerce_declared_number, renumber
from running_numbers.services.sequencing.schemas import ItemInput


class FakeAllocator:
    """Records calls and hands out blocks starting at ``next_start``."""

    def __init__(self, next_start: int = 100):
        self.next_start = next_start
        self.calls: list[int] = []

    async def __call__(self, count: int) -> int | None:
        self.calls.append(count)
        if count == 0:
            return None
        start = self.next_start
        self.next_start += count
        return start


class TestCoerceDeclaredNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (8, 8),
            ("8", 8),
            (" 12 ", 12),
            (8.0, 8),
            (8.5, None),
            ("abc", None),
            ("", None),
            (None, None),
            (True, None),
            ("-3", None),
            ("²", None),
            ("٣", None),
        ],
    )
    def test_values(self, value, expected):
        assert coerce_declared_number(value) == expected


class TestClassify:
    def test_all_new_without_existing_numbers(self):
        items = [ItemInput(article_number="A"), ItemInput(article_number="B", sequence_number=4)]

        result = classify(set(), items)

        assert result.new == items
        assert result.retained == []
        assert result.kept == [None, None]

    def test_retained_and_new(self):
        a = ItemInput(article_number="A", sequence_number=8)
        c = ItemInput(article_number="C")

        result = classify({7, 8}, [a, c])

        assert result.retained == [a]
        assert result.new == [c]
        assert result.new_count == 1

    def test_foreign_number_is_ignored(self):
        """A number outside the submission's own set is treated as new."""
        foreign = ItemInput(article_number="X", sequence_number=3)

        result = classify({7, 8}, [foreign])

        assert result.new == [foreign]
        assert result.kept == [None]

    def test_duplicate_declaration_keeps_first_only(self):
        first = ItemInput(article_number="A", sequence_number=7)
        second = ItemInput(article_number="B", sequence_number=7)

        result = classify({7}, [first, second])

        assert result.kept == [7, None]
        assert result.new == [second]

    def test_works_with_plain_dicts(self):
        result = classify({5}, [{"sequence_number": "5"}, {"sequence_number": None}, {}])

        assert result.kept == [5, None, None]

    def test_non_ascii_digits_count_as_no_number(self):
        result = classify({2}, [{"sequence_number": "²"}])

        assert result.kept == [None]
        assert result.new_count == 1

    def test_custom_number_getter(self):
        result = classify({2}, [("a", 2), ("b", 9)], number_of=lambda item: item[1])

        assert result.kept == [2, None]


class TestRenumber:
    @pytest.mark.asyncio
    async def test_edit_keeps_retained_and_allocates_delta_once(self):
        """Existing {7, 8}: keep A (8), drop B (7), add C -> A stays 8, C gets a fresh number."""
        allocator = FakeAllocator(next_start=9)
        a = ItemInput(article_number="A", sequence_number=8)
        c = ItemInput(article_number="C")

        numbered = await renumber({7, 8}, [a, c], allocator)

        assert numbered == [(a, 8), (c, 9)]
        assert allocator.calls == [1]

    @pytest.mark.asyncio
    async def test_new_items_get_range_in_proposed_order(self):
        allocator = FakeAllocator(next_start=20)
        items = [
            ItemInput(article_number="N1"),
            ItemInput(article_number="K", sequence_number=2),
            ItemInput(article_number="N2", sequence_number=999),
            ItemInput(article_number="N3"),
        ]

        numbered = await renumber({1, 2}, items, allocator)

        assert [n for _, n in numbered] == [20, 2, 21, 22]
        assert allocator.calls == [3]

    @pytest.mark.asyncio
    async def test_nothing_new_requests_empty_block(self):
        allocator = FakeAllocator()
        items = [ItemInput(sequence_number=1), ItemInput(sequence_number=2)]

        numbered = await renumber({1, 2, 3}, items, allocator)

        assert [n for _, n in numbered] == [1, 2]
        assert allocator.calls == [0]

    @pytest.mark.asyncio
    async def test_empty_proposal(self):
        allocator = FakeAllocator()

        assert await renumber({1, 2}, [], allocator) == []
        assert allocator.calls == [0]

    @pytest.mark.asyncio
    async def test_missing_block_raises(self):
        async def broken(count: int) -> int | None:
            return None

        with pytest.raises(AllocationFailed):
            await renumber(set(), [ItemInput()], broken)
