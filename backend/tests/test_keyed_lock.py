"""Tests for the in-process keyed lock."""

import asyncio

import pytest

from running_numbers.utils.keyed_lock import KeyedLock, LockUnavailable


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("F01", 2025):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        async with locks.hold("F01", 2025):
            async with locks.hold("F02", 2025, timeout=0.1):
                assert locks.locked("F01", 2025)
                assert locks.locked("F02", 2025)
            async with locks.hold("F01", 2024, timeout=0.1):
                pass

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        locks = KeyedLock()

        async with locks.hold("F01", 2025):
            with pytest.raises(LockUnavailable):
                async with locks.hold("F01", 2025, timeout=0.02):
                    pass

    @pytest.mark.asyncio
    async def test_entries_are_released(self):
        locks = KeyedLock()

        async with locks.hold("F01", 2025):
            assert len(locks) == 1
        assert len(locks) == 0

        async with locks.hold("F01", 2025):
            with pytest.raises(LockUnavailable):
                async with locks.hold("F01", 2025, timeout=0.01):
                    pass
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.locked("F01", 2025)

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("F01", 2025):
                raise RuntimeError("boom")

        async with locks.hold("F01", 2025, timeout=0.01):
            pass
