# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/test_clock.py

"""Tests for the logical clock barrier."""

from __future__ import annotations

import asyncio

import pytest

from .clock import LogicalClock


def test_tick_waits_for_every_participant() -> None:
    async def main() -> None:
        clock = LogicalClock()
        hooks: list[int] = []
        clock.on_tick(hooks.append)
        clock.join("a")
        clock.join("b")

        first = asyncio.create_task(clock.next_tick("a"))
        await asyncio.sleep(0)
        assert clock.now == 0
        assert clock.pending_waiters == 1

        assert await clock.next_tick("b") == 1
        assert await first == 1
        assert hooks == [1]

    asyncio.run(main())


def test_hooks_run_before_waiters_resume() -> None:
    async def main() -> None:
        clock = LogicalClock()
        state = {"stepped": 0}
        clock.on_tick(lambda now: state.update(stepped=now))
        clock.join("drv")

        async def watcher() -> int:
            await clock.next_tick()
            return state["stepped"]

        task = asyncio.create_task(watcher())
        await asyncio.sleep(0)
        await clock.next_tick("drv")
        assert await task == 1

    asyncio.run(main())


def test_passive_waiters_do_not_hold_the_clock() -> None:
    async def main() -> None:
        clock = LogicalClock()
        clock.join("drv")
        passive = asyncio.create_task(clock.wait_ticks(2))
        await asyncio.sleep(0)
        for _ in range(3):
            await clock.next_tick("drv")
            await asyncio.sleep(0)
        assert clock.now == 3
        assert await passive == 2

    asyncio.run(main())


def test_leave_releases_the_barrier() -> None:
    async def main() -> None:
        clock = LogicalClock()
        clock.join("drv")
        clock.join("mon")
        waiting = asyncio.create_task(clock.next_tick("drv"))
        await asyncio.sleep(0)
        assert not waiting.done()
        clock.leave("mon")
        assert await waiting == 1
        assert clock.participants == frozenset({"drv"})

    asyncio.run(main())


def test_join_and_arrival_are_checked() -> None:
    async def main() -> None:
        clock = LogicalClock()
        clock.join("drv")
        with pytest.raises(ValueError):
            clock.join("drv")
        with pytest.raises(ValueError):
            await clock.next_tick("ghost")
        assert clock.pending_waiters == 0

    asyncio.run(main())


def test_wait_ticks_non_positive_returns_immediately() -> None:
    async def main() -> None:
        clock = LogicalClock()
        assert await clock.wait_ticks(0) == 0
        assert await clock.wait_ticks(-2) == 0

    asyncio.run(main())
