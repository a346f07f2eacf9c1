# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/clock.py

"""Shared discrete logical clock."""

from __future__ import annotations

import asyncio
from typing import Callable

from . import utils_dv

TickHook = Callable[[int], None]


class LogicalClock:
    """Monotonic tick counter shared by the driver and monitor processes.

    The clock replaces wall-clock or simulator time with a barrier: every
    registered participant (the driver side and the monitor) must arrive at
    next_tick() before the tick advances. On each advance the tick hooks run
    first (this is where the DUT model steps its internal state), then every
    waiter resumes with the new tick value. Processes never poll; each
    suspension point is a wait on the next tick.

    Observers that must not hold the clock back (subscriber consumers, for
    example) call next_tick() without a name and simply resume on the next
    advance.

    Attributes:
        now: Current tick, starting at 0

    Example:
        >>> clock = LogicalClock()
        >>> clock.on_tick(dut.tick)
        >>> clock.join("drv")
        >>> clock.join("mon")
        >>> # in each process
        >>> await clock.next_tick("drv")
    """

    def __init__(self, name: str = "clock") -> None:
        self.name = name
        self.logger = utils_dv.component_logger(name)
        self.now: int = 0
        self._participants: set[str] = set()
        self._arrived: set[str] = set()
        self._waiters: list[asyncio.Future[int]] = []
        self._hooks: list[TickHook] = []

    @property
    def participants(self) -> frozenset[str]:
        """Names of the processes currently holding the clock."""
        return frozenset(self._participants)

    @property
    def pending_waiters(self) -> int:
        """Number of suspended next_tick() calls."""
        return sum(1 for f in self._waiters if not f.done())

    def on_tick(self, hook: TickHook) -> None:
        """Register a hook called with the new tick on every advance."""
        self._hooks.append(hook)

    def join(self, name: str) -> None:
        """Register a participant; the clock waits for it on every tick."""
        if name in self._participants:
            raise ValueError(f"{self.name}: participant {name!r} already joined")
        self._participants.add(name)
        self.logger.debug("join %s at tick %d", name, self.now)

    def leave(self, name: str) -> None:
        """Unregister a participant, releasing the tick if it was the last one."""
        self._participants.discard(name)
        self._arrived.discard(name)
        self.logger.debug("leave %s at tick %d", name, self.now)
        self._maybe_advance()

    async def next_tick(self, name: str | None = None) -> int:
        """Suspend until the next tick and return its value.

        A named call counts as that participant's arrival at the barrier.
        """
        if name is not None and name not in self._participants:
            raise ValueError(f"{self.name}: {name!r} has not joined")
        fut: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        if name is not None:
            self._arrived.add(name)
            self._maybe_advance()
        return await fut

    async def wait_ticks(self, n: int, name: str | None = None) -> int:
        """Suspend for n ticks (n <= 0 returns immediately)."""
        for _ in range(max(0, n)):
            await self.next_tick(name)
        return self.now

    def _maybe_advance(self) -> None:
        if self._participants and self._arrived >= self._participants:
            self._advance()

    def _advance(self) -> None:
        self.now += 1
        self._arrived.clear()
        waiters, self._waiters = self._waiters, []
        try:
            for hook in self._hooks:
                hook(self.now)
        finally:
            for fut in waiters:
                if not fut.done():
                    fut.set_result(self.now)
