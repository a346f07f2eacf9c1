# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/monitor.py

"""Monitor: observes DUT output and fans responses out to subscribers."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from typing import Any, Awaitable, Callable, Union

from . import utils_dv
from .clock import LogicalClock
from .context import RunContext
from .dut import DutInterface
from .errors import BackpressureOverflow, ComponentError, LinkDvError
from .item import Transaction, TransactionKind

SubscriberFn = Callable[[Transaction], Union[None, Awaitable[Any], Any]]


class Subscription:
    """One subscriber with its own bounded buffer and consumer task.

    offer() never waits and never drops: a transaction that finds the buffer
    full is still queued, then BackpressureOverflow is raised. The consumer
    task calls the subscriber for every buffered transaction in order; async
    subscribers are awaited before the next one is delivered.

    A subscriber that raises marks the subscription failed; its consumer
    records the error as the run's fatal and stops.
    """

    def __init__(self, name: str, fn: SubscriberFn, bound: int) -> None:
        if bound <= 0:
            raise ValueError(f"{name}: buffer bound must be > 0, got {bound}")
        self.name = name
        self.fn = fn
        self.bound = bound
        self.queue: asyncio.Queue[Transaction] = asyncio.Queue()
        self.delivered: int = 0
        self.overflowed = False
        self.failed = False
        self._busy = False
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        """Transactions buffered or being processed."""
        return self.queue.qsize() + (1 if self._busy else 0)

    @property
    def live(self) -> bool:
        """True while the consumer can still make progress."""
        return not (self.overflowed or self.failed)

    def offer(self, txn: Transaction) -> None:
        """Buffer txn for the consumer without waiting."""
        full = self.queue.qsize() >= self.bound
        self.queue.put_nowait(txn)
        if full:
            self.overflowed = True
            raise BackpressureOverflow(f"monitor.{self.name}", self.bound)

    def start(self, ctx: RunContext) -> None:
        """Create the consumer task."""
        self._task = asyncio.create_task(self._consume(ctx), name=f"sub.{self.name}")

    async def _consume(self, ctx: RunContext) -> None:
        while True:
            txn = await self.queue.get()
            self._busy = True
            try:
                res = self.fn(txn)
                if inspect.isawaitable(res):
                    await res
                self.delivered += 1
            except LinkDvError as e:
                ctx.record_fatal(e, subscriber=self.name, txn_id=txn.id)
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.failed = True
                ctx.record_fatal(
                    ComponentError(f"subscriber.{self.name}", e),
                    subscriber=self.name,
                    txn_id=txn.id,
                )
                return
            finally:
                self._busy = False
                self.queue.task_done()

    async def close(self) -> None:
        """Cancel the consumer task and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


class Monitor:
    """Reconstructs response transactions from DUT output events.

    The monitor runs as its own task and is a clock participant, so it
    samples every tick regardless of how the driver is paced. Each tick it
    drains dut.observe() until it returns None and publishes one RESPONSE
    transaction per event to every subscriber. Publishing never blocks and
    never drops: an overflowing subscriber buffer is recorded as the run's
    fatal error and the monitor stops. Any other exception from the DUT is
    recorded as a ComponentError.

    Subscribers are plain callables taking a Transaction; coroutine functions
    are awaited by the subscriber's consumer task.

    Example:
        >>> mon = Monitor(ctx, clock, dut, buffer_bound=1024)
        >>> mon.subscribe("sb", scoreboard.check)
        >>> mon.subscribe("cov", ctx.coverage.sample)
        >>> task = mon.start()
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        ctx: RunContext,
        clock: LogicalClock,
        dut: DutInterface,
        buffer_bound: int = 1024,
        participant: str = "mon",
    ) -> None:
        self.ctx = ctx
        self.clock = clock
        self.dut = dut
        self.buffer_bound = buffer_bound
        self.participant = participant
        self.logger = utils_dv.component_logger(participant)
        self.subscriptions: list[Subscription] = []
        self._stop = False
        self._task: asyncio.Task[None] | None = None

    def subscribe(self, name: str, fn: SubscriberFn) -> Subscription:
        """Register a subscriber; must be called before start()."""
        if self._task is not None:
            raise RuntimeError("subscribe() after monitor start")
        if any(s.name == name for s in self.subscriptions):
            raise ValueError(f"subscriber {name!r} already registered")
        sub = Subscription(name, fn, self.buffer_bound)
        self.subscriptions.append(sub)
        return sub

    @property
    def pending(self) -> int:
        """Transactions not yet handled by every subscriber."""
        return sum(s.pending for s in self.subscriptions)

    @property
    def live_pending(self) -> int:
        """Pending transactions of subscribers that can still consume them."""
        return sum(s.pending for s in self.subscriptions if s.live)

    @property
    def running(self) -> bool:
        """True while the sampling task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        """Join the clock and start the sampling and consumer tasks."""
        self.logger.debug("start begin")
        self.clock.join(self.participant)
        for sub in self.subscriptions:
            sub.start(self.ctx)
        self._task = asyncio.create_task(self._run(), name=self.participant)
        self.logger.debug("start end")
        return self._task

    def stop(self) -> None:
        """Ask the monitor to exit after sampling the next tick."""
        self._stop = True

    async def join(self) -> None:
        """Wait for the sampling task to exit."""
        if self._task is not None:
            await self._task

    async def close(self) -> None:
        """Cancel every subscriber consumer and wait for them."""
        for sub in self.subscriptions:
            await sub.close()

    async def _run(self) -> None:
        try:
            while True:
                now = await self.clock.next_tick(self.participant)
                if self.sample(now):
                    # consumers take this tick's transactions before the next sample
                    await asyncio.sleep(0)
                if self._stop or self.ctx.aborted:
                    break
        except LinkDvError as e:
            self.ctx.record_fatal(e, tick=self.clock.now)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.ctx.record_fatal(ComponentError("dut", e), tick=self.clock.now)
        finally:
            self.clock.leave(self.participant)
            self.logger.debug("run end at tick %d", self.clock.now)

    def sample(self, now: int) -> int:
        """Drain this tick's DUT output events; return how many were seen.

        Every subscriber is offered each transaction before an overflow is
        raised, and no further events are taken from the DUT after one.
        """
        seen = 0
        while True:
            payload = self.dut.observe()
            if payload is None:
                break
            txn = Transaction(
                id=self.ctx.ids.next_id(),
                payload=payload,
                kind=TransactionKind.RESPONSE,
                timestamp=now,
            )
            self.ctx.counters.add("observed")
            seen += 1
            overflow: BackpressureOverflow | None = None
            for sub in self.subscriptions:
                try:
                    sub.offer(txn)
                except BackpressureOverflow as e:
                    overflow = overflow or e
            if overflow is not None:
                raise overflow
        return seen
