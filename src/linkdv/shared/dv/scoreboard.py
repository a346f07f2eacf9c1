# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/scoreboard.py

"""Expected queue and in-order scoreboard."""

from __future__ import annotations

import threading
from collections import deque
from typing import TYPE_CHECKING, Callable

from . import utils_dv
from .errors import BackpressureOverflow, Mismatch, MissingResponse, SpuriousResponse
from .item import ExpectedEntry, Transaction

if TYPE_CHECKING:
    from .context import RunContext


class ExpectedQueue:
    """Bounded FIFO of reference-model predictions.

    The driver is the only writer and the scoreboard the only reader; every
    access goes through one lock. push() on a full queue raises
    BackpressureOverflow instead of waiting.
    """

    def __init__(self, bound: int, name: str = "expected_queue") -> None:
        if bound <= 0:
            raise ValueError(f"{name}: bound must be > 0, got {bound}")
        self.name = name
        self.bound = bound
        self._q: deque[ExpectedEntry] = deque()
        self._lock = threading.Lock()
        self.high_water: int = 0

    def push(self, entry: ExpectedEntry) -> None:
        """Append an entry in issue order."""
        with self._lock:
            if len(self._q) >= self.bound:
                raise BackpressureOverflow(self.name, self.bound)
            self._q.append(entry)
            self.high_water = max(self.high_water, len(self._q))

    def pop(self) -> ExpectedEntry | None:
        """Remove and return the oldest entry, or None when empty."""
        with self._lock:
            return self._q.popleft() if self._q else None

    def drain(self) -> list[ExpectedEntry]:
        """Remove and return every remaining entry, oldest first."""
        with self._lock:
            out = list(self._q)
            self._q.clear()
            return out

    def last_due(self) -> int | None:
        """due_tick of the newest entry, or None when empty."""
        with self._lock:
            return self._q[-1].due_tick if self._q else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._q)


class Scoreboard:
    """Pairs observed responses with predictions in strict FIFO order.

    Each observed response consumes exactly one expected entry, the oldest.
    This relies on the DUT answering in stimulus order; a reordering DUT
    shows up as mismatches. An id-keyed map of outstanding entries would be
    the replacement for DUTs that legitimately reorder.

    Outcomes (all recorded in the run's failure log, none raised):
        equal payloads: pass
        unequal payloads: Mismatch
        response before due_tick (only with check_latency): Mismatch
        no outstanding entry: SpuriousResponse
        entry never answered (flush_unmatched at end of run): MissingResponse

    Statistics:
        checked: Responses paired with an expected entry
        passed: Pairs that compared equal
        spurious: Responses with no outstanding entry

    Reference:
        C.E. Cummings, "OVM/UVM Scoreboards - Fundamental Architectures,"
        SNUG 2013 (Silicon Valley) - in-order scoreboard
    """

    def __init__(
        self,
        ctx: RunContext,
        check_latency: bool = False,
        now: Callable[[], int] | None = None,
        name: str = "sb",
    ) -> None:
        self.ctx = ctx
        self.check_latency = check_latency
        self._now = now if now is not None else (lambda: 0)
        self.logger = utils_dv.component_logger(name)
        self.checked: int = 0
        self.passed: int = 0
        self.spurious: int = 0

    @property
    def failed(self) -> int:
        """Paired responses that did not pass."""
        return self.checked - self.passed

    def check(self, observed: Transaction) -> bool:
        """Compare one observed response against the oldest prediction."""
        tick = self._now()
        exp = self.ctx.expected.pop()
        if exp is None:
            self.spurious += 1
            self.ctx.counters.add("spurious")
            self.ctx.record_failure(
                SpuriousResponse(
                    observed_id=observed.id, actual=observed.payload, tick=tick
                )
            )
            return False

        self.checked += 1
        self.ctx.counters.add("checked")
        failure: Mismatch | None = None
        if observed.payload != exp.payload:
            failure = Mismatch(
                txn_id=exp.txn_id,
                expected=exp.payload,
                actual=observed.payload,
                tick=tick,
            )
        elif self.check_latency and observed.timestamp < exp.due_tick:
            failure = Mismatch(
                txn_id=exp.txn_id,
                expected=exp.payload,
                actual=observed.payload,
                tick=tick,
                reason=f"early: observed at {observed.timestamp}, due {exp.due_tick}",
            )

        if failure is not None:
            self.ctx.record_failure(failure)
            return False
        self.passed += 1
        self.logger.debug(
            "PASS exp=%s act=%s checked=%d", exp.to_dict(), observed, self.checked
        )
        return True

    def flush_unmatched(self) -> int:
        """Record a MissingResponse for every prediction never answered."""
        tick = self._now()
        left = self.ctx.expected.drain()
        for exp in left:
            self.ctx.record_failure(
                MissingResponse(txn_id=exp.txn_id, expected=exp.payload, tick=tick)
            )
        return len(left)

    def report(self) -> None:
        """Log the pass/fail banner."""
        failed = self.failed
        if self.checked and failed == 0 and self.spurious == 0:
            self.logger.info(
                "*** TEST PASSED - %d ran, %d passed ***", self.checked, self.passed
            )
        else:
            self.logger.error(
                "*** TEST FAILED - %d ran, %d passed, %d failed, %d spurious ***",
                self.checked,
                self.passed,
                failed,
                self.spurious,
            )
