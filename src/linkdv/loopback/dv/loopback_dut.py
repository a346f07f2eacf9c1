# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/loopback/dv/loopback_dut.py

"""Transaction-level loopback DUT with optional fault injection.

Each applied payload comes back `latency` ticks later (never earlier than
the next tick), in order. The DUT accepts a stimulus only on ticks where it
is ready: every tick by default, or every `ready_period`-th tick to model
back-pressure.

Fault injection (all off by default):

* corrupt_mask: XOR applied to every response payload
* drop_every: drop every Nth response
* duplicate_every: emit every Nth response twice
* reorder: swap each pair of consecutive responses
* spurious_ticks: emit `spurious_payload` unprompted on these ticks
"""

from __future__ import annotations

from collections import deque
from typing import Iterable

from linkdv.shared.dv import utils_dv


class LoopbackDut:  # pylint: disable=too-many-instance-attributes
    """Loopback DUT model implementing the DutInterface contract."""

    # ------------------------------------------------------------------
    # Construction / configuration
    # ------------------------------------------------------------------

    def __init__(  # pylint: disable=too-many-arguments
        self,
        latency: int = 1,
        ready_period: int = 1,
        width: int = 8,
        *,
        corrupt_mask: int = 0,
        drop_every: int = 0,
        duplicate_every: int = 0,
        reorder: bool = False,
        spurious_ticks: Iterable[int] = (),
        spurious_payload: int = 0xA5,
    ) -> None:
        if latency < 0:
            raise ValueError(f"latency must be >= 0, got {latency}")
        if ready_period < 1:
            raise ValueError(f"ready_period must be >= 1, got {ready_period}")
        self.logger = utils_dv.component_logger("dut.loopback")
        self.latency = latency
        self.ready_period = ready_period
        self.width = width
        self.mask = utils_dv.payload_mask(width)
        self.corrupt_mask = corrupt_mask & self.mask
        self.drop_every = drop_every
        self.duplicate_every = duplicate_every
        self.reorder = reorder
        self.spurious_ticks = frozenset(spurious_ticks)
        self.spurious_payload = utils_dv.to_payload(spurious_payload, width)

        # Internal state
        self.now: int = 0
        self._in_flight: deque[tuple[int, int]] = deque()  # (due tick, payload)
        self._out: deque[int] = deque()
        self._held: int | None = None
        self._held_since: int = 0

        # Counters for debug/statistics
        self.applied: int = 0
        self.released: int = 0
        self.dropped: int = 0

    # ------------------------------------------------------------------
    # DutInterface
    # ------------------------------------------------------------------

    def ready(self) -> bool:
        return self.now % self.ready_period == 0

    def apply(self, payload: int) -> bool:
        if not self.ready():
            raise RuntimeError(f"apply at tick {self.now} while not ready")
        utils_dv.to_payload(payload, self.width)
        self.applied += 1
        due = self.now + max(1, self.latency)
        self._in_flight.append((due, payload))
        self.logger.debug("apply 0x%x at %d, due %d", payload, self.now, due)
        return self.ready_period == 1

    def observe(self) -> int | None:
        return self._out.popleft() if self._out else None

    def tick(self, now: int) -> None:
        self.now = now
        while self._in_flight and self._in_flight[0][0] <= now:
            _, payload = self._in_flight.popleft()
            self._release(payload)
        # An odd response left over once nothing is in flight goes out alone
        if self._held is not None and self._held_since < now and not self._in_flight:
            self._out.append(self._held)
            self._held = None
        if now in self.spurious_ticks:
            self._out.append(self.spurious_payload)

    def idle(self) -> bool:
        return not self._in_flight and not self._out and self._held is None

    # ------------------------------------------------------------------
    # Faults
    # ------------------------------------------------------------------

    def _release(self, payload: int) -> None:
        self.released += 1
        n = self.released
        if self.drop_every and n % self.drop_every == 0:
            self.dropped += 1
            self.logger.debug("drop response %d (0x%x)", n, payload)
            return
        value = (payload ^ self.corrupt_mask) & self.mask
        copies = 2 if self.duplicate_every and n % self.duplicate_every == 0 else 1
        for _ in range(copies):
            self._emit(value)

    def _emit(self, value: int) -> None:
        if not self.reorder:
            self._out.append(value)
        elif self._held is None:
            self._held = value
            self._held_since = self.now
        else:
            self._out.append(value)
            self._out.append(self._held)
            self._held = None
