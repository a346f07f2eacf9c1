# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/context.py

"""Per-run state shared by the verification components."""

from __future__ import annotations

import threading
from typing import Any

from . import utils_dv
from .coverage import CoverageTracker
from .errors import CheckFailure, LinkDvError
from .item import IdAllocator
from .scoreboard import ExpectedQueue

COUNTER_NAMES: tuple[str, ...] = ("driven", "issued", "observed", "checked", "spurious")


class Counters:
    """Named run counters with atomic increments."""

    def __init__(self, names: tuple[str, ...] = COUNTER_NAMES) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, int] = {n: 0 for n in names}

    def add(self, name: str, n: int = 1) -> int:
        """Increment a counter and return its new value."""
        with self._lock:
            self._values[name] += n
            return self._values[name]

    def __getitem__(self, name: str) -> int:
        with self._lock:
            return self._values[name]

    def snapshot(self) -> dict[str, int]:
        """Return a consistent copy of every counter."""
        with self._lock:
            return dict(self._values)


class RunContext:  # pylint: disable=too-many-instance-attributes
    """Everything one run owns: counters, queues, coverage and the failure log.

    One context is created per run and handed by reference to the driver,
    monitor and scoreboard. Each shared structure has a single mutation
    point guarded by its own lock; nothing lives at module level, so
    independent runs in one process never interfere.

    Attributes:
        counters: driven, issued, observed, checked and spurious totals
        expected: Bounded expected queue (driver writes, scoreboard reads)
        coverage: The run's coverage tracker
        ids: Transaction id allocator shared by sequencer and monitor
        failures: Recorded check failures, in the order they happened
        fatal: First fatal error, if any
        fatal_state: Last-known state captured when the fatal error hit
    """

    def __init__(
        self,
        coverage: CoverageTracker,
        expected_queue_bound: int,
        ids: IdAllocator | None = None,
    ) -> None:
        self.logger = utils_dv.component_logger("ctx")
        self.counters = Counters()
        self.expected = ExpectedQueue(expected_queue_bound)
        self.coverage = coverage
        self.ids = ids if ids is not None else IdAllocator()
        self.failures: list[CheckFailure] = []
        self.fatal: LinkDvError | None = None
        self.fatal_state: dict[str, Any] = {}
        self._lock = threading.Lock()

    def record_failure(self, failure: CheckFailure) -> None:
        """Append a non-fatal failure to the log."""
        with self._lock:
            self.failures.append(failure)
        self.logger.error("%s: %s", failure.kind.upper(), failure)

    def record_fatal(self, err: LinkDvError, **state: Any) -> bool:
        """Record the run's fatal error; only the first one is kept."""
        with self._lock:
            if self.fatal is not None:
                return False
            self.fatal = err
            self.fatal_state = {"counters": self.counters.snapshot(), **state}
        self.logger.error("FATAL %s: %s", err.kind, err)
        return True

    @property
    def aborted(self) -> bool:
        """True once a fatal error has been recorded."""
        return self.fatal is not None

    def failure_counts(self) -> dict[str, int]:
        """Number of recorded failures by kind."""
        with self._lock:
            out: dict[str, int] = {}
            for f in self.failures:
                out[f.kind] = out.get(f.kind, 0) + 1
            return out
