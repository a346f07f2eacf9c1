# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/dut.py

"""Transaction-level contract between the environment and the DUT."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class DutInterface(Protocol):
    """What the core needs from a device-under-test.

    The DUT is a black box. The driver applies stimulus payloads, the monitor
    polls for output events, and the logical clock steps the DUT once per
    tick. Everything below this contract (signal timing, protocol layers) is
    the DUT model's business.

    Methods:
        ready(): True when the DUT can accept a stimulus this tick
        apply(payload): Accept one stimulus; return readiness for the next
        observe(): Return the next output payload this tick, or None
        tick(now): Advance internal state to logical tick `now`
        idle(): True when no stimulus is in flight inside the DUT
    """

    def ready(self) -> bool:
        """Return True if a stimulus may be applied now."""
        ...  # pylint: disable=unnecessary-ellipsis

    def apply(self, payload: int) -> bool:
        """Apply one stimulus; return the readiness signal for the next one."""
        ...  # pylint: disable=unnecessary-ellipsis

    def observe(self) -> int | None:
        """Return one output event observed this tick, or None."""
        ...  # pylint: disable=unnecessary-ellipsis

    def tick(self, now: int) -> None:
        """Advance to logical tick `now`."""
        ...  # pylint: disable=unnecessary-ellipsis

    def idle(self) -> bool:
        """Return True when nothing is in flight inside the DUT."""
        ...  # pylint: disable=unnecessary-ellipsis
