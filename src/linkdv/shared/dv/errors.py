# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/errors.py

"""Error taxonomy for verification runs.

Fatal errors (ConstraintUnsatisfiable, BackpressureOverflow, ComponentError)
are raised and abort the run. Check failures (Mismatch, SpuriousResponse,
MissingResponse) are never raised; the scoreboard records them in the run's
failure log and they fail the final verdict.
"""

from __future__ import annotations

from typing import Any


class LinkDvError(Exception):
    """Base class for every error reported by a verification run."""

    kind: str = "error"

    def to_dict(self) -> dict[str, Any]:
        """Structured view for logs and saved results."""
        return {"kind": self.kind, "message": str(self)}


# ---------------------------------------------------------------------
# Fatal
# ---------------------------------------------------------------------


class ConstraintUnsatisfiable(LinkDvError):
    """The sequencer could not produce a legal stimulus within its retry cap."""

    kind = "constraint_unsatisfiable"

    def __init__(self, policy: str, attempts: int) -> None:
        super().__init__(
            f"{policy}: no payload satisfied the constraints after {attempts} attempts"
        )
        self.policy = policy
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d.update(policy=self.policy, attempts=self.attempts)
        return d


class BackpressureOverflow(LinkDvError):
    """A bounded buffer (expected queue or subscriber buffer) overflowed."""

    kind = "backpressure_overflow"

    def __init__(self, buffer: str, bound: int) -> None:
        super().__init__(f"{buffer} exceeded its bound of {bound}")
        self.buffer = buffer
        self.bound = bound

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d.update(buffer=self.buffer, bound=self.bound)
        return d


class ComponentError(LinkDvError):
    """A subscriber or the DUT model raised something other than a LinkDvError."""

    kind = "component_error"

    def __init__(self, component: str, cause: BaseException) -> None:
        super().__init__(f"{component}: {type(cause).__name__}: {cause}")
        self.component = component
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d.update(component=self.component, cause=type(self.cause).__name__)
        return d


# ---------------------------------------------------------------------
# Recorded (non-fatal)
# ---------------------------------------------------------------------


class CheckFailure(LinkDvError):
    """A scoreboard failure that is recorded and fails the verdict."""

    kind = "check_failure"

    def __init__(self, message: str, txn_id: int | None, tick: int) -> None:
        super().__init__(message)
        self.txn_id = txn_id
        self.tick = tick

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d.update(txn_id=self.txn_id, tick=self.tick)
        return d


class Mismatch(CheckFailure):
    """Observed payload differs from the reference model's prediction."""

    kind = "mismatch"

    def __init__(  # pylint: disable=too-many-arguments
        self,
        *,
        txn_id: int,
        expected: int,
        actual: int,
        tick: int,
        reason: str = "payload",
    ) -> None:
        super().__init__(
            f"txn {txn_id}: expected 0x{expected:x} got 0x{actual:x} ({reason})",
            txn_id,
            tick,
        )
        self.expected = expected
        self.actual = actual
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d.update(expected=self.expected, actual=self.actual, reason=self.reason)
        return d


class SpuriousResponse(CheckFailure):
    """The DUT produced output with no outstanding stimulus."""

    kind = "spurious_response"

    def __init__(self, *, observed_id: int, actual: int, tick: int) -> None:
        super().__init__(
            f"response {observed_id} (0x{actual:x}) has no matching stimulus",
            None,
            tick,
        )
        self.observed_id = observed_id
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d.update(observed_id=self.observed_id, actual=self.actual)
        return d


class MissingResponse(CheckFailure):
    """A stimulus was still waiting for its response when the run ended."""

    kind = "missing_response"

    def __init__(self, *, txn_id: int, expected: int, tick: int) -> None:
        super().__init__(
            f"txn {txn_id}: expected 0x{expected:x} was never observed", txn_id, tick
        )
        self.expected = expected

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d.update(expected=self.expected)
        return d
