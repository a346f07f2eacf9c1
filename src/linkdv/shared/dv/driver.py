# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/driver.py

"""Driver: applies stimulus to the DUT one transaction per tick."""

from __future__ import annotations

from dataclasses import dataclass

from . import utils_dv
from .clock import LogicalClock
from .context import RunContext
from .dut import DutInterface
from .item import ExpectedEntry, Transaction
from .ref_model import RefModel


@dataclass(frozen=True)
class Ack:
    """Driver acknowledgement for one applied transaction.

    Attributes:
        txn_id: Id of the applied stimulus
        issued_at: Tick at which the stimulus was applied
        ready_at: Tick at which the DUT was ready for the next stimulus
        stalled: Ticks spent waiting for readiness before applying
    """

    txn_id: int
    issued_at: int
    ready_at: int
    stalled: int


class Driver:
    """Converts stimulus transactions into DUT apply() calls.

    Per transaction the driver:
    - waits on clock ticks while the DUT is not ready (back-pressure)
    - asks the reference model for a prediction and pushes the expected
      entry before the stimulus reaches the DUT
    - applies the payload, counts it as issued and samples coverage
    - waits at least one tick, and then until the DUT is ready again

    The driver is a clock participant: the tick does not advance until it
    arrives. A fatal error recorded elsewhere (the monitor, for instance) is
    re-raised at the next tick so the controller can abort.

    Reference:
        C.E. Cummings, "Applying Stimulus & Sampling Outputs," SNUG 2016

    Example:
        >>> drv = Driver(ctx, clock, dut, LoopbackRefModel())
        >>> ack = await drv.drive(txn)
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        ctx: RunContext,
        clock: LogicalClock,
        dut: DutInterface,
        ref_model: RefModel,
        participant: str = "drv",
    ) -> None:
        self.ctx = ctx
        self.clock = clock
        self.dut = dut
        self.ref_model = ref_model
        self.participant = participant
        self.logger = utils_dv.component_logger(participant)
        self.stall_ticks: int = 0
        self.last_issued: int | None = None

    async def tick(self) -> int:
        """Arrive at the clock barrier and wait for the next tick."""
        now = await self.clock.next_tick(self.participant)
        if self.ctx.fatal is not None:
            raise self.ctx.fatal
        return now

    async def wait_ready(self) -> int:
        """Wait on ticks until the DUT is ready; return ticks waited."""
        waited = 0
        while not self.dut.ready():
            await self.tick()
            waited += 1
        return waited

    async def drive(self, txn: Transaction) -> Ack:
        """Apply one stimulus; return once the DUT is ready for the next."""
        self.logger.debug("drive begin: %s", txn)
        stalled = await self.wait_ready()
        self.stall_ticks += stalled

        issued_at = self.clock.now
        expected = ExpectedEntry(
            txn_id=txn.id,
            payload=self.ref_model.predict(txn),
            issued_at=issued_at,
            due_tick=issued_at + self.ref_model.latency,
        )
        self.ctx.expected.push(expected)
        ready = self.dut.apply(txn.payload)
        self.logger.debug("applied id=%d ready=%s", txn.id, ready)
        self.ctx.counters.add("issued")
        self.last_issued = txn.id
        self.ctx.coverage.sample(txn)

        await self.tick()
        self.stall_ticks += await self.wait_ready()
        ack = Ack(
            txn_id=txn.id,
            issued_at=issued_at,
            ready_at=self.clock.now,
            stalled=stalled,
        )
        self.logger.debug("drive end: %s", ack)
        return ack
