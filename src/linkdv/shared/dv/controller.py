# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/controller.py

"""Coverage-closure controller: builds the environment and runs the loop."""

from __future__ import annotations

import asyncio
from typing import Mapping, Sequence

from linkdv.utils import green, red

from . import utils_dv
from .clock import LogicalClock
from .config import RunConfig
from .context import RunContext
from .coverage import CoverageTracker, CoverBin
from .driver import Driver
from .dut import DutInterface
from .errors import ComponentError, LinkDvError
from .monitor import Monitor, SubscriberFn
from .ref_model import RefModel, make_ref_model
from .results import ClosureState, RunResult
from .scoreboard import Scoreboard
from .sequencer import Sequencer, make_policy

# Event loop passes granted to live subscriber consumers before they are cancelled
SETTLE_ROUNDS = 8


class ClosureController:  # pylint: disable=too-many-instance-attributes
    """Runs stimulus until coverage closes or the budget runs out.

    The controller owns one RunContext per run and wires the sequencer,
    driver, monitor, scoreboard and coverage tracker around it. The driver
    runs inside the controller task; the monitor and one consumer per
    subscriber run as separate tasks on the shared logical clock.

    Loop, one iteration per stimulus:
        1. pass the unhit bins to the sequencer
        2. request a transaction; at end of sequence ask the sequencer to
           extend, and stop as BUDGET_EXHAUSTED (end_of_sequence) if it can't
        3. drive it
        4. CONVERGED when overall coverage >= coverage_threshold, else
           BUDGET_EXHAUSTED when max_iterations is reached

    On CONVERGED or BUDGET_EXHAUSTED the controller keeps ticking until every
    prediction is answered, every subscriber buffer is empty and the DUT is
    idle, then stops the monitor. It ticks at most drain_ticks times, or
    until the newest prediction is past due when that is later. Predictions
    still unanswered become MissingResponse failures.

    A fatal error (ConstraintUnsatisfiable, BackpressureOverflow, or any other
    exception from the DUT or a subscriber, wrapped as ComponentError) moves
    the run to ABORTED: the monitor stops at the next tick boundary,
    subscribers that did not overflow or fail consume what is already
    buffered, every consumer is cancelled and awaited, and the result is a
    failure. A stimulus counts as driven once the DUT has accepted it.

    Example:
        >>> cfg = RunConfig(generation_policy="directed",
        ...                 directed_values=[0x00, 0xFF, 0x55])
        >>> result = ClosureController(cfg, LoopbackDut(), plan).run()
        >>> result.passed
        True
    """

    participant = "drv"

    def __init__(  # pylint: disable=too-many-arguments
        self,
        config: RunConfig,
        dut: DutInterface,
        plan: Sequence[CoverBin],
        ref_model: RefModel | None = None,
        subscribers: Mapping[str, SubscriberFn] | None = None,
        name: str = "closure",
    ) -> None:
        self.config = config
        self.dut = dut
        self.plan: tuple[CoverBin, ...] = tuple(plan)
        self.ref_model: RefModel = (
            ref_model
            if ref_model is not None
            else make_ref_model(
                config.reference_model,
                latency=config.reference_model_latency,
                width=config.payload_width,
            )
        )
        self.subscribers: dict[str, SubscriberFn] = dict(subscribers or {})
        self.logger = utils_dv.component_logger(name)
        self.state = ClosureState.RUNNING
        self.reason = ""
        self.iterations = 0
        self.coverage_history: list[float] = []

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _build(self) -> None:
        cfg = self.config
        self.state = ClosureState.RUNNING
        self.reason = ""
        self.iterations = 0
        self.coverage_history = []

        self.ctx = RunContext(
            CoverageTracker(self.plan, history_depth=cfg.history_depth),
            expected_queue_bound=cfg.expected_queue_bound,
        )
        self.clock = LogicalClock()
        self.clock.on_tick(self.dut.tick)
        policy = make_policy(
            cfg.generation_policy,
            values=cfg.directed_values,
            constraints=cfg.constraints.to_constraints(),
            retry_cap=cfg.retry_cap,
            bias_attempts=cfg.bias_attempts,
            count=cfg.sequence_length,
            history_depth=cfg.history_depth,
        )
        self.sequencer = Sequencer(policy, self.ctx.ids, seed=cfg.seed, clock=self.clock)
        self.driver = Driver(
            self.ctx, self.clock, self.dut, self.ref_model, participant=self.participant
        )
        self.scoreboard = Scoreboard(
            self.ctx, check_latency=cfg.check_latency, now=lambda: self.clock.now
        )
        self.monitor = Monitor(
            self.ctx, self.clock, self.dut, buffer_bound=cfg.monitor_buffer_bound
        )
        self.monitor.subscribe("sb", self.scoreboard.check)
        self.monitor.subscribe("cov", self.ctx.coverage.sample)
        for sub_name, fn in self.subscribers.items():
            self.monitor.subscribe(sub_name, fn)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> RunResult:
        """Run to a terminal state in a fresh event loop."""
        return asyncio.run(self.run_async())

    async def run_async(self) -> RunResult:
        """Run to a terminal state on the current event loop."""
        cfg = self.config
        self._build()
        self.logger.info(
            "run begin: policy=%s seed=%d bins=%d threshold=%g%% max_iterations=%d",
            cfg.generation_policy,
            cfg.seed,
            len(self.plan),
            cfg.coverage_threshold,
            cfg.max_iterations,
        )
        self.clock.join(self.participant)
        self.monitor.start()
        try:
            try:
                await self._loop()
                await self._drain()
            except LinkDvError as e:
                self.ctx.record_fatal(e, tick=self.clock.now, iteration=self.iterations)
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.ctx.record_fatal(
                    ComponentError(self.participant, e),
                    tick=self.clock.now,
                    iteration=self.iterations,
                )
            if self.ctx.fatal is not None:
                self._finish(ClosureState.ABORTED, self.ctx.fatal.kind)
        finally:
            await self._shutdown()
        if self.state is not ClosureState.ABORTED:
            self.scoreboard.flush_unmatched()
        self.scoreboard.report()
        for line in self.ctx.coverage.report_lines():
            self.logger.debug(line)
        result = self._result()
        self._log_summary(result)
        return result

    async def _loop(self) -> None:
        cfg = self.config
        while self.state is ClosureState.RUNNING:
            if self.ctx.fatal is not None:
                raise self.ctx.fatal
            self.sequencer.update_gaps(self.ctx.coverage.gaps())
            txn = self.sequencer.next()
            if txn is None and self.sequencer.extend():
                txn = self.sequencer.next()
            if txn is None:
                self._finish(ClosureState.BUDGET_EXHAUSTED, "end_of_sequence")
                break

            self.iterations += 1
            try:
                await self.driver.drive(txn)
            finally:
                if self.driver.last_issued == txn.id:
                    self.ctx.counters.add("driven")

            overall = self.ctx.coverage.overall()
            self.coverage_history.append(overall)
            self.logger.debug(
                "iteration %d: id=%d payload=0x%x coverage=%.1f%%",
                self.iterations,
                txn.id,
                txn.payload,
                overall,
            )
            if overall >= cfg.coverage_threshold:
                self._finish(ClosureState.CONVERGED, "coverage_threshold")
            elif self.iterations >= cfg.max_iterations:
                self._finish(ClosureState.BUDGET_EXHAUSTED, "max_iterations")

    def _in_flight(self) -> bool:
        return (
            len(self.ctx.expected) > 0
            or self.monitor.live_pending > 0
            or not self.dut.idle()
        )

    async def _drain(self) -> None:
        """Tick until in-flight activity settles or the drain budget is spent.

        The budget is drain_ticks, extended to one tick past the due_tick of
        the newest outstanding prediction.
        """
        budget = self.config.drain_ticks
        last_due = self.ctx.expected.last_due()
        if last_due is not None:
            budget = max(budget, last_due - self.clock.now + 1)
        ticks = 0
        while True:
            # let subscriber consumers take what the monitor just published
            await asyncio.sleep(0)
            if not self._in_flight() or ticks >= budget:
                break
            await self.driver.tick()
            ticks += 1
        if self._in_flight():
            self.logger.warning(
                "drain stopped after %d ticks: expected=%d pending=%d dut_idle=%s",
                ticks,
                len(self.ctx.expected),
                self.monitor.live_pending,
                self.dut.idle(),
            )
        else:
            self.logger.debug("drained in %d ticks", ticks)

    async def _shutdown(self) -> None:
        """Stop the monitor at a tick boundary and settle subscriber tasks."""
        self.monitor.stop()
        self.clock.leave(self.participant)
        await self.monitor.join()
        for _ in range(SETTLE_ROUNDS):
            if self.monitor.live_pending == 0:
                break
            await asyncio.sleep(0)
        await self.monitor.close()
        if self.ctx.fatal is not None and self.state is not ClosureState.ABORTED:
            self._finish(ClosureState.ABORTED, self.ctx.fatal.kind)

    def _finish(self, state: ClosureState, reason: str) -> None:
        if self.state.terminal and state is not ClosureState.ABORTED:
            return
        self.logger.info(
            "state %s -> %s (%s) at iteration %d, tick %d",
            self.state.value,
            state.value,
            reason,
            self.iterations,
            self.clock.now,
        )
        self.state = state
        self.reason = reason

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def _result(self) -> RunResult:
        cfg = self.config
        ctx = self.ctx
        counts = ctx.counters.snapshot()
        by_kind = ctx.failure_counts()
        fatal = None
        if ctx.fatal is not None:
            fatal = {
                **ctx.fatal.to_dict(),
                **ctx.fatal_state,
                "iteration": ctx.fatal_state.get("iteration", self.iterations),
            }
        passed = (
            not ctx.failures
            and ctx.fatal is None
            and (self.state is ClosureState.CONVERGED or not cfg.require_convergence)
        )
        return RunResult(
            state=self.state,
            reason=self.reason,
            passed=passed,
            iterations=self.iterations,
            driven=counts["driven"],
            issued=counts["issued"],
            observed=counts["observed"],
            checked=counts["checked"],
            passed_checks=self.scoreboard.passed,
            mismatches=by_kind.get("mismatch", 0),
            spurious=counts["spurious"],
            missing=by_kind.get("missing_response", 0),
            coverage=ctx.coverage.report(),
            coverage_history=tuple(self.coverage_history),
            failures=tuple(f.to_dict() for f in ctx.failures),
            fatal=fatal,
            last_tick=self.clock.now,
            seed=cfg.seed,
            policy=cfg.generation_policy,
            threshold=cfg.coverage_threshold,
            extra={
                "expected_high_water": ctx.expected.high_water,
                "stall_ticks": self.driver.stall_ticks,
            },
        )

    def _log_summary(self, result: RunResult) -> None:
        line = (
            f"{result.verdict}: {result.state.value} ({result.reason}) after "
            f"{result.iterations} iterations, coverage {result.overall_coverage:.1f}%, "
            f"{len(result.failures)} failures"
        )
        if result.fatal is not None:
            line += f", fatal {result.fatal['kind']}"
        if result.passed:
            self.logger.info(green(line))
        else:
            self.logger.error(red(line))


def run(
    config: RunConfig,
    dut: DutInterface,
    plan: Sequence[CoverBin],
    ref_model: RefModel | None = None,
    subscribers: Mapping[str, SubscriberFn] | None = None,
) -> RunResult:
    """Run one verification session and return its result."""
    return ClosureController(config, dut, plan, ref_model, subscribers).run()
