# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/loopback/dv/test_loopback.py

"""End-to-end closure scenarios on the loopback DUT."""

from __future__ import annotations

import asyncio

import pytest

from linkdv.shared.dv import (
    ClosureController,
    ClosureState,
    IdAllocator,
    IncrementRefModel,
    RunConfig,
    Sequencer,
    Transaction,
    equals_bin,
    make_policy,
    run,
    sequence_bin,
)

from .loopback_dut import LoopbackDut
from .loopback_plan import corner_plan, default_plan

CORNERS = [0x00, 0xFF, 0x55]


def directed_config(**kw) -> RunConfig:
    """Directed replay of the three corner payloads."""
    base = {
        "generation_policy": "directed",
        "directed_values": CORNERS,
        "reference_model_latency": 0,
    }
    base.update(kw)
    return RunConfig(**base)


def assert_accounting(result) -> None:
    """issued == driven and observed == checked + spurious."""
    assert result.issued == result.driven
    assert result.observed == result.checked + result.spurious


# ---------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------


def test_directed_corners_pass() -> None:
    """Scenario A: directed [0x00, 0xFF, 0x55] on a correct loopback."""
    result = run(directed_config(), LoopbackDut(latency=0), corner_plan())

    assert result.state is ClosureState.CONVERGED
    assert result.iterations == 3
    assert result.driven == 3
    assert result.observed == 3
    assert result.checked == 3
    assert result.mismatches == 0
    assert result.passed
    assert result.exit_code == 0
    assert result.overall_coverage == 100.0
    assert result.per_bin_coverage == {"zero": 100.0, "all_ones": 100.0, "alternating": 100.0}
    assert result.coverage_history == (100 / 3, 200 / 3, 100.0)
    assert_accounting(result)


def stimulus_stream(cfg: RunConfig, n: int) -> list[int]:
    """Reproduce the first n payloads a random run with cfg generates."""
    policy = make_policy("random", constraints=cfg.constraints.to_constraints())
    sqr = Sequencer(policy, IdAllocator(), seed=cfg.seed)
    return [t.payload for _, t in zip(range(n), sqr)]


def test_random_converges_on_all_ones() -> None:
    """Scenario B with 0xFF weighted 3:255 against the rest of the range.

    Under the default uniform constraints seed 42 draws no 0xFF within ten
    iterations (see test_random_uniform_seed_42_misses_all_ones), so the
    weighting is what makes convergence happen inside the budget.
    """
    cfg = RunConfig(
        generation_policy="random",
        seed=42,
        max_iterations=10,
        constraints={
            "ranges": [
                {"lo": 0x00, "hi": 0xFE, "weight": 1},
                {"lo": 0xFF, "hi": 0xFF, "weight": 3},
            ]
        },
    )
    seen: list[int] = []
    result = run(
        cfg,
        LoopbackDut(latency=1),
        [equals_bin("all_ones", 0xFF)],
        subscribers={"seen": lambda t: seen.append(t.payload)},
    )

    first = stimulus_stream(cfg, 10).index(0xFF)

    assert result.state is ClosureState.CONVERGED
    assert result.iterations == first + 1
    assert 0xFF in seen
    assert result.overall_coverage == 100.0
    assert result.passed
    assert_accounting(result)


def test_random_uniform_seed_42_misses_all_ones() -> None:
    """Scenario B with default constraints: ten uniform draws, no 0xFF."""
    cfg = RunConfig(generation_policy="random", seed=42, max_iterations=10)
    result = run(cfg, LoopbackDut(latency=1), [equals_bin("all_ones", 0xFF)])

    assert 0xFF not in stimulus_stream(cfg, 10)
    assert result.state is ClosureState.BUDGET_EXHAUSTED
    assert result.reason == "max_iterations"
    assert result.iterations == 10
    assert result.overall_coverage == 0.0
    assert result.failures == ()
    assert not result.passed
    assert_accounting(result)


def test_faulty_ref_model_fails() -> None:
    """Scenario C: a reference model predicting payload + 1."""
    result = run(
        directed_config(),
        LoopbackDut(latency=0),
        corner_plan(),
        ref_model=IncrementRefModel(latency=0),
    )

    assert result.mismatches == 3
    assert not result.passed
    assert result.exit_code == 1
    expected = [f["expected"] for f in result.failures]
    assert expected == [0x01, 0x100, 0x56]
    assert_accounting(result)


def test_expected_queue_overflow_aborts() -> None:
    """Scenario D: expected_queue_bound = 1, DUT slower than the driver."""
    cfg = directed_config(expected_queue_bound=1, reference_model_latency=4)
    result = run(cfg, LoopbackDut(latency=4), corner_plan())

    assert result.state is ClosureState.ABORTED
    assert result.reason == "backpressure_overflow"
    assert result.fatal is not None
    assert result.fatal["buffer"] == "expected_queue"
    assert result.fatal["iteration"] == 2
    assert result.issued == 1
    assert not result.passed
    assert_accounting(result)


# ---------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------


def test_empty_plan_converges_first_iteration() -> None:
    cfg = RunConfig(generation_policy="random", seed=3)
    result = run(cfg, LoopbackDut(), [])
    assert result.state is ClosureState.CONVERGED
    assert result.iterations == 1
    assert result.overall_coverage == 100.0
    assert result.passed


@pytest.mark.parametrize("policy", ["random", "coverage-directed"])
def test_same_seed_same_result(policy: str) -> None:
    cfg = RunConfig(generation_policy=policy, seed=1234, max_iterations=200)
    a = run(cfg, LoopbackDut(), default_plan())
    b = run(cfg, LoopbackDut(), default_plan())
    assert a.to_dict() == b.to_dict()


@pytest.mark.parametrize("policy", ["random", "coverage-directed"])
def test_coverage_never_decreases(policy: str) -> None:
    cfg = RunConfig(generation_policy=policy, seed=99, max_iterations=300)
    result = run(cfg, LoopbackDut(latency=2), default_plan())
    hist = result.coverage_history
    assert len(hist) == result.iterations
    assert all(a <= b for a, b in zip(hist, hist[1:]))
    assert_accounting(result)


def test_coverage_directed_closes_single_value_bins() -> None:
    values = [0x03, 0x11, 0x42, 0x80, 0x9C, 0xC0, 0xE7, 0xFE]
    plan = [equals_bin(f"v{v:02x}", v) for v in values]
    cfg = RunConfig(generation_policy="coverage-directed", seed=5)
    result = run(cfg, LoopbackDut(), plan)
    assert result.state is ClosureState.CONVERGED
    assert result.iterations == len(values)
    assert result.passed


def test_coverage_directed_closes_ordered_sequences() -> None:
    plan = [
        sequence_bin("zero_then_all_ones", [0x00, 0xFF], kinds=["stimulus"]),
        sequence_bin("all_ones_then_zero", [0xFF, 0x00], kinds=["stimulus"]),
    ]
    cfg = RunConfig(generation_policy="coverage-directed", seed=21)
    result = run(cfg, LoopbackDut(), plan)
    assert result.state is ClosureState.CONVERGED
    assert result.iterations == 3
    assert result.passed
    assert_accounting(result)


def test_coverage_directed_extends_batches() -> None:
    cfg = RunConfig(generation_policy="coverage-directed", seed=8, sequence_length=2)
    result = run(cfg, LoopbackDut(), corner_plan())
    assert result.state is ClosureState.CONVERGED
    assert result.iterations == 3


def test_default_plan_closes_with_coverage_directed() -> None:
    cfg = RunConfig(generation_policy="coverage-directed", seed=11, max_iterations=500)
    result = run(cfg, LoopbackDut(latency=3, ready_period=2), default_plan())
    assert result.state is ClosureState.CONVERGED
    assert result.passed
    assert result.extra["stall_ticks"] > 0
    assert_accounting(result)


def test_end_of_sequence_is_budget_exhausted() -> None:
    cfg = directed_config(directed_values=[0x01, 0x02])
    result = run(cfg, LoopbackDut(), corner_plan())
    assert result.state is ClosureState.BUDGET_EXHAUSTED
    assert result.reason == "end_of_sequence"
    assert result.iterations == 2
    assert not result.passed

    relaxed = run(
        cfg.model_copy(update={"require_convergence": False}),
        LoopbackDut(),
        corner_plan(),
    )
    assert relaxed.state is ClosureState.BUDGET_EXHAUSTED
    assert relaxed.passed


def test_max_iterations_exhausts_budget() -> None:
    cfg = RunConfig(
        generation_policy="random",
        max_iterations=5,
        constraints={"ranges": [{"lo": 0x00, "hi": 0x0F}]},
    )
    result = run(cfg, LoopbackDut(), [equals_bin("all_ones", 0xFF)])
    assert result.state is ClosureState.BUDGET_EXHAUSTED
    assert result.reason == "max_iterations"
    assert result.iterations == 5
    assert result.overall_coverage == 0.0
    assert not result.passed


def test_unsatisfiable_constraints_abort() -> None:
    cfg = RunConfig(
        generation_policy="random",
        retry_cap=10,
        constraints={"values": [0x10], "exclude": [0x10]},
    )
    result = run(cfg, LoopbackDut(), corner_plan())
    assert result.state is ClosureState.ABORTED
    assert result.reason == "constraint_unsatisfiable"
    assert result.fatal is not None
    assert result.fatal["attempts"] == 10
    assert result.driven == 0
    assert not result.passed


def test_slow_subscriber_overflows_monitor_buffer() -> None:
    async def stuck(_txn: Transaction) -> None:
        await asyncio.Event().wait()

    cfg = directed_config(
        directed_values=[0x01, 0x02, 0x03, 0x04, 0x05, 0x06],
        monitor_buffer_bound=1,
    )
    result = run(cfg, LoopbackDut(), corner_plan(), subscribers={"stuck": stuck})
    assert result.state is ClosureState.ABORTED
    assert result.fatal is not None
    assert result.fatal["kind"] == "backpressure_overflow"
    assert result.fatal["buffer"] == "monitor.stuck"
    assert result.observed == 3
    assert result.checked == 3
    assert result.mismatches == 0
    assert not result.passed
    assert_accounting(result)


def test_long_latency_loopback_drains_past_drain_ticks() -> None:
    cfg = directed_config(reference_model_latency=20, drain_ticks=4)
    result = run(cfg, LoopbackDut(latency=20), corner_plan())
    assert result.state is ClosureState.CONVERGED
    assert result.checked == 3
    assert result.missing == 0
    assert result.passed
    assert result.last_tick > 20
    assert_accounting(result)


def test_subscriber_exception_is_recorded_as_fatal() -> None:
    def boom(_txn: Transaction) -> None:
        raise KeyError("user subscriber bug")

    result = run(directed_config(), LoopbackDut(), corner_plan(), subscribers={"boom": boom})
    assert result.state is ClosureState.ABORTED
    assert result.reason == "component_error"
    assert result.fatal is not None
    assert result.fatal["component"] == "subscriber.boom"
    assert result.fatal["cause"] == "KeyError"
    assert result.fatal["subscriber"] == "boom"
    assert result.exit_code == 1
    assert_accounting(result)


class BrokenOutputDut(LoopbackDut):
    """Loopback whose output port fails from tick 2 onward."""

    def observe(self) -> int | None:
        if self.now >= 2:
            raise RuntimeError("output port stuck")
        return super().observe()


def test_dut_exception_is_recorded_as_fatal() -> None:
    result = run(directed_config(), BrokenOutputDut(), corner_plan())
    assert result.state is ClosureState.ABORTED
    assert result.fatal is not None
    assert result.fatal["kind"] == "component_error"
    assert result.fatal["component"] == "dut"
    assert result.fatal["cause"] == "RuntimeError"
    assert result.observed == 1
    assert not result.passed
    assert_accounting(result)


# ---------------------------------------------------------------------
# Fault injection
# ---------------------------------------------------------------------


def test_corrupted_responses_mismatch() -> None:
    result = run(directed_config(), LoopbackDut(corrupt_mask=0x01), corner_plan())
    assert result.mismatches == 3
    assert not result.passed
    assert_accounting(result)


def test_dropped_response_is_missing() -> None:
    result = run(directed_config(), LoopbackDut(drop_every=2), corner_plan())
    assert result.mismatches == 1
    assert result.missing == 1
    assert result.observed == 2
    assert not result.passed
    assert_accounting(result)


def test_duplicated_response_is_spurious() -> None:
    result = run(directed_config(), LoopbackDut(duplicate_every=3), corner_plan())
    assert result.spurious == 1
    assert result.mismatches == 0
    assert result.observed == 4
    assert not result.passed
    assert_accounting(result)


def test_unsolicited_output_fails_run() -> None:
    result = run(directed_config(), LoopbackDut(spurious_ticks=[2]), corner_plan())
    assert result.spurious + result.mismatches >= 1
    assert not result.passed
    assert_accounting(result)


def test_reordering_dut_mismatches_under_fifo_pairing() -> None:
    result = run(directed_config(), LoopbackDut(reorder=True), corner_plan())
    assert result.mismatches == 2
    assert result.missing == 0
    assert result.checked == 3
    assert not result.passed


def test_early_response_fails_latency_check() -> None:
    cfg = directed_config(reference_model_latency=3, check_latency=True)
    result = run(cfg, LoopbackDut(latency=1), corner_plan())
    assert result.mismatches == 3
    assert all("early" in f["reason"] for f in result.failures)

    relaxed = run(directed_config(reference_model_latency=3), LoopbackDut(latency=1), corner_plan())
    assert relaxed.passed


def test_controller_reusable_and_saves(tmp_path) -> None:
    ctl = ClosureController(directed_config(), LoopbackDut(), corner_plan())
    first = ctl.run()
    second = ctl.run()
    assert first.passed and second.passed
    assert first.iterations == second.iterations

    out = second.save(tmp_path, "loopback")
    assert (out / "loopback_scalars.json").exists()
    assert (out / "loopback_coverage.yaml").exists()
    assert (out / "loopback_failures.json").exists()
    assert (out / "loopback_coverage_plot.png").exists()
    assert "PASS" in (out / "loopback_summary.txt").read_text()
