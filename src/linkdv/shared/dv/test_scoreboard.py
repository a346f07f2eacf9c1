# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/test_scoreboard.py

"""Tests for the expected queue and in-order scoreboard."""

from __future__ import annotations

import pytest

from .context import RunContext
from .coverage import CoverageTracker
from .errors import BackpressureOverflow, Mismatch, MissingResponse, SpuriousResponse
from .item import ExpectedEntry, Transaction, TransactionKind
from .scoreboard import ExpectedQueue, Scoreboard


def make_ctx(bound: int = 8) -> RunContext:
    return RunContext(CoverageTracker([]), expected_queue_bound=bound)


def response(tid: int, payload: int, tick: int = 5) -> Transaction:
    return Transaction(id=tid, payload=payload, kind=TransactionKind.RESPONSE, timestamp=tick)


def expect(ctx: RunContext, txn_id: int, payload: int, due: int = 1) -> None:
    ctx.expected.push(ExpectedEntry(txn_id=txn_id, payload=payload, issued_at=0, due_tick=due))


# ---------------------------------------------------------------------
# ExpectedQueue
# ---------------------------------------------------------------------


def test_expected_queue_is_fifo_and_bounded() -> None:
    q = ExpectedQueue(bound=2)
    q.push(ExpectedEntry(0, 0x10, 0, 1))
    q.push(ExpectedEntry(1, 0x11, 0, 1))
    with pytest.raises(BackpressureOverflow) as ei:
        q.push(ExpectedEntry(2, 0x12, 0, 1))
    assert ei.value.buffer == "expected_queue"
    assert ei.value.bound == 2
    assert len(q) == 2
    assert q.high_water == 2

    first = q.pop()
    assert first is not None and first.txn_id == 0
    assert [e.txn_id for e in q.drain()] == [1]
    assert q.pop() is None


def test_expected_queue_last_due() -> None:
    q = ExpectedQueue(bound=4)
    assert q.last_due() is None
    q.push(ExpectedEntry(0, 0x10, 0, 20))
    q.push(ExpectedEntry(1, 0x11, 1, 21))
    assert q.last_due() == 21
    q.drain()
    assert q.last_due() is None


def test_expected_queue_rejects_non_positive_bound() -> None:
    with pytest.raises(ValueError):
        ExpectedQueue(bound=0)


# ---------------------------------------------------------------------
# Scoreboard
# ---------------------------------------------------------------------


def test_matching_response_passes() -> None:
    ctx = make_ctx()
    sb = Scoreboard(ctx)
    expect(ctx, 0, 0xAB)
    assert sb.check(response(1, 0xAB))
    assert (sb.checked, sb.passed, sb.failed) == (1, 1, 0)
    assert ctx.counters["checked"] == 1
    assert ctx.failures == []


def test_payload_difference_is_mismatch() -> None:
    ctx = make_ctx()
    sb = Scoreboard(ctx, now=lambda: 9)
    expect(ctx, 3, 0x01)
    assert not sb.check(response(4, 0x00))
    assert sb.failed == 1
    (f,) = ctx.failures
    assert isinstance(f, Mismatch)
    assert (f.txn_id, f.expected, f.actual, f.tick) == (3, 0x01, 0x00, 9)
    assert f.to_dict()["kind"] == "mismatch"


def test_responses_pair_in_issue_order() -> None:
    ctx = make_ctx()
    sb = Scoreboard(ctx)
    expect(ctx, 0, 0x01)
    expect(ctx, 1, 0x02)
    assert not sb.check(response(2, 0x02))
    assert not sb.check(response(3, 0x01))
    assert [f.txn_id for f in ctx.failures] == [0, 1]


def test_response_with_empty_queue_is_spurious() -> None:
    ctx = make_ctx()
    sb = Scoreboard(ctx)
    assert not sb.check(response(7, 0x5A))
    assert sb.spurious == 1
    assert sb.checked == 0
    assert ctx.counters["spurious"] == 1
    (f,) = ctx.failures
    assert isinstance(f, SpuriousResponse)
    assert f.observed_id == 7
    assert f.txn_id is None


def test_flush_unmatched_records_missing() -> None:
    ctx = make_ctx()
    sb = Scoreboard(ctx, now=lambda: 20)
    expect(ctx, 0, 0x01)
    expect(ctx, 1, 0x02)
    assert sb.flush_unmatched() == 2
    assert len(ctx.expected) == 0
    assert all(isinstance(f, MissingResponse) for f in ctx.failures)
    assert [f.to_dict()["expected"] for f in ctx.failures] == [0x01, 0x02]
    assert ctx.failure_counts() == {"missing_response": 2}


@pytest.mark.parametrize("check_latency, passes", [(False, True), (True, False)])
def test_early_response_only_fails_with_latency_check(
    check_latency: bool, passes: bool
) -> None:
    ctx = make_ctx()
    sb = Scoreboard(ctx, check_latency=check_latency)
    expect(ctx, 0, 0x33, due=6)
    assert sb.check(response(1, 0x33, tick=4)) is passes
    if not passes:
        assert "early" in ctx.failures[0].to_dict()["reason"]


def test_on_time_response_passes_latency_check() -> None:
    ctx = make_ctx()
    sb = Scoreboard(ctx, check_latency=True)
    expect(ctx, 0, 0x33, due=6)
    assert sb.check(response(1, 0x33, tick=6))


def test_record_fatal_keeps_the_first() -> None:
    ctx = make_ctx()
    ctx.counters.add("driven", 2)
    assert ctx.record_fatal(BackpressureOverflow("expected_queue", 1), tick=3)
    assert not ctx.record_fatal(BackpressureOverflow("monitor.sb", 4))
    assert ctx.aborted
    assert ctx.fatal_state["tick"] == 3
    assert ctx.fatal_state["counters"]["driven"] == 2
