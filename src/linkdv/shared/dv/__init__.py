# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/__init__.py

"""Shared coverage-driven verification core.

This package provides the components every linkdv bench is built from. The
DUT is reached only through the transaction-level DutInterface; everything
advances on a shared LogicalClock.

Components:
- Transaction / ExpectedEntry / IdAllocator: data model
- RefModel: reference model interface and the built-in variants
- Sequencer: lazy, restartable stimulus with pluggable generation policies
- Driver: applies stimulus with back-pressure, queues predictions
- Monitor: observes DUT output, fans out to bounded subscriber buffers
- Scoreboard / ExpectedQueue: in-order checking against predictions
- CoverageTracker / CoverBin: functional coverage bins
- ClosureController / run(): the coverage-closure loop
- RunConfig: pydantic run configuration
- RunResult / ClosureState: the immutable outcome of a run

Utilities:
- utils_dv: Logging and payload helpers
- utils_cli: Environment and plusarg settings
"""

from __future__ import annotations

from linkdv import __version__

from . import utils_cli, utils_dv
from .clock import LogicalClock
from .config import ConstraintModel, RangeModel, RunConfig
from .context import RunContext
from .controller import ClosureController, run
from .coverage import (
    CoverageReport,
    CoverageTracker,
    CoverBin,
    equals_bin,
    range_bin,
    sequence_bin,
    values_bin,
)
from .driver import Ack, Driver
from .dut import DutInterface
from .errors import (
    BackpressureOverflow,
    CheckFailure,
    ComponentError,
    ConstraintUnsatisfiable,
    LinkDvError,
    Mismatch,
    MissingResponse,
    SpuriousResponse,
)
from .item import ExpectedEntry, IdAllocator, Transaction, TransactionKind
from .monitor import Monitor, Subscription
from .ref_model import (
    IncrementRefModel,
    InvertRefModel,
    LoopbackRefModel,
    RefModel,
    make_ref_model,
)
from .results import ClosureState, RunResult
from .scoreboard import ExpectedQueue, Scoreboard
from .sequencer import (
    CoverageDirectedPolicy,
    DirectedPolicy,
    PayloadConstraints,
    RandomPolicy,
    Sequencer,
    WeightedRange,
    make_policy,
)

__all__ = (
    "Ack",
    "BackpressureOverflow",
    "CheckFailure",
    "ClosureController",
    "ClosureState",
    "ComponentError",
    "ConstraintModel",
    "ConstraintUnsatisfiable",
    "CoverBin",
    "CoverageDirectedPolicy",
    "CoverageReport",
    "CoverageTracker",
    "DirectedPolicy",
    "Driver",
    "DutInterface",
    "ExpectedEntry",
    "ExpectedQueue",
    "IdAllocator",
    "IncrementRefModel",
    "InvertRefModel",
    "LinkDvError",
    "LogicalClock",
    "LoopbackRefModel",
    "Mismatch",
    "MissingResponse",
    "Monitor",
    "PayloadConstraints",
    "RandomPolicy",
    "RangeModel",
    "RefModel",
    "RunConfig",
    "RunContext",
    "RunResult",
    "Scoreboard",
    "Sequencer",
    "SpuriousResponse",
    "Subscription",
    "Transaction",
    "TransactionKind",
    "WeightedRange",
    "equals_bin",
    "make_policy",
    "make_ref_model",
    "range_bin",
    "run",
    "sequence_bin",
    "utils_cli",
    "utils_dv",
    "values_bin",
    "__version__",
)
