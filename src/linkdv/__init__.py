# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/__init__.py

"""linkdv: coverage-driven verification of transaction-level link interfaces.

linkdv exercises a device-under-test (DUT) through a transaction-level
interface with directed, constrained-random and coverage-directed stimulus,
checks every observed response against a reference model and keeps
generating until a functional coverage goal is met.

Main Components:

shared.dv:
    The verification core: transactions, logical clock, sequencer and
    generation policies, driver, monitor, scoreboard, reference models,
    coverage tracker and the closure controller that ties them together.

loopback.dv:
    A transaction-level loopback DUT model, a default coverage plan and the
    scenario tests that exercise the core end to end.

tools:
    The dv-run command-line wrapper and the YAML coverage-plan loader.

utils:
    Common utilities used across the package
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

try:
    __version__ = pkg_version("linkdv")
except PackageNotFoundError:
    __version__ = "0+local"
