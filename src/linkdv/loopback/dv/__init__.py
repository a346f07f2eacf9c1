# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/loopback/dv/__init__.py

"""Design verification bench for the loopback DUT.

Components:
- loopback_dut: Loopback DUT model with latency, readiness and fault injection
- loopback_plan: Corner-value and default coverage plans
- test_loopback: End-to-end closure scenarios

To run:
    dv-run --policy coverage-directed --seed 7
    pytest src/linkdv/loopback
"""

from __future__ import annotations

from .loopback_dut import LoopbackDut
from .loopback_plan import alternating, corner_plan, default_plan

__all__ = ("LoopbackDut", "alternating", "corner_plan", "default_plan")
