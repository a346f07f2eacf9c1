# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/__init__.py

"""Shared components for linkdv benches.

Subpackages:
- dv: the verification core (sequencer, driver, monitor, scoreboard,
  reference models, coverage tracker, closure controller)

Concrete benches such as linkdv.loopback build on these components by
supplying a DUT model, a coverage plan and a run configuration.
"""
