# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/tools/__init__.py

"""linkdv tools package.

Command-line tools:
- dv-run: Run a coverage-closure loop against the loopback DUT and save
  the results

Helpers:
- plan: Load a coverage plan from YAML
"""
