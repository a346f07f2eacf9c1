# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/loopback/__init__.py

"""Loopback bench.

A transaction-level loopback DUT exercised by the shared verification core.

Subpackages:
- dv: DUT model, coverage plans and scenario tests
"""
