# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/loopback/dv/loopback_plan.py

"""Coverage plans for the loopback bench."""

from __future__ import annotations

from linkdv.shared.dv import (
    CoverBin,
    TransactionKind,
    equals_bin,
    range_bin,
    sequence_bin,
    utils_dv,
)


def alternating(width: int) -> int:
    """Return the 0b0101... pattern for a payload width (0x55 for 8 bits)."""
    return int("01" * ((width + 1) // 2), 2) & utils_dv.payload_mask(width)


def corner_plan(width: int = 8) -> list[CoverBin]:
    """All-zeros, all-ones and alternating-bit payloads."""
    top = utils_dv.payload_mask(width)
    return [
        equals_bin("zero", 0),
        equals_bin("all_ones", top),
        equals_bin("alternating", alternating(width)),
    ]


def default_plan(width: int = 8) -> list[CoverBin]:
    """Corner values, value ranges and a couple of ordered sequences.

    The sequence bins sample stimulus only; the response-side bin checks
    that an all-ones payload actually came back from the DUT.
    """
    top = utils_dv.payload_mask(width)
    quarter = max(1, (top + 1) // 4)
    stim = [TransactionKind.STIMULUS]
    return [
        *corner_plan(width),
        range_bin("low_quarter", 1, quarter - 1 if quarter > 1 else 1),
        range_bin("high_quarter", top + 1 - quarter, top - 1 if top > 1 else top),
        sequence_bin("zero_then_all_ones", [0, top], kinds=stim),
        sequence_bin("all_ones_then_zero", [top, 0], kinds=stim),
        equals_bin("response_all_ones", top, kinds=[TransactionKind.RESPONSE]),
    ]
