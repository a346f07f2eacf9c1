# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/test_ref_model.py

"""Tests for the reference models."""

from __future__ import annotations

import pytest

from .item import Transaction, TransactionKind
from .ref_model import (
    IncrementRefModel,
    InvertRefModel,
    LoopbackRefModel,
    RefModel,
    make_ref_model,
)


def stim(payload: int) -> Transaction:
    return Transaction(id=0, payload=payload, kind=TransactionKind.STIMULUS, timestamp=0)


@pytest.mark.parametrize(
    "model, payload, expected",
    [
        (LoopbackRefModel(), 0x5A, 0x5A),
        (InvertRefModel(), 0x0F, 0xF0),
        (InvertRefModel(width=4), 0x3, 0xC),
        (IncrementRefModel(), 0xFF, 0x100),
    ],
)
def test_predictions(model, payload: int, expected: int) -> None:
    assert isinstance(model, RefModel)
    assert model.predict(stim(payload)) == expected


def test_predictions_are_deterministic() -> None:
    model = make_ref_model("invert", latency=2)
    assert model.latency == 2
    first = [model.predict(stim(p)) for p in range(16)]
    assert first == [model.predict(stim(p)) for p in range(16)]


def test_make_ref_model_errors() -> None:
    with pytest.raises(ValueError):
        make_ref_model("oracle")
    with pytest.raises(ValueError):
        make_ref_model("loopback", latency=-1)
