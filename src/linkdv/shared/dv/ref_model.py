# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/ref_model.py

"""Reference models of DUT behavior.

A reference model is anything with a `latency` attribute and a
`predict(txn) -> payload` method. The driver calls predict() for every
stimulus it issues; the resulting payload becomes an expected-queue entry
due `latency` ticks after issue.

Models must be deterministic given the same input sequence and must not
have side effects beyond their own explicitly modeled state.

Variants selected by name (make_ref_model):
- loopback: predicted payload equals the stimulus payload
- invert: predicted payload is the bitwise inverse within the payload width
- increment: predicted payload is stimulus + 1 (useful for fault injection)

Reference:
    C.E. Cummings, "OVM/UVM Scoreboards - Fundamental Architectures,"
    SNUG 2013
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

from . import utils_dv
from .item import Transaction


@runtime_checkable
class RefModel(Protocol):
    """Capability interface for reference models."""

    latency: int

    def predict(self, txn: Transaction) -> int:
        """Return the expected response payload for a stimulus."""
        ...  # pylint: disable=unnecessary-ellipsis


class _ModelBase:  # pylint: disable=too-few-public-methods
    """Latency and logger shared by the built-in models."""

    def __init__(self, name: str, latency: int = 0, width: int = 8) -> None:
        if latency < 0:
            raise ValueError(f"latency must be >= 0, got {latency}")
        self.name = name
        self.latency = latency
        self.width = width
        self.mask = utils_dv.payload_mask(width)
        self._logger: logging.Logger = utils_dv.component_logger(name)

    @property
    def logger(self) -> logging.Logger:
        """Logger with a familiar .info/.debug/.warning interface."""
        return self._logger


class LoopbackRefModel(_ModelBase):
    """Predicts that the DUT returns each stimulus payload unchanged."""

    def __init__(self, latency: int = 0, width: int = 8) -> None:
        super().__init__("ref_model.loopback", latency, width)

    def predict(self, txn: Transaction) -> int:
        return txn.payload & self.mask


class InvertRefModel(_ModelBase):
    """Predicts the bitwise inverse of the stimulus within the payload width."""

    def __init__(self, latency: int = 0, width: int = 8) -> None:
        super().__init__("ref_model.invert", latency, width)

    def predict(self, txn: Transaction) -> int:
        return ~txn.payload & self.mask


class IncrementRefModel(_ModelBase):
    """Predicts stimulus + 1, without wrapping."""

    def __init__(self, latency: int = 0, width: int = 8) -> None:
        super().__init__("ref_model.increment", latency, width)

    def predict(self, txn: Transaction) -> int:
        return txn.payload + 1


REF_MODELS: dict[str, Callable[[int, int], RefModel]] = {
    "loopback": LoopbackRefModel,
    "invert": InvertRefModel,
    "increment": IncrementRefModel,
}


def make_ref_model(name: str, latency: int = 0, width: int = 8) -> RefModel:
    """Return the named reference model configured with latency and width."""
    try:
        factory = REF_MODELS[name]
    except KeyError:
        raise ValueError(
            f"unknown reference model {name!r}; choose from {sorted(REF_MODELS)}"
        ) from None
    return factory(latency, width)
