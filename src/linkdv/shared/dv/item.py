# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/item.py

"""Transactions and expected-queue entries."""

from __future__ import annotations

import itertools
import json
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class TransactionKind(str, Enum):
    """Direction of a transaction relative to the DUT."""

    STIMULUS = "stimulus"
    RESPONSE = "response"


@dataclass(frozen=True)
class Transaction:
    """One stimulus or observed response.

    Transactions are immutable: the sequencer creates stimulus, the monitor
    reconstructs responses, and every consumer receives the same object
    without being able to change it.

    Attributes:
        id: Run-unique, strictly increasing sequence number
        payload: Unsigned data value of the configured payload width
        kind: STIMULUS (driven) or RESPONSE (observed)
        timestamp: Logical tick at which it was issued or observed

    Example:
        >>> t = Transaction(id=0, payload=0xFF, kind=TransactionKind.STIMULUS,
        ...                 timestamp=3)
        >>> str(t)
        '{"id": 0, "kind": "stimulus", "payload": 255, "timestamp": 3}'
    """

    id: int
    payload: int
    kind: TransactionKind
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        """Structured view for logging/JSON."""
        d = asdict(self)
        d["kind"] = self.kind.value
        return d

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)


@dataclass(frozen=True)
class ExpectedEntry:
    """Reference-model prediction waiting for its observed response."""

    txn_id: int
    payload: int
    issued_at: int
    due_tick: int

    def to_dict(self) -> dict[str, Any]:
        """Structured view for logging/JSON."""
        return asdict(self)


class IdAllocator:
    """Hands out run-unique, strictly increasing transaction ids.

    One allocator is owned by each run and shared by the sequencer (stimulus)
    and the monitor (responses), so ids increase across both kinds.
    """

    def __init__(self, start: int = 0) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()
        self._last: int | None = None

    def next_id(self) -> int:
        """Return the next id."""
        with self._lock:
            self._last = next(self._counter)
            return self._last

    @property
    def last(self) -> int | None:
        """Most recently allocated id, or None if none yet."""
        return self._last
