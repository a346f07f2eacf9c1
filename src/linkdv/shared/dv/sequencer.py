# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/sequencer.py

"""Stimulus sequencer and its pluggable generation policies."""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Protocol, Sequence

from . import utils_dv
from .clock import LogicalClock
from .coverage import CoverBin
from .errors import ConstraintUnsatisfiable
from .item import IdAllocator, Transaction, TransactionKind

PayloadPredicate = Callable[[int], bool]


@dataclass(frozen=True)
class WeightedRange:
    """Inclusive payload range [lo, hi] with a relative selection weight."""

    lo: int
    hi: int
    weight: int = 1

    def __post_init__(self) -> None:
        if self.lo < 0 or self.lo > self.hi:
            raise ValueError(f"invalid range [{self.lo}, {self.hi}]")
        if self.weight <= 0:
            raise ValueError(f"range weight must be > 0, got {self.weight}")

    def __contains__(self, value: object) -> bool:
        return isinstance(value, int) and self.lo <= value <= self.hi


class PayloadConstraints:
    """Constrained distribution for stimulus payloads.

    The legal domain is the union of the weighted ranges and the explicit
    value set (the whole payload width if both are empty), minus the
    excluded values, filtered by any extra predicates. draw() produces a
    candidate from the weighted domain; satisfied() decides legality.
    Explicit values each carry weight 1.

    Example:
        >>> c = PayloadConstraints(width=8,
        ...                        ranges=[WeightedRange(0x00, 0x0F, 3)],
        ...                        exclude=[0x07])
        >>> c.satisfied(0x07)
        False
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        width: int = 8,
        ranges: Iterable[WeightedRange] = (),
        values: Iterable[int] = (),
        exclude: Iterable[int] = (),
        predicates: Iterable[PayloadPredicate] = (),
    ) -> None:
        self.width = width
        self.mask = utils_dv.payload_mask(width)
        self.ranges: tuple[WeightedRange, ...] = tuple(ranges)
        self.values: tuple[int, ...] = tuple(values)
        self.exclude: frozenset[int] = frozenset(exclude)
        self.predicates: tuple[PayloadPredicate, ...] = tuple(predicates)
        for r in self.ranges:
            if r.hi > self.mask:
                raise ValueError(f"range [{r.lo}, {r.hi}] exceeds {width}-bit payload")
        for v in self.values:
            utils_dv.to_payload(v, width)
        self._sources: tuple[WeightedRange, ...] = self.ranges + tuple(
            WeightedRange(v, v) for v in self.values
        )
        self._weights = [r.weight for r in self._sources]

    def draw(self, rng: random.Random) -> int:
        """Return one candidate from the weighted domain (legality unchecked)."""
        if not self._sources:
            return rng.randint(0, self.mask)
        src = rng.choices(self._sources, weights=self._weights)[0]
        return rng.randint(src.lo, src.hi)

    def satisfied(self, value: int) -> bool:
        """Return True if value is a legal payload."""
        if value < 0 or value > self.mask or value in self.exclude:
            return False
        if self._sources and not any(value in r for r in self._sources):
            return False
        return all(p(value) for p in self.predicates)

    def legal_draw(self, rng: random.Random, retry_cap: int, policy: str) -> int:
        """Draw until a legal payload appears, at most retry_cap times."""
        for _ in range(retry_cap):
            v = self.draw(rng)
            if self.satisfied(v):
                return v
        raise ConstraintUnsatisfiable(policy, retry_cap)


class GenerationPolicy(Protocol):
    """Capability interface implemented by every generation policy."""

    name: str

    def reset(self) -> None:
        """Return to the start of the sequence."""

    def generate(self, rng: random.Random) -> int | None:
        """Return the next payload, or None at end of sequence."""

    def update_gaps(self, bins: Sequence[CoverBin]) -> None:
        """Receive the currently unhit coverage bins."""

    def extend(self) -> bool:
        """Start another batch after end of sequence; False if not possible."""


class DirectedPolicy:
    """Replays a fixed ordered list of payloads."""

    name = "directed"

    def __init__(self, values: Sequence[int]) -> None:
        self.values: tuple[int, ...] = tuple(values)
        self._index = 0

    def reset(self) -> None:
        self._index = 0

    def generate(self, rng: random.Random) -> int | None:
        if self._index >= len(self.values):
            return None
        v = self.values[self._index]
        self._index += 1
        return v

    def update_gaps(self, bins: Sequence[CoverBin]) -> None:
        pass

    def extend(self) -> bool:
        return False


class RandomPolicy:
    """Constrained-random payloads, optionally a fixed number of them."""

    name = "random"

    def __init__(
        self,
        constraints: PayloadConstraints,
        retry_cap: int = 100,
        count: int | None = None,
    ) -> None:
        self.constraints = constraints
        self.retry_cap = retry_cap
        self.count = count
        self._emitted = 0

    def reset(self) -> None:
        self._emitted = 0

    def generate(self, rng: random.Random) -> int | None:
        if self.count is not None and self._emitted >= self.count:
            return None
        v = self.constraints.legal_draw(rng, self.retry_cap, self.name)
        self._emitted += 1
        return v

    def update_gaps(self, bins: Sequence[CoverBin]) -> None:
        pass

    def extend(self) -> bool:
        return False


class CoverageDirectedPolicy:
    """Constrained-random payloads biased toward unhit coverage bins.

    For each payload an unhit bin is picked at random and a value aimed at it
    is proposed: one of the bin's candidates when it has some, otherwise a
    constrained draw checked against the bin predicate. Ordered sequence bins
    are proposed element by element: the next value is the one that extends
    the longest prefix of the sequence the recent payloads end with, and a
    sequence already under way is continued before any other gap. At most
    bias_attempts proposals are made; when none is legal, or when there are
    no gaps left, the payload is a uniform constrained draw.

    With batch set, end of sequence is reported after each batch of that
    many payloads and extend() opens the next one.
    """

    name = "coverage-directed"

    def __init__(  # pylint: disable=too-many-arguments
        self,
        constraints: PayloadConstraints,
        retry_cap: int = 100,
        bias_attempts: int = 32,
        batch: int | None = None,
        history_depth: int = 8,
    ) -> None:
        self.constraints = constraints
        self.retry_cap = retry_cap
        self.bias_attempts = bias_attempts
        self.batch = batch
        self._gaps: tuple[CoverBin, ...] = ()
        self._emitted = 0
        self._history: deque[int] = deque(maxlen=history_depth)
        self.biased_hits = 0

    def reset(self) -> None:
        self._gaps = ()
        self._emitted = 0
        self._history.clear()
        self.biased_hits = 0

    def update_gaps(self, bins: Sequence[CoverBin]) -> None:
        self._gaps = tuple(bins)

    def extend(self) -> bool:
        self._emitted = 0
        return True

    def generate(self, rng: random.Random) -> int | None:
        if self.batch is not None and self._emitted >= self.batch:
            return None
        v = self._biased(rng)
        if v is None:
            v = self.constraints.legal_draw(rng, self.retry_cap, self.name)
        else:
            self.biased_hits += 1
        self._emitted += 1
        self._history.append(v)
        return v

    def _biased(self, rng: random.Random) -> int | None:
        if not self._gaps:
            return None
        history = tuple(self._history)
        v = self._continue_sequence(history)
        if v is not None:
            return v
        for _ in range(self.bias_attempts):
            target = rng.choice(self._gaps)
            if target.candidates:
                v = (
                    _next_in_sequence(tuple(target.candidates), history)
                    if target.context
                    else rng.choice(target.candidates)
                )
                if self.constraints.satisfied(v):
                    return v
                continue
            v = self.constraints.draw(rng)
            trial = Transaction(
                id=-1, payload=v, kind=TransactionKind.STIMULUS, timestamp=0
            )
            if self.constraints.satisfied(v) and target.predicate(trial, history):
                return v
        return None

    def _continue_sequence(self, history: tuple[int, ...]) -> int | None:
        # an unhit sequence bin whose prefix was just emitted gets its next element
        for target in self._gaps:
            if not (target.context and target.candidates):
                continue
            seq = tuple(target.candidates)
            if _prefix_len(seq, history) == 0:
                continue
            v = _next_in_sequence(seq, history)
            if self.constraints.satisfied(v):
                return v
        return None


def _prefix_len(seq: tuple[int, ...], history: tuple[int, ...]) -> int:
    """Length of the longest proper prefix of seq that history ends with."""
    for k in range(min(len(seq) - 1, len(history)), 0, -1):
        if history[-k:] == seq[:k]:
            return k
    return 0


def _next_in_sequence(seq: tuple[int, ...], history: tuple[int, ...]) -> int:
    """Element of seq that extends the prefix history ends with."""
    return seq[_prefix_len(seq, history)]


POLICY_NAMES: tuple[str, ...] = ("directed", "random", "coverage-directed")


def make_policy(  # pylint: disable=too-many-arguments
    name: str,
    *,
    values: Sequence[int] = (),
    constraints: PayloadConstraints | None = None,
    retry_cap: int = 100,
    bias_attempts: int = 32,
    count: int | None = None,
    history_depth: int = 8,
) -> GenerationPolicy:
    """Return the generation policy selected by name."""
    cons = constraints if constraints is not None else PayloadConstraints()
    if name == "directed":
        return DirectedPolicy(values)
    if name == "random":
        return RandomPolicy(cons, retry_cap=retry_cap, count=count)
    if name == "coverage-directed":
        return CoverageDirectedPolicy(
            cons,
            retry_cap=retry_cap,
            bias_attempts=bias_attempts,
            batch=count,
            history_depth=history_depth,
        )
    raise ValueError(f"unknown generation policy {name!r}; choose from {POLICY_NAMES}")


class Sequencer:
    """Lazy, restartable source of stimulus transactions.

    The sequencer owns a private random.Random so that restart(seed) with the
    same policy reproduces the identical payload sequence regardless of any
    other randomness in the process. Ids come from the run's shared
    allocator; timestamps from the logical clock when one is attached.

    The closure controller is the single caller, so no locking is needed.

    Example:
        >>> sqr = Sequencer(DirectedPolicy([0x00, 0xFF]), IdAllocator(), seed=1)
        >>> [t.payload for t in sqr]
        [0, 255]
    """

    def __init__(
        self,
        policy: GenerationPolicy,
        ids: IdAllocator,
        seed: int = 0,
        clock: LogicalClock | None = None,
        name: str = "sqr",
    ) -> None:
        self.policy = policy
        self.ids = ids
        self.clock = clock
        self.seed = seed
        self.logger: logging.Logger = utils_dv.component_logger(name)
        self._rng = random.Random(seed)
        self.generated: int = 0
        self._ended = False

    def restart(self, seed: int | None = None) -> None:
        """Re-seed and rewind the policy to the start of its sequence."""
        if seed is not None:
            self.seed = seed
        self.logger.debug("restart seed=%d policy=%s", self.seed, self.policy.name)
        self._rng = random.Random(self.seed)
        self.policy.reset()
        self.generated = 0
        self._ended = False

    def update_gaps(self, bins: Sequence[CoverBin]) -> None:
        """Pass the unhit coverage bins to the policy."""
        self.policy.update_gaps(bins)

    def extend(self) -> bool:
        """Ask the policy to continue after end of sequence."""
        extended = self.policy.extend()
        if extended:
            self._ended = False
            self.logger.debug("extended after %d transactions", self.generated)
        return extended

    def next(self) -> Transaction | None:
        """Return the next stimulus, or None at end of sequence."""
        if self._ended:
            return None
        payload = self.policy.generate(self._rng)
        if payload is None:
            self._ended = True
            self.logger.debug("end of sequence after %d transactions", self.generated)
            return None
        txn = Transaction(
            id=self.ids.next_id(),
            payload=payload,
            kind=TransactionKind.STIMULUS,
            timestamp=self.clock.now if self.clock is not None else 0,
        )
        self.generated += 1
        return txn

    def __iter__(self) -> Iterator[Transaction]:
        return self

    def __next__(self) -> Transaction:
        txn = self.next()
        if txn is None:
            raise StopIteration
        return txn
