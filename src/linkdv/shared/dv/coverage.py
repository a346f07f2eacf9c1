# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/coverage.py

"""Functional coverage bins and the coverage tracker."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import yaml

from . import utils_dv
from .item import Transaction, TransactionKind

# predicate(txn, history) where history holds the previous payloads of the
# same kind, oldest first
Predicate = Callable[[Transaction, tuple[int, ...]], bool]

ALL_KINDS: frozenset[TransactionKind] = frozenset(TransactionKind)


@dataclass(frozen=True)
class CoverBin:
    """One named functional scenario.

    Attributes:
        name: Unique bin name within a plan
        predicate: Called as predicate(txn, history); True means a hit
        candidates: Payloads known to hit the bin, used to bias generation
        kinds: Transaction kinds this bin samples (default: both)
        context: Number of previous same-kind payloads the predicate needs
        description: Free text carried into reports
    """

    name: str
    predicate: Predicate
    candidates: Sequence[int] = ()
    kinds: frozenset[TransactionKind] = ALL_KINDS
    context: int = 0
    description: str = ""

    def matches(self, txn: Transaction, history: tuple[int, ...] = ()) -> bool:
        """Return True if txn hits this bin."""
        return txn.kind in self.kinds and bool(self.predicate(txn, history))


def _kinds(kinds: Iterable[TransactionKind | str] | None) -> frozenset[TransactionKind]:
    if kinds is None:
        return ALL_KINDS
    return frozenset(TransactionKind(k) for k in kinds)


def equals_bin(
    name: str, value: int, kinds: Iterable[TransactionKind | str] | None = None
) -> CoverBin:
    """Bin hit by one exact payload value."""
    return CoverBin(
        name=name,
        predicate=lambda t, _h: t.payload == value,
        candidates=(value,),
        kinds=_kinds(kinds),
        description=f"payload == 0x{value:x}",
    )


def range_bin(
    name: str, lo: int, hi: int, kinds: Iterable[TransactionKind | str] | None = None
) -> CoverBin:
    """Bin hit by any payload in [lo, hi]."""
    if lo > hi:
        raise ValueError(f"{name}: empty range [{lo}, {hi}]")
    return CoverBin(
        name=name,
        predicate=lambda t, _h: lo <= t.payload <= hi,
        candidates=range(lo, hi + 1),
        kinds=_kinds(kinds),
        description=f"0x{lo:x} <= payload <= 0x{hi:x}",
    )


def values_bin(
    name: str,
    values: Iterable[int],
    kinds: Iterable[TransactionKind | str] | None = None,
) -> CoverBin:
    """Bin hit by any payload in a set."""
    vals = tuple(sorted(set(values)))
    if not vals:
        raise ValueError(f"{name}: empty value set")
    members = frozenset(vals)
    return CoverBin(
        name=name,
        predicate=lambda t, _h: t.payload in members,
        candidates=vals,
        kinds=_kinds(kinds),
        description=f"payload in {{{', '.join(f'0x{v:x}' for v in vals)}}}",
    )


def sequence_bin(
    name: str,
    sequence: Sequence[int],
    kinds: Iterable[TransactionKind | str] | None = None,
) -> CoverBin:
    """Bin hit when consecutive same-kind payloads end with `sequence`."""
    seq = tuple(sequence)
    if not seq:
        raise ValueError(f"{name}: empty sequence")
    need = len(seq) - 1

    def _pred(t: Transaction, h: tuple[int, ...]) -> bool:
        if t.payload != seq[-1] or len(h) < need:
            return False
        return need == 0 or h[-need:] == seq[:-1]

    return CoverBin(
        name=name,
        predicate=_pred,
        candidates=seq,
        kinds=_kinds(kinds),
        context=need,
        description=" -> ".join(f"0x{v:x}" for v in seq),
    )


@dataclass(frozen=True)
class BinReport:
    """Snapshot of one bin."""

    name: str
    hit_count: int
    hit: bool
    percent: float
    description: str = ""


@dataclass(frozen=True)
class CoverageReport:
    """Snapshot of the whole coverage model."""

    bins: tuple[BinReport, ...] = field(default_factory=tuple)
    overall: float = 100.0

    @property
    def per_bin(self) -> dict[str, float]:
        """Bin name -> coverage percentage."""
        return {b.name: b.percent for b in self.bins}

    def to_dict(self) -> dict[str, Any]:
        """Structured view for YAML/JSON."""
        return {
            "overall": self.overall,
            "bins": {
                b.name: {
                    "hit_count": b.hit_count,
                    "hit": b.hit,
                    "percent": b.percent,
                    "description": b.description,
                }
                for b in self.bins
            },
        }


class CoverageTracker:
    """Records which bins of a fixed coverage plan have been hit.

    Both the driver (stimulus) and the monitor's coverage subscriber
    (responses) call sample(). All reads and updates of the bin table go
    through one lock so hit counts stay consistent. The bin set never
    changes after construction and hit counts only grow.

    Overall coverage is the percentage of bins hit at least once. An empty
    plan is trivially 100% covered.

    Example:
        >>> cov = CoverageTracker([equals_bin("all_ones", 0xFF)])
        >>> cov.sample(txn)
        ('all_ones',)
        >>> cov.report().overall
        100.0
    """

    def __init__(
        self,
        plan: Sequence[CoverBin],
        history_depth: int = 8,
        name: str = "coverage",
    ) -> None:
        self.logger = utils_dv.component_logger(name)
        self._bins: tuple[CoverBin, ...] = tuple(plan)
        names = [b.name for b in self._bins]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate coverage bin names: {dupes}")
        depth = max([history_depth, *(b.context for b in self._bins)])
        self._hits: dict[str, int] = {n: 0 for n in names}
        self._history: dict[TransactionKind, deque[int]] = {
            k: deque(maxlen=depth) for k in TransactionKind
        }
        self._lock = threading.Lock()
        self.sample_count: int = 0

    @property
    def bins(self) -> tuple[CoverBin, ...]:
        """The coverage plan, in declaration order."""
        return self._bins

    def sample(self, txn: Transaction) -> tuple[str, ...]:
        """Evaluate every bin against txn; return the names of newly hit bins."""
        newly_hit: list[str] = []
        with self._lock:
            self.sample_count += 1
            history = self._history[txn.kind]
            ctx = tuple(history)
            for b in self._bins:
                if b.matches(txn, ctx):
                    if self._hits[b.name] == 0:
                        newly_hit.append(b.name)
                    self._hits[b.name] += 1
            history.append(txn.payload)
        for n in newly_hit:
            self.logger.debug("bin %s first hit by %s", n, txn)
        return tuple(newly_hit)

    def hit_count(self, name: str) -> int:
        """Return the hit count of a bin."""
        with self._lock:
            return self._hits[name]

    def gaps(self) -> tuple[CoverBin, ...]:
        """Return the bins not yet hit, in plan order."""
        with self._lock:
            return tuple(b for b in self._bins if self._hits[b.name] == 0)

    def overall(self) -> float:
        """Return overall coverage in percent."""
        with self._lock:
            return self._overall_locked()

    def _overall_locked(self) -> float:
        if not self._bins:
            return 100.0
        hit = sum(1 for n in self._hits.values() if n > 0)
        return 100.0 * hit / len(self._bins)

    def report(self) -> CoverageReport:
        """Return a snapshot of per-bin and overall coverage."""
        with self._lock:
            bins = tuple(
                BinReport(
                    name=b.name,
                    hit_count=self._hits[b.name],
                    hit=self._hits[b.name] > 0,
                    percent=100.0 if self._hits[b.name] > 0 else 0.0,
                    description=b.description,
                )
                for b in self._bins
            )
            return CoverageReport(bins=bins, overall=self._overall_locked())

    def report_lines(self) -> list[str]:
        """Human-readable per-bin lines for logging."""
        rep = self.report()
        lines = [f"overall coverage: {rep.overall:.1f}% ({len(rep.bins)} bins)"]
        for b in rep.bins:
            mark = "HIT " if b.hit else "MISS"
            lines.append(f"  {mark} {b.name:<24} hits={b.hit_count:<6} {b.description}")
        return lines

    def export_yaml(self, path: str | Path) -> Path:
        """Write the current report as YAML and return the path."""
        p = Path(path)
        p.write_text(yaml.safe_dump(self.report().to_dict(), sort_keys=False))
        self.logger.debug("Coverage YAML written to %s", p)
        return p
