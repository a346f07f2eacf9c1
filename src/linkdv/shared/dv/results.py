# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/results.py

"""Closure states and the immutable run result."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from tabulate import tabulate

from linkdv.utils import CoveragePlot, ensure_dir

from .coverage import CoverageReport

logger = logging.getLogger(__name__)


class ClosureState(str, Enum):
    """Closure controller states."""

    RUNNING = "running"
    CONVERGED = "converged"
    BUDGET_EXHAUSTED = "budget_exhausted"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        """True for every state except RUNNING."""
        return self is not ClosureState.RUNNING


@dataclass(frozen=True)
class RunResult:  # pylint: disable=too-many-instance-attributes
    """Outcome of one verification run, produced once by the controller.

    Counters follow the accounting rules issued == driven and
    observed == checked + spurious. coverage holds per-bin and overall
    percentages; coverage_history holds the overall percentage after every
    iteration.

    A run passes only when no failure was recorded, no fatal error occurred,
    and the run converged (or convergence was not required).
    """

    state: ClosureState
    reason: str
    passed: bool
    iterations: int
    driven: int
    issued: int
    observed: int
    checked: int
    passed_checks: int
    mismatches: int
    spurious: int
    missing: int
    coverage: CoverageReport
    coverage_history: tuple[float, ...] = ()
    failures: tuple[dict[str, Any], ...] = ()
    fatal: dict[str, Any] | None = None
    last_tick: int = 0
    seed: int = 0
    policy: str = ""
    threshold: float = 100.0
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def verdict(self) -> str:
        """PASS or FAIL."""
        return "PASS" if self.passed else "FAIL"

    @property
    def exit_code(self) -> int:
        """Process exit code: 0 iff the run passed."""
        return 0 if self.passed else 1

    @property
    def overall_coverage(self) -> float:
        """Overall coverage percentage."""
        return self.coverage.overall

    @property
    def per_bin_coverage(self) -> dict[str, float]:
        """Bin name -> coverage percentage."""
        return self.coverage.per_bin

    def scalars_to_dict(self) -> dict[str, int | float | str | bool]:
        """Scalar fields only, for the JSON summary."""
        return {
            "verdict": self.verdict,
            "state": self.state.value,
            "reason": self.reason,
            "passed": self.passed,
            "iterations": self.iterations,
            "driven": self.driven,
            "issued": self.issued,
            "observed": self.observed,
            "checked": self.checked,
            "passed_checks": self.passed_checks,
            "mismatches": self.mismatches,
            "spurious": self.spurious,
            "missing": self.missing,
            "overall_coverage": self.coverage.overall,
            "last_tick": self.last_tick,
            "seed": self.seed,
            "policy": self.policy,
            "threshold": self.threshold,
        }

    def to_dict(self) -> dict[str, Any]:
        """Full structured view."""
        d: dict[str, Any] = dict(self.scalars_to_dict())
        d["coverage"] = self.coverage.to_dict()
        d["coverage_history"] = list(self.coverage_history)
        d["failures"] = list(self.failures)
        d["fatal"] = self.fatal
        if self.extra:
            d["extra"] = dict(self.extra)
        return d

    def __str__(self) -> str:
        """Return JSON-formatted string of scalar results only."""
        return json.dumps(self.scalars_to_dict(), indent=2)

    def summary(self) -> str:
        """Return a two-column table of the headline numbers."""
        rows: list[tuple[str, Any]] = [
            ("verdict", self.verdict),
            ("state", f"{self.state.value} ({self.reason})"),
            ("policy / seed", f"{self.policy} / {self.seed}"),
            ("iterations", self.iterations),
            ("driven / issued", f"{self.driven} / {self.issued}"),
            ("observed", self.observed),
            ("checked / passed", f"{self.checked} / {self.passed_checks}"),
            ("mismatches", self.mismatches),
            ("spurious", self.spurious),
            ("missing", self.missing),
            ("coverage", f"{self.coverage.overall:.1f}% (threshold {self.threshold:g}%)"),
            ("last tick", self.last_tick),
        ]
        if self.fatal is not None:
            rows.append(("fatal", f"{self.fatal.get('kind')}: {self.fatal.get('message')}"))
        table = tabulate(rows, headers=["metric", "value"], tablefmt="github")
        bins = [(b.name, b.hit_count, f"{b.percent:.0f}%") for b in self.coverage.bins]
        if bins:
            table += "\n\n" + tabulate(
                bins, headers=["bin", "hits", "coverage"], tablefmt="github"
            )
        return table

    def save_scalars(self, outdir: Path, name: str) -> Path:
        """Save scalar results to a JSON file."""
        path = outdir / f"{name}_scalars.json"
        path.write_text(json.dumps(self.scalars_to_dict(), indent=2) + "\n")
        return path

    def save_coverage(self, outdir: Path, name: str) -> Path:
        """Save per-bin coverage to a YAML file."""
        path = outdir / f"{name}_coverage.yaml"
        path.write_text(yaml.safe_dump(self.coverage.to_dict(), sort_keys=False))
        return path

    def save_failures(self, outdir: Path, name: str) -> Path:
        """Save the failure log and fatal cause to a JSON file."""
        path = outdir / f"{name}_failures.json"
        data = {"failures": list(self.failures), "fatal": self.fatal}
        path.write_text(json.dumps(data, indent=2) + "\n")
        return path

    def save_plot(self, outdir: Path, name: str) -> Path | None:
        """Save a line plot of overall coverage per iteration."""
        if not self.coverage_history:
            return None
        p = CoveragePlot(outdir, title=f"Coverage closure ({self.verdict})")
        p.add_history(self.coverage_history, label="overall coverage")
        p.add_threshold(self.threshold)
        return p.save(f"{name}_coverage_plot")

    def save(self, outdir: str | Path, name: str = "results") -> Path:
        """Save scalars, coverage, failures and the coverage plot."""
        out = ensure_dir(outdir, True)
        self.save_scalars(out, name)
        self.save_coverage(out, name)
        self.save_failures(out, name)
        self.save_plot(out, name)
        (out / f"{name}_summary.txt").write_text(self.summary() + "\n")
        logger.info("Results saved to %s", out)
        return out
