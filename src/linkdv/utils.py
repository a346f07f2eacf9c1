# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/utils.py

"""Utility functions for dv-run, result reporting and the verification core."""

from __future__ import annotations

import logging
import random
import re
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt

RED = "\033[31m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class NoColorFormatter(logging.Formatter):
    """Formatter for log files: drops the ANSI colour codes of green()/red()."""

    ANSI_ESCAPE = re.compile(r"\033\[[0-9;]*m")

    def format(self, record: logging.LogRecord) -> str:
        return self.ANSI_ESCAPE.sub("", super().format(record))


class CoveragePlot:
    """Line plot of overall coverage per iteration against the closure threshold.

    Example:
        >>> plot = CoveragePlot("out", title="Coverage closure (PASS)")
        >>> plot.add_history([33.3, 66.7, 100.0], label="overall coverage")
        >>> plot.add_threshold(100.0)
        >>> plot.save("results_coverage_plot")
    """

    def __init__(
        self,
        outdir: str | Path = "output",
        title: str = "",
        figsize: tuple[int, int] = (10, 6),
    ) -> None:
        self.outdir = ensure_dir(outdir, True)
        self.fig, self.ax = plt.subplots(figsize=figsize)
        self.ax.set_xlabel("Iteration")
        self.ax.set_ylabel("Coverage (%)")
        self.ax.set_ylim(0.0, 105.0)
        if title:
            self.ax.set_title(title)

    def add_history(
        self, history: Sequence[float], label: str, color: str = "blue"
    ) -> None:
        """Plot one coverage value per iteration, starting at iteration 1."""
        xs = range(1, len(history) + 1)
        self.ax.plot(xs, list(history), label=label, color=color, marker=".", linewidth=2.0)

    def add_threshold(self, threshold: float, color: str = "red") -> None:
        """Draw the closure threshold as a dashed horizontal line."""
        self.ax.axhline(
            y=threshold,
            label=f"threshold {threshold:g}%",
            color=color,
            linestyle="--",
            linewidth=1.0,
        )

    def save(self, filename: str, fmt: str = "png") -> Path:
        """Write the figure to outdir and close it."""
        self.ax.grid(True)
        self.ax.legend(loc="lower right")
        self.fig.tight_layout()
        path = self.outdir / f"{filename}.{fmt}"
        self.fig.savefig(path)
        plt.close(self.fig)
        logging.debug("Saved plot: %s", path)
        return path


def configure_logger(
    verbosity: str = "info", log_file: Path | None = None
) -> logging.Logger:
    """Send every log record to the console and optionally to a file.

    The root logger is reset on each call, so calling it again (one dv-run
    after another in the same process) does not duplicate output. The file
    copy has colour codes removed.

    Args:
        verbosity: Log level (critical, error, warning, info, debug, notset)
        log_file: Optional log file, overwritten on each call

    Returns:
        This module's logger
    """
    level = verbosity.upper()
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    handlers[0].setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    if log_file:
        fh = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        fh.setFormatter(NoColorFormatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        handlers.append(fh)
    for h in handlers:
        h.setLevel(level)
        root.addHandler(h)
    return logging.getLogger(__name__)


def ensure_dir(d: str | Path, make_if_not_exists: bool = False) -> Path:
    """Return the absolute directory path, creating it on request."""
    path = Path(d)
    if not path.exists() and make_if_not_exists:
        path.mkdir(parents=True, exist_ok=True)
        logging.info("Created directory: %s", path)
    if not path.exists():
        raise FileNotFoundError(f"Directory does not exist: {path}")
    if not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {path}")
    return path.resolve()


def green(s: str) -> str:
    """Wrap text in green ANSI escape codes."""
    return f"{GREEN}{s}{RESET}"


def red(s: str) -> str:
    """Wrap text in red ANSI escape codes."""
    return f"{RED}{s}{RESET}"


def normalize_seed(rng: random.Random, s: str) -> int:
    """Turn a --seed argument into a 32-bit seed.

    Accepts decimal, 0x... hex, or 'rand'/'random'/'auto' for a seed drawn
    from rng. Anything else exits with a dv-run error message.
    """
    if s.lower() in ("rand", "random", "auto"):
        return rng.getrandbits(32)
    try:
        value = int(s, 0)
    except ValueError:
        raise SystemExit(
            f"[dv-run] Invalid seed '{s}'. Use decimal, 0x..., or 'random'."
        ) from None
    return value & 0xFFFF_FFFF
