# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/test_utils.py

"""Tests for the shared utilities."""

from __future__ import annotations

import logging
import random

import pytest

from linkdv import utils


def test_normalize_seed() -> None:
    rng = random.Random(1)
    assert utils.normalize_seed(rng, "42") == 42
    assert utils.normalize_seed(rng, "0x10") == 16
    assert 0 <= utils.normalize_seed(rng, "random") < 2**32
    with pytest.raises(SystemExit):
        utils.normalize_seed(rng, "forty-two")


def test_ensure_dir(tmp_path) -> None:
    d = tmp_path / "a" / "b"
    with pytest.raises(FileNotFoundError):
        utils.ensure_dir(d)
    assert utils.ensure_dir(d, True) == d.resolve()
    f = tmp_path / "file"
    f.write_text("x")
    with pytest.raises(NotADirectoryError):
        utils.ensure_dir(f)


def test_log_file_has_no_colors(tmp_path) -> None:
    log_file = tmp_path / "run.log"
    utils.configure_logger("info", log_file)
    logging.getLogger("dv.test").info(utils.green("PASS"))
    root = logging.getLogger()
    for h in root.handlers:
        h.close()
    root.handlers.clear()
    text = log_file.read_text()
    assert "PASS" in text
    assert "\033[" not in text


def test_coverage_plot_saves_png(tmp_path) -> None:
    p = utils.CoveragePlot(tmp_path / "plots", title="closure")
    p.add_history([0.0, 50.0, 100.0], label="coverage")
    p.add_threshold(100.0)
    path = p.save("plot")
    assert path.exists()
    assert path.suffix == ".png"
