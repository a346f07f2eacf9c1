# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/tools/test_dv_run.py

"""Tests for the dv-run command line."""

from __future__ import annotations

import json

import pytest

from . import dv_run


@pytest.fixture(autouse=True)
def no_env_overrides(monkeypatch):
    monkeypatch.delenv("PLUSARGS", raising=False)
    monkeypatch.delenv("LINKDV_PLUSARGS", raising=False)
    for name in ("SEED", "GENERATION_POLICY", "MAX_ITERATIONS", "COVERAGE_THRESHOLD"):
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"LINKDV_{name}", raising=False)


def test_directed_run_passes_and_saves(tmp_path, capsys) -> None:
    outdir = tmp_path / "out"
    plan = tmp_path / "plan.yaml"
    plan.write_text(
        "bins:\n"
        "  - {name: zero, equals: 0x00}\n"
        "  - {name: all_ones, equals: 0xFF}\n"
        "  - {name: alternating, equals: 0x55}\n"
    )
    rc = dv_run.main(
        [
            "--outdir",
            str(outdir),
            "--plan",
            str(plan),
            "--policy",
            "directed",
            "--directed-values",
            "0x00",
            "0xFF",
            "0x55",
            "--ref-latency",
            "0",
            "--verbosity",
            "warning",
        ]
    )
    assert rc == 0
    assert "PASS" in capsys.readouterr().out
    scalars = json.loads((outdir / "results_scalars.json").read_text())
    assert scalars["iterations"] == 3
    assert (outdir / "results_coverage.yaml").exists()
    assert (outdir / "results_summary.txt").exists()
    assert (outdir / "run.log").exists()
    cfg = json.loads((outdir / "run_config.json").read_text())
    assert cfg["directed_values"] == [0x00, 0xFF, 0x55]


def test_faulty_dut_fails(tmp_path) -> None:
    rc = dv_run.main(
        [
            "--outdir",
            str(tmp_path / "out"),
            "--policy",
            "coverage-directed",
            "--seed",
            "7",
            "--corrupt-mask",
            "0x01",
            "--results-name",
            "corrupt",
            "--verbosity",
            "critical",
        ]
    )
    assert rc == 1
    failures = json.loads((tmp_path / "out" / "corrupt_failures.json").read_text())
    assert failures["failures"]
    assert all(f["kind"] == "mismatch" for f in failures["failures"])


def test_config_file_and_flag_precedence(tmp_path) -> None:
    config = tmp_path / "run.yaml"
    config.write_text("seed: 3\nmax_iterations: 4\ncoverage_threshold: 100\n")
    rc = dv_run.main(
        [
            "--outdir",
            str(tmp_path / "out"),
            "--config",
            str(config),
            "--max-iterations",
            "2",
            "--verbosity",
            "critical",
        ]
    )
    cfg = json.loads((tmp_path / "out" / "run_config.json").read_text())
    assert cfg["seed"] == 3
    assert cfg["max_iterations"] == 2
    assert rc == 1


@pytest.mark.parametrize(
    "extra",
    [
        ["--policy", "directed"],
        ["--threshold", "120"],
        ["--seed", "not-a-seed"],
        ["--config", "missing.yaml"],
        ["--plan", "missing.yaml"],
        ["--dut-ready-period", "0"],
    ],
)
def test_bad_input_exits(tmp_path, extra) -> None:
    with pytest.raises(SystemExit) as ei:
        dv_run.main(["--outdir", str(tmp_path / "out"), "--verbosity", "critical", *extra])
    assert "[dv-run]" in str(ei.value.code)
