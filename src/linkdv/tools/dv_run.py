# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/tools/dv_run.py

"""Run one coverage-closure session against the loopback DUT.

The run configuration comes from an optional YAML file, then environment
variables and plusargs (see linkdv.shared.dv.utils_cli), then the command
line flags below, each layer overriding the previous one. The coverage plan
comes from an optional YAML plan file (see linkdv.tools.plan); without one
the loopback default plan is used.

Results are written to the output directory:
- run.log: console log without colors
- <name>_scalars.json, <name>_coverage.yaml, <name>_failures.json
- <name>_coverage_plot.png, <name>_summary.txt
- run_config.json: the configuration actually used

Command-line interface:
    dv-run [--config run.yaml] [--plan plan.yaml] [OPTIONS]

Typical usage:
    # Coverage-directed closure of the default plan
    dv-run --policy coverage-directed --seed 7

    # Directed corner values
    dv-run --policy directed --directed-values 0x00 0xFF 0x55

    # Inject faults into the DUT; the run is expected to fail
    dv-run --corrupt-mask 0x01

Exit status is 0 when the run passes and 1 otherwise.
"""

from __future__ import annotations

import argparse
import logging
import random
import shutil
import time
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError

from linkdv import utils
from linkdv.loopback.dv import LoopbackDut, default_plan
from linkdv.shared.dv import CoverBin, RunConfig, RunResult, run
from linkdv.tools.plan import load_plan

DEFAULT_OUT_DIR = "out_dv_run"
DEFAULT_RESULTS_NAME = "results"


# === CLI ===


def _payload(s: str) -> int:
    try:
        return int(s, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid payload value {s!r}") from exc


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for a closure run.

    Args:
        argv: Command-line arguments to parse. If None, uses sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    ap = argparse.ArgumentParser(
        description="Run a coverage-closure session against the loopback DUT",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Inputs / outputs
    ap.add_argument("--config", type=Path, help="run configuration YAML")
    ap.add_argument("--plan", type=Path, help="coverage plan YAML")
    ap.add_argument("--outdir", default=DEFAULT_OUT_DIR, help="output directory")
    ap.add_argument(
        "--results-name",
        default=DEFAULT_RESULTS_NAME,
        help="prefix of the result files",
    )
    ap.add_argument(
        "--verbosity",
        choices=["critical", "error", "warning", "info", "debug", "notset"],
        default="info",
        help="logging level",
    )

    # Run configuration overrides
    ap.add_argument("--seed", help="seed (decimal, 0x..., or 'random')")
    ap.add_argument(
        "--policy",
        choices=["directed", "random", "coverage-directed"],
        help="generation policy",
    )
    ap.add_argument(
        "--directed-values",
        nargs="+",
        type=_payload,
        metavar="VALUE",
        help="payloads replayed by the directed policy",
    )
    ap.add_argument("--max-iterations", type=int, help="iteration budget")
    ap.add_argument("--threshold", type=float, help="coverage threshold in percent")
    ap.add_argument("--ref-model", help="reference model (loopback, invert, increment)")
    ap.add_argument("--ref-latency", type=int, help="reference model latency in ticks")

    # DUT model
    ap.add_argument("--dut-latency", type=int, default=1, help="DUT latency in ticks")
    ap.add_argument(
        "--dut-ready-period",
        type=int,
        default=1,
        help="DUT accepts stimulus every N ticks",
    )
    ap.add_argument(
        "--corrupt-mask", type=_payload, default=0, help="XOR mask on every response"
    )
    ap.add_argument("--drop-every", type=int, default=0, help="drop every Nth response")
    ap.add_argument(
        "--duplicate-every", type=int, default=0, help="duplicate every Nth response"
    )
    ap.add_argument(
        "--reorder", action="store_true", help="swap each pair of responses"
    )
    return ap.parse_args(argv)


def _get_outdir(user_outdir: str) -> Path:
    """Return a clean output directory."""
    outdir = Path(user_outdir)
    if outdir.exists():
        shutil.rmtree(outdir)
    outdir.mkdir(parents=True)
    return outdir


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Configuration fields given explicitly on the command line."""
    overrides: dict[str, Any] = {
        "generation_policy": args.policy,
        "directed_values": args.directed_values,
        "max_iterations": args.max_iterations,
        "coverage_threshold": args.threshold,
        "reference_model": args.ref_model,
        "reference_model_latency": args.ref_latency,
    }
    if args.seed is not None:
        overrides["seed"] = utils.normalize_seed(random.Random(), args.seed)
    return {k: v for k, v in overrides.items() if v is not None}


def get_config(args: argparse.Namespace, logger: logging.Logger) -> RunConfig:
    """Resolve the run configuration: file, then environment, then flags."""
    try:
        if args.config is not None:
            if not args.config.exists():
                raise SystemExit(f"[dv-run] Config file not found: {args.config}")
            cfg = RunConfig.from_yaml(args.config)
        else:
            cfg = RunConfig()
        cfg = cfg.with_env_overrides()
        overrides = _cli_overrides(args)
        if overrides:
            cfg = RunConfig.model_validate({**cfg.model_dump(), **overrides})
    except (ValidationError, ValueError) as exc:
        raise SystemExit(f"[dv-run] Invalid configuration:\n{exc}") from exc
    logger.debug("%s", cfg)
    return cfg


def get_plan(args: argparse.Namespace, width: int) -> list[CoverBin]:
    """Load the coverage plan, or fall back to the loopback default plan."""
    if args.plan is None:
        return default_plan(width)
    if not args.plan.exists():
        raise SystemExit(f"[dv-run] Plan file not found: {args.plan}")
    try:
        return load_plan(args.plan)
    except (ValidationError, ValueError) as exc:
        raise SystemExit(f"[dv-run] Invalid coverage plan:\n{exc}") from exc


def get_dut(args: argparse.Namespace, width: int) -> LoopbackDut:
    """Build the loopback DUT from the command line."""
    try:
        return LoopbackDut(
            latency=args.dut_latency,
            ready_period=args.dut_ready_period,
            width=width,
            corrupt_mask=args.corrupt_mask,
            drop_every=args.drop_every,
            duplicate_every=args.duplicate_every,
            reorder=args.reorder,
        )
    except ValueError as exc:
        raise SystemExit(f"[dv-run] Invalid DUT settings: {exc}") from exc


def _log_elapsed_time(start_time: float, logger: logging.Logger) -> None:
    elapsed_time = time.time() - start_time
    hours, remainder = divmod(int(elapsed_time), 3600)
    minutes, seconds = divmod(remainder, 60)
    logger.info("Completed in %d:%02d:%02d", hours, minutes, seconds)


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point for a closure run.

    Args:
        argv: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        0 if the run passed, 1 otherwise.
    """
    start_time = time.time()
    args = parse_args(argv)
    outdir = _get_outdir(args.outdir)
    log_file = outdir / "run.log"
    logger = utils.configure_logger(args.verbosity, log_file)
    logger.info("Logging to console and %s", log_file)

    cfg = get_config(args, logger)
    plan = get_plan(args, cfg.payload_width)
    dut = get_dut(args, cfg.payload_width)
    logger.info(
        "policy=%s seed=%d bins=%d threshold=%g%%",
        cfg.generation_policy,
        cfg.seed,
        len(plan),
        cfg.coverage_threshold,
    )

    result: RunResult = run(cfg, dut, plan)
    print(result.summary())
    result.save(outdir, args.results_name)
    cfg.save(outdir, "run_config")

    s = f"[dv-run] {result.verdict}: {result.state.value} ({result.reason})"
    if result.passed:
        logger.info(utils.green(s))
    else:
        logger.error(utils.red(s))
    _log_elapsed_time(start_time, logger)
    return result.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
