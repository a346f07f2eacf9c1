# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/config.py

"""Run configuration models (pydantic) and their YAML/environment loading."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Callable, List, Literal, Self

import yaml
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    NonNegativeInt,
    PositiveInt,
    field_validator,
    model_validator,
)

from . import utils_cli
from .ref_model import REF_MODELS
from .sequencer import PayloadConstraints, WeightedRange

logger = logging.getLogger(__name__)


def _parse_int(value: Any) -> Any:
    """Accept '0xFF' style strings as well as plain integers."""
    if isinstance(value, str):
        return int(value, 0)
    return value


# Payload values may be written as hex strings in YAML
PayloadInt = Annotated[NonNegativeInt, BeforeValidator(_parse_int)]

GenerationPolicyName = Literal["directed", "random", "coverage-directed"]


class LinkDvModel(BaseModel):
    """Base model providing JSON serialization and file saving."""

    model_config = ConfigDict(extra="forbid")

    def __str__(self) -> str:
        """Return JSON-formatted string representation of the model."""
        return f"{self.__class__.__name__}:\n" + json.dumps(self.model_dump(), indent=2)

    def save(self, outdir: Path, name: str = "") -> Path:
        """Save the model to a JSON file in the specified output directory.

        Args:
            outdir: Output directory path where the JSON file will be created
            name: Optional name for the output file (defaults to class name)
        """
        name = name if name else self.__class__.__name__
        path = outdir / f"{name}.json"
        path.write_text(json.dumps(self.model_dump(), indent=2) + "\n")
        return path


class RangeModel(LinkDvModel):
    """Weighted inclusive payload range."""

    lo: PayloadInt
    hi: PayloadInt
    weight: PositiveInt = 1

    @model_validator(mode="after")
    def _check_order(self) -> Self:
        if self.lo > self.hi:
            raise ValueError(f"range lo ({self.lo}) must be <= hi ({self.hi})")
        return self


class ConstraintModel(LinkDvModel):
    """Constraints for randomly generated payloads.

    Attributes:
        width: Payload width in bits
        ranges: Weighted ranges making up the legal domain
        values: Explicit legal values (weight 1 each)
        exclude: Values never generated

    With neither ranges nor values, the whole width is legal.
    """

    width: PositiveInt = 8
    ranges: List[RangeModel] = []
    values: List[PayloadInt] = []
    exclude: List[PayloadInt] = []

    @model_validator(mode="after")
    def _check_width(self) -> Self:
        top = (1 << self.width) - 1
        for r in self.ranges:
            if r.hi > top:
                raise ValueError(f"range [{r.lo}, {r.hi}] exceeds {self.width}-bit width")
        for v in [*self.values, *self.exclude]:
            if v > top:
                raise ValueError(f"value {v:#x} exceeds {self.width}-bit width")
        return self

    def to_constraints(self) -> PayloadConstraints:
        """Build the sequencer's constraint object."""
        return PayloadConstraints(
            width=self.width,
            ranges=[WeightedRange(r.lo, r.hi, r.weight) for r in self.ranges],
            values=self.values,
            exclude=self.exclude,
        )


class RunConfig(LinkDvModel):
    """Configuration of one verification run.

    Attributes:
        seed: Random generator seed
        generation_policy: directed, random or coverage-directed
        coverage_threshold: Overall coverage (percent) that counts as closure
        max_iterations: Iteration budget (one iteration drives one stimulus)
        expected_queue_bound: Capacity of the expected queue
        monitor_buffer_bound: Capacity of each monitor subscriber buffer
        reference_model_latency: Ticks between issue and expected response
        reference_model: Name of the reference model variant
        directed_values: Payloads replayed by the directed policy
        sequence_length: Fixed count (random) or batch size (coverage-directed);
            None means unbounded
        constraints: Payload constraints for random generation
        retry_cap: Constraint retries before ConstraintUnsatisfiable
        bias_attempts: Biased proposals per payload in coverage-directed mode
        require_convergence: Only a converged run can pass
        drain_ticks: Minimum tick budget for draining in-flight responses at the
            end, extended to the due tick of the newest prediction
        check_latency: Flag responses observed before their due tick
        history_depth: Previous payloads kept for sequence coverage bins

    Example:
        >>> cfg = RunConfig(generation_policy="directed",
        ...                 directed_values=[0x00, 0xFF, 0x55])
        >>> cfg.payload_width
        8
    """

    seed: NonNegativeInt = 0
    generation_policy: GenerationPolicyName = "random"
    coverage_threshold: float = 100.0
    max_iterations: PositiveInt = 1000
    expected_queue_bound: PositiveInt = 64
    monitor_buffer_bound: PositiveInt = 1024
    reference_model_latency: NonNegativeInt = 1
    reference_model: str = "loopback"
    directed_values: List[PayloadInt] = []
    sequence_length: PositiveInt | None = None
    constraints: ConstraintModel = ConstraintModel()
    retry_cap: PositiveInt = 100
    bias_attempts: NonNegativeInt = 32
    require_convergence: bool = True
    drain_ticks: NonNegativeInt = 16
    check_latency: bool = False
    history_depth: PositiveInt = 8

    @field_validator("coverage_threshold")
    @classmethod
    def _check_threshold(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"coverage_threshold must be within 0..100, got {v}")
        return v

    @field_validator("reference_model")
    @classmethod
    def _check_ref_model(cls, v: str) -> str:
        if v not in REF_MODELS:
            raise ValueError(f"unknown reference model {v!r}; choose from {sorted(REF_MODELS)}")
        return v

    @model_validator(mode="after")
    def _check_directed(self) -> Self:
        if self.generation_policy == "directed" and not self.directed_values:
            raise ValueError("directed_values is required when generation_policy='directed'")
        top = (1 << self.constraints.width) - 1
        for v in self.directed_values:
            if v > top:
                raise ValueError(
                    f"directed value {v:#x} exceeds {self.constraints.width}-bit width"
                )
        return self

    @property
    def payload_width(self) -> int:
        """Payload width in bits."""
        return self.constraints.width

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> Self:
        """Load a configuration from YAML; keyword overrides win over the file."""
        p = Path(path)
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{p}: expected a mapping at top level")
        data.update({k: v for k, v in overrides.items() if v is not None})
        cfg = cls.model_validate(data)
        logger.debug("Loaded %s from %s", cls.__name__, p)
        return cfg

    def with_env_overrides(self) -> Self:
        """Return a copy updated from environment variables and plusargs.

        Recognized settings (NAME or LINKDV_NAME, or +NAME=value):
        SEED, GENERATION_POLICY, COVERAGE_THRESHOLD, MAX_ITERATIONS,
        EXPECTED_QUEUE_BOUND, MONITOR_BUFFER_BOUND, REFERENCE_MODEL_LATENCY,
        REFERENCE_MODEL, SEQUENCE_LENGTH, REQUIRE_CONVERGENCE, CHECK_LATENCY,
        DRAIN_TICKS.
        """
        updates: dict[str, Any] = {}
        for field_name, getter in _ENV_SETTINGS.items():
            key = field_name.upper()
            if utils_cli.has_setting(key):
                updates[field_name] = getter(key, getattr(self, field_name))
        if not updates:
            return self
        logger.info("Configuration overrides from environment: %s", updates)
        return type(self).model_validate({**self.model_dump(), **updates})


_ENV_SETTINGS: dict[str, Callable[[str, Any], Any]] = {
    "seed": utils_cli.get_int_setting,
    "generation_policy": utils_cli.get_str_setting,
    "coverage_threshold": utils_cli.get_float_setting,
    "max_iterations": utils_cli.get_int_setting,
    "expected_queue_bound": utils_cli.get_int_setting,
    "monitor_buffer_bound": utils_cli.get_int_setting,
    "reference_model_latency": utils_cli.get_int_setting,
    "reference_model": utils_cli.get_str_setting,
    "sequence_length": utils_cli.get_int_setting,
    "require_convergence": utils_cli.get_bool_setting,
    "check_latency": utils_cli.get_bool_setting,
    "drain_ticks": utils_cli.get_int_setting,
}
