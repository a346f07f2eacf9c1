# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/tools/plan.py

"""Coverage plans described in YAML.

A plan file holds a list of bins under `bins:`. Each bin has a name and
exactly one of equals, range, values or sequence; kinds and description
are optional. Payload values may be written in hex.

Example plan.yaml:
    bins:
      - name: zero
        equals: 0x00
      - name: low_quarter
        range: [0x01, 0x3F]
      - name: odd_small
        values: [1, 3, 5, 7]
      - name: zero_then_all_ones
        sequence: [0x00, 0xFF]
        kinds: [stimulus]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Literal, Optional, Self

import yaml
from pydantic import Field, model_validator

from linkdv.shared.dv import (
    CoverBin,
    TransactionKind,
    equals_bin,
    range_bin,
    sequence_bin,
    values_bin,
)
from linkdv.shared.dv.config import LinkDvModel, PayloadInt

logger = logging.getLogger(__name__)

KindName = Literal["stimulus", "response"]


class BinModel(LinkDvModel):
    """One coverage bin as written in a plan file."""

    name: str = Field(min_length=1)
    equals: Optional[PayloadInt] = None
    range: Optional[List[PayloadInt]] = None
    values: Optional[List[PayloadInt]] = None
    sequence: Optional[List[PayloadInt]] = None
    kinds: Optional[List[KindName]] = None
    description: str = ""

    @model_validator(mode="after")
    def _check_shape(self) -> Self:
        given = [
            k
            for k in ("equals", "range", "values", "sequence")
            if getattr(self, k) is not None
        ]
        if len(given) != 1:
            raise ValueError(
                f"bin {self.name!r}: exactly one of equals/range/values/sequence "
                f"is required, got {given or 'none'}"
            )
        if self.range is not None and (
            len(self.range) != 2 or self.range[0] > self.range[1]
        ):
            raise ValueError(f"bin {self.name!r}: range must be [lo, hi] with lo <= hi")
        for k in ("values", "sequence"):
            if getattr(self, k) == []:
                raise ValueError(f"bin {self.name!r}: {k} must not be empty")
        return self

    def to_bin(self) -> CoverBin:
        """Build the CoverBin described by this entry."""
        kinds = [TransactionKind(k) for k in self.kinds] if self.kinds else None
        if self.equals is not None:
            b = equals_bin(self.name, self.equals, kinds=kinds)
        elif self.range is not None:
            b = range_bin(self.name, self.range[0], self.range[1], kinds=kinds)
        elif self.values is not None:
            b = values_bin(self.name, self.values, kinds=kinds)
        else:
            assert self.sequence is not None
            b = sequence_bin(self.name, self.sequence, kinds=kinds)
        if self.description:
            b = CoverBin(
                name=b.name,
                predicate=b.predicate,
                candidates=b.candidates,
                kinds=b.kinds,
                context=b.context,
                description=self.description,
            )
        return b


class PlanModel(LinkDvModel):
    """A whole plan file."""

    bins: List[BinModel] = []

    @model_validator(mode="after")
    def _check_names(self) -> Self:
        names = [b.name for b in self.bins]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate coverage bin names: {dupes}")
        return self


def load_plan(path: str | Path) -> list[CoverBin]:
    """Read a YAML plan file and return its coverage bins in file order."""
    p = Path(path)
    with open(p, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{p}: expected a mapping with a 'bins' list")
    model = PlanModel.model_validate(data)
    logger.debug("Loaded %d coverage bins from %s", len(model.bins), p)
    return [b.to_bin() for b in model.bins]
