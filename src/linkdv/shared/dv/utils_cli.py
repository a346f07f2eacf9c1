# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/utils_cli.py

"""Environment and plusarg settings for run configuration overrides.

A setting NAME is looked up, first match wins:
    1. Environment variable NAME, then LINKDV_NAME
    2. Plusarg +NAME=value (or bare +NAME) in PLUSARGS, then LINKDV_PLUSARGS
    3. The caller's default

A value that does not parse as the requested type is skipped, so a bad
environment value falls through to the plusarg and then to the default.

Examples:
    SEED=42 dv-run
    LINKDV_PLUSARGS="+MAX_ITERATIONS=0x200 +CHECK_LATENCY" dv-run

Reference:
    UVM Class Reference Manual - uvm_cmdline_processor
"""

from __future__ import annotations

import os
from typing import Callable, Iterable, Iterator, TypeVar

T = TypeVar("T")

_BOOL_WORDS = {
    "1": True,
    "true": True,
    "yes": True,
    "y": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "n": False,
    "off": False,
}


def iter_plusargs() -> Iterable[str]:
    """Return the +args from PLUSARGS, or LINKDV_PLUSARGS when that is empty."""
    return (os.environ.get("PLUSARGS") or os.environ.get("LINKDV_PLUSARGS") or "").split()


def _plusarg(name: str) -> str | None:
    # bare +NAME reads as "1"
    for tok in iter_plusargs():
        key, sep, value = tok.partition("=")
        if key == f"+{name}":
            return value if sep else "1"
    return None


def _env(name: str) -> str | None:
    for key in (name, f"LINKDV_{name}"):
        if key in os.environ:
            return os.environ[key]
    return None


def _candidates(name: str) -> Iterator[str]:
    for raw in (_env(name), _plusarg(name)):
        if raw is not None:
            yield raw


def _resolve(name: str, default: T, parse: Callable[[str], T]) -> T:
    for raw in _candidates(name):
        try:
            return parse(raw)
        except ValueError:
            continue
    return default


def _to_bool(raw: str) -> bool:
    try:
        return _BOOL_WORDS[raw.strip().lower()]
    except KeyError:
        raise ValueError(f"not a boolean: {raw!r}") from None


def has_setting(name: str) -> bool:
    """Return True if NAME is given in the environment or as a plusarg."""
    return next(_candidates(name), None) is not None


def get_bool_setting(name: str, default: bool) -> bool:
    """Resolve a boolean setting (1/0, true/false, yes/no, on/off)."""
    return _resolve(name, default, _to_bool)


def get_str_setting(name: str, default: str) -> str:
    """Resolve a string setting."""
    return _resolve(name, default, str)


def get_int_setting(name: str, default: int) -> int:
    """Resolve an integer setting; 0x/0o/0b prefixes are accepted."""
    return _resolve(name, default, lambda raw: int(raw, 0))


def get_float_setting(name: str, default: float) -> float:
    """Resolve a float setting."""
    return _resolve(name, default, float)
