# SPDX-FileCopyrightText: 2025 Hugh Walsh
#
# SPDX-License-Identifier: MIT

# This file: src/linkdv/shared/dv/utils_dv.py

"""Design verification utilities shared by the linkdv components.

This module centralizes log level management for component loggers and the
small payload helpers used when values cross the DUT boundary.

Functions:
    Logging:
        desired_log_level(): Get log level from LINKDV_LOG_LEVEL env var
        component_logger(): Return a configured "dv.<name>" logger
        configure_non_component_logger(): Configure an existing logger

    Payloads:
        payload_mask(): All-ones mask for a payload width
        to_payload(): Validate that an observed value fits a payload width

Example:
    >>> log = component_logger("drv")
    >>> log.debug("drive begin")
    >>> to_payload(0x1FF, 8)
    Traceback (most recent call last):
    ...
    ValueError: payload 0x1ff does not fit in 8 bits
"""

from __future__ import annotations

import logging
import os


def desired_log_level(default: int = logging.INFO) -> int:
    """Return desired log level from env vars or default."""
    name = (os.getenv("LINKDV_LOG_LEVEL") or "").upper()
    if not name:
        return default
    level = getattr(logging, name, default)
    return level if isinstance(level, int) else default


def configure_non_component_logger(logger: logging.Logger) -> None:
    """Configure logger for a non-component"""
    logger.setLevel(desired_log_level())
    # Bubble up to the root handlers installed by configure_logger()
    logger.propagate = True


def component_logger(name: str) -> logging.Logger:
    """Return the logger for a verification component, level from the env."""
    logger = logging.getLogger(f"dv.{name}")
    configure_non_component_logger(logger)
    return logger


def payload_mask(width: int) -> int:
    """Return the all-ones mask for a payload of `width` bits."""
    if width <= 0:
        raise ValueError(f"payload width must be > 0, got {width}")
    return (1 << width) - 1


def to_payload(value: int, width: int) -> int:
    """Return value if it is a legal unsigned payload of `width` bits."""
    if value < 0 or value > payload_mask(width):
        raise ValueError(f"payload 0x{value:x} does not fit in {width} bits")
    return value
