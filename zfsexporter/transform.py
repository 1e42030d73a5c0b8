"""Conversions from textual ZFS property values to sample values."""

from __future__ import annotations

import math
from enum import IntEnum

from zfsexporter.zfs_client import PoolStatus


class PoolHealthCode(IntEnum):
    """Numeric code exported for each pool health state."""

    ONLINE = 0
    DEGRADED = 1
    FAULTED = 2
    OFFLINE = 3
    UNAVAIL = 4
    REMOVED = 5
    SUSPENDED = 6


def transform_numeric(value: str) -> float:
    """Parse a number; '-' and 'none' count as zero."""
    if value in ("-", "none"):
        return 0.0
    if value != value.strip() or "_" in value:
        raise ValueError(f"could not parse {value!r} as a number")
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"could not parse {value!r} as a number") from None


def transform_health_code(status: str) -> float:
    """Map a pool health status to its numeric code."""
    try:
        health = PoolStatus(status)
    except ValueError:
        raise ValueError(f"unknown pool health status: {status}") from None
    return float(PoolHealthCode[health.name])


def transform_bool(value: str) -> float:
    """Map on/off style values to 1 or 0."""
    if value in ("on", "yes", "enabled", "active"):
        return 1.0
    if value in ("off", "no", "disabled", "inactive", "-"):
        return 0.0
    raise ValueError(f"could not convert '{value}' to bool")


def transform_percentage(value: str) -> float:
    """Convert a percentage, with or without a trailing '%', to a ratio."""
    if value.endswith("%"):
        value = value[:-1]
    return transform_numeric(value) / 100


def transform_multiplier(value: str) -> float:
    """Convert a multiplier such as '2.50x' to its reciprocal ratio."""
    if value.endswith("x"):
        value = value[:-1]
    number = transform_numeric(value)
    if number == 0:
        return math.copysign(math.inf, number)
    return 1 / number