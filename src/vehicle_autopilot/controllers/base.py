"""
Base Controller Module

Shared types for the feedback controllers.

Gain Ownership:
    A GainSet is owned by the caller (usually the ThrusterAgent) and held by
    reference, never copied, by every controller and autotuner bound to it.
    Edits made between ticks are visible on the next update.

Derivative Modes:
    - ERROR_RATE_OF_CHANGE: d(error)/dt, for tracking a moving setpoint.
    - VELOCITY: -d(measurement)/dt, which avoids derivative kick when the
      setpoint jumps.
"""

import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Protocol


class DerivativeMode(Enum):
    """How the D term is computed."""

    ERROR_RATE_OF_CHANGE = "error_rate_of_change"
    VELOCITY = "velocity"


class Axis(IntEnum):
    """Component index into vectors and quaternions (x, y, z, w order)."""

    X = 0
    Y = 1
    Z = 2
    W = 3


@dataclass
class GainSet:
    """
    Mutable PID gain set.

    Attributes:
        p: Proportional gain.
        i: Integral gain.
        d: Derivative gain.
        oscillation_period: Last measured oscillation period in seconds
            (written by the autotuner, 0.0 when unknown).
    """

    p: float = 0.0
    i: float = 0.0
    d: float = 0.0
    oscillation_period: float = 0.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check that all gains are finite.

        Raises:
            ValueError: If any gain is NaN or infinite.
        """
        for name in ("p", "i", "d", "oscillation_period"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"Gain '{name}' must be finite, got {value}")

    def copy_from(self, other: "GainSet") -> None:
        """Overwrite this gain set in place with another's values."""
        self.p = other.p
        self.i = other.i
        self.d = other.d
        self.oscillation_period = other.oscillation_period
        self.validate()

    @classmethod
    def from_dict(cls, config: dict) -> "GainSet":
        """Create a gain set from a config section."""
        return cls(
            p=float(config.get("p", 0.0)),
            i=float(config.get("i", 0.0)),
            d=float(config.get("d", 0.0)),
            oscillation_period=float(config.get("oscillation_period", 0.0)),
        )

    def to_dict(self) -> dict:
        return {
            "p": self.p,
            "i": self.i,
            "d": self.d,
            "oscillation_period": self.oscillation_period,
        }


class ErrorSource(Protocol):
    """Anything exposing the last raw error of a loop (read by the autotuner)."""

    def get_error(self) -> float:
        ...


def validate_dt(dt: float) -> None:
    """
    Reject non-positive or non-finite time steps.

    Raises:
        ValueError: If dt <= 0 or not finite.
    """
    if not (dt > 0.0 and math.isfinite(dt)):
        raise ValueError(f"dt must be a positive finite number, got {dt}")
