"""
Autopilot Controllers Package

This package provides the feedback loops used by the autopilot. Each loop
receives a measurement and a setpoint and produces a clamped actuator command.

Controller Types:
- ScalarPID: Single-axis PID with integral clamping and two derivative modes
- VectorPID: Three independent ScalarPIDs for position/velocity tracking
- OrientationPID: Quaternion-component PID producing a torque vector
- Autotuner: Ziegler-Nichols relay tuning of a live gain set

Design Philosophy:
- Controllers own only their integrator/derivative state
- Gains are referenced, never copied, so tuning is visible immediately
- Coupling between axes is left to the caller
"""

from .base import Axis, DerivativeMode, ErrorSource, GainSet, validate_dt
from .orientation import OrientationPID, orientation_correction
from .pid import ScalarPID, VectorPID
from .tuning import (
    Autotuner,
    TunerState,
    TuningMethod,
    TuningResult,
    ziegler_nichols_gains,
)

__all__ = [
    "Axis",
    "DerivativeMode",
    "ErrorSource",
    "GainSet",
    "validate_dt",
    "ScalarPID",
    "VectorPID",
    "OrientationPID",
    "orientation_correction",
    "Autotuner",
    "TunerState",
    "TuningMethod",
    "TuningResult",
    "ziegler_nichols_gains",
]
