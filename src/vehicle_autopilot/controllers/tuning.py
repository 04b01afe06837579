"""
Relay Auto-Tuning Module

This module estimates PID gains with the Ziegler-Nichols ultimate-gain method.
The tuner is bound to a live GainSet and to the loop that uses it; it zeroes
the I and D terms so the loop runs P-only, watches the loop's error for a
sign change cycle, and rewrites the gains once one is observed.

Design Philosophy:
- The tuner never raises P itself; P is raised externally until the loop
  oscillates (see ThrusterAgent.change_p_value).
- A loop that never oscillates is not an error: update() keeps returning
  False and the caller imposes a timeout.
- Time comes from an injectable clock so simulated runs stay deterministic.

Usage:
    from vehicle_autopilot.controllers.tuning import Autotuner

    tuner = Autotuner(gains, controller, clock=lambda: sim_time)
    while not tuner.update():
        ...  # step the loop
    print(tuner.result.to_dict())
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .base import ErrorSource, GainSet

logger = logging.getLogger(__name__)

# Ziegler-Nichols classic PID coefficients
ZN_P_FACTOR = 0.6
ZN_I_FACTOR = 2.0
ZN_D_DIVISOR = 8.0


class TuningMethod(Enum):
    """Supported gain estimation rules."""

    ZIEGLER_NICHOLS = "ziegler_nichols"


class TunerState(Enum):
    """Autotuner lifecycle."""

    IDLE = "idle"
    OSCILLATING = "oscillating"
    TUNED = "tuned"


def ziegler_nichols_gains(ku: float, tu: float) -> GainSet:
    """
    Classic Ziegler-Nichols PID gains.

    Args:
        ku: Ultimate (critical) proportional gain.
        tu: Oscillation period at ku, in seconds.

    Returns:
        GainSet with P = 0.6 Ku, I = 2 P / Tu, D = P Tu / 8.

    Raises:
        ValueError: If tu <= 0.
    """
    if tu <= 0:
        raise ValueError(f"Oscillation period must be > 0, got {tu}")
    p = ZN_P_FACTOR * ku
    return GainSet(
        p=p,
        i=ZN_I_FACTOR * p / tu,
        d=p * tu / ZN_D_DIVISOR,
        oscillation_period=tu,
    )


@dataclass
class TuningResult:
    """
    Result of a completed relay experiment.

    Attributes:
        method: Rule used to derive the gains.
        ultimate_gain: P at which the oscillation was observed (Ku).
        oscillation_period: Measured period Tu in seconds.
        gains: Gains written to the bound GainSet.
        start_time: Clock reading at the rising edge.
        end_time: Clock reading at the falling edge.
    """

    method: TuningMethod
    ultimate_gain: float
    oscillation_period: float
    gains: GainSet
    start_time: float
    end_time: float

    def to_dict(self) -> dict:
        """Convert result to dictionary for serialization."""
        return {
            "method": self.method.value,
            "ultimate_gain": self.ultimate_gain,
            "oscillation_period": self.oscillation_period,
            "gains": self.gains.to_dict(),
            "start_time": self.start_time,
            "end_time": self.end_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TuningResult":
        """Create result from dictionary."""
        return cls(
            method=TuningMethod(data["method"]),
            ultimate_gain=data["ultimate_gain"],
            oscillation_period=data["oscillation_period"],
            gains=GainSet.from_dict(data["gains"]),
            start_time=data["start_time"],
            end_time=data["end_time"],
        )


class Autotuner:
    """
    Ziegler-Nichols relay autotuner bound to one gain set and one loop.

    Attributes:
        gains (GainSet): Live gain set being tuned.
        controller (ErrorSource): Loop whose error is observed.
        method (TuningMethod): Gain rule.
        state (TunerState): Current lifecycle state.
        result (TuningResult | None): Populated once tuning completes.
    """

    def __init__(
        self,
        gains: GainSet,
        controller: ErrorSource,
        method: TuningMethod = TuningMethod.ZIEGLER_NICHOLS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Bind the tuner.

        Args:
            gains: Gain set to tune (referenced, mutated in place).
            controller: Loop exposing get_error().
            method: Gain rule.
            clock: Callable returning the current time in seconds.

        Raises:
            ValueError: If gains or controller is None.
        """
        if gains is None:
            raise ValueError("Autotuner requires a gain set")
        if controller is None:
            raise ValueError("Autotuner requires a controller")

        self.gains = gains
        self.controller = controller
        self.method = method
        self.clock = clock

        self.state = TunerState.IDLE
        self.result: TuningResult | None = None
        self.start_time: float | None = None
        self.end_time: float | None = None
        self._previous_error: float | None = None

    @property
    def is_oscillating(self) -> bool:
        return self.state is TunerState.OSCILLATING

    @property
    def is_tuned(self) -> bool:
        return self.state is TunerState.TUNED

    def update(self) -> bool:
        """
        Observe the loop for one tick.

        Returns:
            True once tuning has completed (and on every later call).
        """
        if self.state is TunerState.TUNED:
            return True

        # Keep the loop P-only for the whole experiment
        self.gains.i = 0.0
        self.gains.d = 0.0

        error = self.controller.get_error()
        previous = self._previous_error
        self._previous_error = error

        if previous is None:
            return False

        if self.state is TunerState.IDLE and previous <= 0.0 < error:
            self.start_time = self.clock()
            self.state = TunerState.OSCILLATING
            logger.debug("Oscillation started at t=%.4f", self.start_time)
        elif self.state is TunerState.OSCILLATING and previous >= 0.0 > error:
            self.end_time = self.clock()
            return self._complete()

        return False

    def _complete(self) -> bool:
        tu = self.end_time - self.start_time
        if tu <= 0:
            logger.warning(
                "Ignoring zero-length oscillation at t=%.4f; waiting for next cycle",
                self.end_time,
            )
            self.state = TunerState.IDLE
            return False

        ku = self.gains.p
        tuned = ziegler_nichols_gains(ku, tu)
        self.gains.copy_from(tuned)

        self.result = TuningResult(
            method=self.method,
            ultimate_gain=ku,
            oscillation_period=tu,
            gains=GainSet(**tuned.to_dict()),
            start_time=self.start_time,
            end_time=self.end_time,
        )
        self.state = TunerState.TUNED
        logger.info(
            "Tuning complete: Ku=%.4f Tu=%.4fs -> P=%.4f I=%.4f D=%.4f",
            ku,
            tu,
            tuned.p,
            tuned.i,
            tuned.d,
        )
        return True

    def reset(self) -> None:
        """Restart the experiment (gains are left as they are)."""
        self.state = TunerState.IDLE
        self.result = None
        self.start_time = None
        self.end_time = None
        self._previous_error = None
