"""
Scalar and Vector PID Controllers

ScalarPID is the single-axis building block used by every loop in the
autopilot; VectorPID composes three of them for position or velocity tracking
along the x, y and z axes.

Update Rules (ScalarPID):
    error      = target - current
    integral   = clip(integral + error * dt, -integral_saturation, +integral_saturation)
    derivative = (error - last_error) / dt          (ERROR_RATE_OF_CHANGE)
               = -(current - last_value) / dt        (VELOCITY)
               = 0 on the first update after construction or reset
    output     = clip(kp * error + ki * integral + kd * derivative,
                      output_min, output_max)

Controllers are stateful: repeated calls with identical inputs keep
accumulating integral error.
"""

import numpy as np

from .base import Axis, DerivativeMode, GainSet, validate_dt


class ScalarPID:
    """
    Single-axis PID controller with integral clamping and output saturation.

    Attributes:
        gains (GainSet): Referenced gain set (shared, not copied).
        output_min (float): Lower output bound.
        output_max (float): Upper output bound.
        integral_saturation (float): Bound on the integral accumulator.
        integral (float): Integral accumulator.
        last_error (float): Error from the most recent update.
        last_value (float): Measured value from the most recent update.
        derivative_initialized (bool): False until the first update.
        last_control_components (dict | None): P/I/D terms for diagnostics.
    """

    def __init__(
        self,
        gains: GainSet | None = None,
        output_min: float = -1.0,
        output_max: float = 1.0,
        integral_saturation: float = 1.0,
    ):
        """
        Initialize the controller.

        Args:
            gains: Gain set to reference. A fresh zero GainSet if None.
            output_min: Lower output bound.
            output_max: Upper output bound.
            integral_saturation: Integral accumulator bound (>= 0).

        Raises:
            ValueError: If output_min > output_max or integral_saturation < 0.
        """
        if output_min > output_max:
            raise ValueError(
                f"output_min ({output_min}) must not exceed output_max ({output_max})"
            )
        if integral_saturation < 0:
            raise ValueError(
                f"integral_saturation must be >= 0, got {integral_saturation}"
            )

        self.gains = gains if gains is not None else GainSet()
        self.output_min = output_min
        self.output_max = output_max
        self.integral_saturation = integral_saturation

        self.integral = 0.0
        self.last_error = 0.0
        self.last_value = 0.0
        self.derivative_initialized = False
        self.last_control_components: dict | None = None

    def set_gains(self, gains: GainSet) -> None:
        """Rebind the controller to another gain set (by reference)."""
        self.gains = gains

    def reset(self) -> None:
        """Return all internal state to its construction-time values."""
        self.integral = 0.0
        self.last_error = 0.0
        self.last_value = 0.0
        self.derivative_initialized = False
        self.last_control_components = None

    def update(
        self,
        current: float,
        target: float,
        dt: float,
        mode: DerivativeMode = DerivativeMode.ERROR_RATE_OF_CHANGE,
    ) -> float:
        """
        Advance the loop one tick.

        Args:
            current: Measured value.
            target: Setpoint.
            dt: Time step in seconds (> 0).
            mode: Derivative mode.

        Returns:
            Clamped control output.

        Raises:
            ValueError: If dt <= 0.
        """
        validate_dt(dt)

        error = target - current
        self._accumulate(error, dt)

        derivative = 0.0
        if self.derivative_initialized:
            if mode is DerivativeMode.ERROR_RATE_OF_CHANGE:
                derivative = (error - self.last_error) / dt
            else:
                derivative = -(current - self.last_value) / dt
        else:
            self.derivative_initialized = True

        self.last_error = error
        self.last_value = current

        return self._combine(error, derivative)

    def update_error(self, error: float, delta: float, dt: float) -> float:
        """
        Advance the loop from a precomputed error and its per-tick change.

        Used where the caller derives both the error and its change from
        richer state (e.g. the quaternion components of the orientation loop).
        The derivative term is delta / dt.

        Args:
            error: Error signal.
            delta: Change of the error signal over one tick.
            dt: Time step in seconds (> 0).

        Returns:
            Clamped control output.

        Raises:
            ValueError: If dt <= 0.
        """
        validate_dt(dt)

        self._accumulate(error, dt)
        self.derivative_initialized = True
        self.last_error = error

        return self._combine(error, delta / dt)

    def _accumulate(self, error: float, dt: float) -> None:
        self.integral = float(
            np.clip(
                self.integral + error * dt,
                -self.integral_saturation,
                self.integral_saturation,
            )
        )

    def _combine(self, error: float, derivative: float) -> float:
        p_term = self.gains.p * error
        i_term = self.gains.i * self.integral
        d_term = self.gains.d * derivative
        output = float(np.clip(p_term + i_term + d_term, self.output_min, self.output_max))

        self.last_control_components = {
            "p_term": p_term,
            "i_term": i_term,
            "d_term": d_term,
            "output": output,
        }
        return output

    def get_error(self) -> float:
        """Most recent raw error (0.0 before the first update)."""
        return self.last_error

    def get_control_components(self) -> dict | None:
        """
        Get the last computed P/I/D terms for diagnostics.

        Returns:
            Dictionary with p_term, i_term, d_term and output,
            or None if update hasn't been called since the last reset.
        """
        return self.last_control_components


class VectorPID:
    """
    Three independent ScalarPID loops for x, y and z.

    Position tracking uses the ERROR_RATE_OF_CHANGE derivative; velocity
    tracking uses the VELOCITY derivative. There is no cross-axis coupling.
    """

    def __init__(
        self,
        gains: GainSet | None = None,
        output_min: float = -1.0,
        output_max: float = 1.0,
        integral_saturation: float = 1.0,
    ):
        """
        Initialize the three axis controllers.

        Args:
            gains: Gain set shared by all axes. A fresh zero GainSet if None.
            output_min: Per-axis lower output bound.
            output_max: Per-axis upper output bound.
            integral_saturation: Per-axis integral bound.
        """
        gains = gains if gains is not None else GainSet()
        self.controllers = [
            ScalarPID(gains, output_min, output_max, integral_saturation)
            for _ in range(3)
        ]

    def update_position(self, current, target, dt: float) -> np.ndarray:
        """Track a position setpoint; returns the per-axis outputs."""
        return self._update(current, target, dt, DerivativeMode.ERROR_RATE_OF_CHANGE)

    def update_velocity(self, current, target, dt: float) -> np.ndarray:
        """Track a velocity setpoint; returns the per-axis outputs."""
        return self._update(current, target, dt, DerivativeMode.VELOCITY)

    def _update(self, current, target, dt: float, mode: DerivativeMode) -> np.ndarray:
        current = np.asarray(current, dtype=float)
        target = np.asarray(target, dtype=float)
        return np.array(
            [
                pid.update(current[i], target[i], dt, mode)
                for i, pid in enumerate(self.controllers)
            ]
        )

    def set_gains(self, gains: GainSet, axis: Axis | None = None) -> None:
        """
        Rebind gains for one axis, or all axes when axis is None.

        Raises:
            ValueError: If axis is not X, Y or Z.
        """
        if axis is None:
            for pid in self.controllers:
                pid.set_gains(gains)
            return
        if axis not in (Axis.X, Axis.Y, Axis.Z):
            raise ValueError(f"VectorPID has no axis {axis!r}")
        self.controllers[axis].set_gains(gains)

    def reset(self) -> None:
        for pid in self.controllers:
            pid.reset()

    def get_error(self, axis: Axis = Axis.Z) -> float:
        """Last raw error of one axis (Z, the main-thrust axis, by default)."""
        return self.controllers[axis].get_error()

    @property
    def gains(self) -> GainSet:
        """Gain set of the Z axis controller."""
        return self.controllers[Axis.Z].gains
