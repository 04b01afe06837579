"""
Quaternion Orientation Controller

Produces a world-frame torque that rotates the vehicle from its current
orientation onto a target orientation, without going through Euler angles.

Pose-tracking algorithm (see orientation_correction):
    1. delta  = rotation_delta(current, target), sign-normalized to w >= 0.
    2. M      = tangent_projection(delta), the orthogonalizing 4x4 matrix.
    3. spin   = exp(angular_velocity) as a quaternion; spin * delta is the
       angular-velocity-adjusted delta, and (spin * delta - delta) its drift.
    4. One ScalarPID per component (x, y, z, w) is fed the identity-minus-delta
       error together with that drift, giving a 4-component correction.
    5. torque = -(M @ correction), vector part only.

For small errors and rates this reduces to a PD law:
    torque ~= (kp / 2) * sin(angle) * axis - (kd / (2 dt)) * angular_velocity

The rate-only overload tracks an angular velocity setpoint per axis and is
used for station-keeping.
"""

import numpy as np

from vehicle_autopilot.utils.quaternion import (
    Quaternion,
    rotation_delta,
    tangent_projection,
)

from .base import Axis, DerivativeMode, GainSet, validate_dt
from .pid import ScalarPID

_IDENTITY = Quaternion.identity()


def orientation_correction(
    controllers: list[ScalarPID],
    angular_velocity,
    current: Quaternion,
    target: Quaternion,
    dt: float,
) -> tuple[np.ndarray, Quaternion]:
    """
    Run the quaternion-component PID step.

    The derivative input is the drift (spin * delta - delta), not the
    adjusted delta spin * delta itself. The two differ by delta, which lies
    along q and is removed by the tangent projection, so the torque is the
    same either way; feeding the drift keeps the D term proportional to the
    angular velocity and away from the component output clamps.

    Args:
        controllers: Four ScalarPIDs, one per (x, y, z, w) component.
        angular_velocity: World-frame angular velocity (rad/s).
        current: Current orientation.
        target: Desired orientation.
        dt: Time step in seconds (> 0).

    Returns:
        Tuple of (torque vector, rotation delta).
    """
    delta = rotation_delta(current, target)
    projection = tangent_projection(delta)

    error = (_IDENTITY - delta).as_array()

    spin = Quaternion.from_rotation_vector(angular_velocity)
    drift = (spin * delta - delta).as_array()

    correction = np.array(
        [
            pid.update_error(error[i], drift[i], dt)
            for i, pid in enumerate(controllers)
        ]
    )

    torque = -(projection @ correction)
    return torque[:3], delta


class OrientationPID:
    """
    Orientation controller over the four quaternion components.

    Attributes:
        controllers (list[ScalarPID]): Component loops in (x, y, z, w) order.
        last_delta (Quaternion | None): Rotation delta of the latest pose update.
    """

    def __init__(
        self,
        gains: GainSet | None = None,
        output_limit: float = 100.0,
        integral_saturation: float = 1.0,
    ):
        """
        Initialize the component loops.

        Args:
            gains: Gain set shared by all components. A fresh zero GainSet if None.
            output_limit: Symmetric per-component output bound.
            integral_saturation: Per-component integral bound.
        """
        gains = gains if gains is not None else GainSet()
        self.controllers = [
            ScalarPID(gains, -output_limit, output_limit, integral_saturation)
            for _ in range(4)
        ]
        self.last_delta: Quaternion | None = None

    def update(
        self,
        angular_velocity,
        current: Quaternion,
        target: Quaternion,
        dt: float,
    ) -> np.ndarray:
        """
        Compute the torque that turns `current` onto `target`.

        Args:
            angular_velocity: World-frame angular velocity (rad/s).
            current: Current orientation.
            target: Desired orientation.
            dt: Time step in seconds (> 0).

        Returns:
            World-frame torque vector.

        Raises:
            ValueError: If dt <= 0.
        """
        validate_dt(dt)
        torque, self.last_delta = orientation_correction(
            self.controllers, angular_velocity, current, target, dt
        )
        return torque

    def update_rate(self, current_rate, target_rate, dt: float) -> np.ndarray:
        """
        Track an angular velocity setpoint with the x, y, z loops.

        Args:
            current_rate: Current angular velocity (rad/s).
            target_rate: Desired angular velocity (rad/s).
            dt: Time step in seconds (> 0).

        Returns:
            World-frame torque vector.
        """
        current_rate = np.asarray(current_rate, dtype=float)
        target_rate = np.asarray(target_rate, dtype=float)
        return np.array(
            [
                self.controllers[i].update(
                    current_rate[i], target_rate[i], dt, DerivativeMode.VELOCITY
                )
                for i in range(3)
            ]
        )

    def set_gains(self, gains: GainSet, axis: Axis | None = None) -> None:
        """Rebind gains for one component, or all components when axis is None."""
        if axis is None:
            for pid in self.controllers:
                pid.set_gains(gains)
        else:
            self.controllers[axis].set_gains(gains)

    def reset(self) -> None:
        for pid in self.controllers:
            pid.reset()
        self.last_delta = None

    def get_error(self, axis: Axis = Axis.Y) -> float:
        """Last raw error of one component (Y, i.e. yaw, by default)."""
        return self.controllers[axis].get_error()

    @property
    def gains(self) -> GainSet:
        return self.controllers[Axis.X].gains
