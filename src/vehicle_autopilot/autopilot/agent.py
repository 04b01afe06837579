"""
Thruster Agent

Owns the autopilot's controllers and turns their outputs into forces and
torques on the physics body:

- main thrust: VectorPID on local forward velocity (only Z is effective),
  applied along local +Z
- side thrust: ScalarPID on local right velocity, applied along local +X
- up thrust: ScalarPID on local up velocity, applied along local +Y; shares
  the side-thrust GainSet
- torque: OrientationPID, applied in the world frame
- position hold: VectorPID on world position, producing the velocity
  setpoint the thrust loops track while station-keeping

The agent also hosts an optional Autotuner bound to one controller group and
enforces its timeout.
"""

import logging
from enum import Enum

import numpy as np

from vehicle_autopilot.controllers import (
    Autotuner,
    DerivativeMode,
    ErrorSource,
    GainSet,
    OrientationPID,
    ScalarPID,
    TuningResult,
    VectorPID,
    validate_dt,
)
from vehicle_autopilot.utils.coordinate_frame import forward_of, right_of, up_of
from vehicle_autopilot.utils.quaternion import Quaternion

from .config import AutopilotConfig, ControllerSettings
from .interfaces import PhysicsBody

logger = logging.getLogger(__name__)


class ControllerGroup(Enum):
    """Controller groups addressable for gain edits and autotuning."""

    MAIN_THRUST = "main_thrust"
    SIDE_THRUST = "side_thrust"
    TORQUE = "torque"


class ReverseThrustPolicy(Enum):
    """What the main thruster does with a negative command."""

    MIRROR = "mirror"  # push along local backward
    SUPPRESS = "suppress"  # apply nothing


class ThrusterAgent:
    """
    Actuator layer between the maneuver sequencer and the physics body.

    Attributes:
        body (PhysicsBody): Controlled rigid body.
        config (AutopilotConfig): Gains, limits and multipliers.
        main_thrust_controller (VectorPID): Forward velocity loop.
        side_thrust_controller (ScalarPID): Lateral velocity loop.
        up_thrust_controller (ScalarPID): Vertical velocity loop.
        torque_controller (OrientationPID): Orientation loop.
        position_controller (VectorPID): Station-keeping position loop.
        autotuner (Autotuner | None): Active autotuner, if any.
        last_tuning_result (TuningResult | None): Most recent completed tune.
    """

    def __init__(
        self,
        body: PhysicsBody,
        config: AutopilotConfig | dict | None = None,
    ):
        """
        Initialize the agent.

        Args:
            body: Physics body to actuate.
            config: AutopilotConfig or a config dictionary (see
                AutopilotConfig.from_dict). Defaults if None.

        Raises:
            ValueError: If body is None.
        """
        if body is None:
            raise ValueError("ThrusterAgent requires a physics body")

        if config is None:
            self.config = AutopilotConfig()
        elif isinstance(config, dict):
            self.config = AutopilotConfig.from_dict(config)
        else:
            self.config = config

        self.body = body
        self.reverse_thrust_policy = ReverseThrustPolicy(
            self.config.reverse_thrust_policy
        )

        main = self.config.main_thrust
        side = self.config.side_thrust
        torque = self.config.torque
        hold = self.config.position_hold

        self.main_thrust_controller = VectorPID(
            main.gains, -main.output_limit, main.output_limit, main.integral_saturation
        )
        self.side_thrust_controller = _scalar(side)
        self.up_thrust_controller = _scalar(side)
        self.torque_controller = OrientationPID(
            torque.gains, torque.output_limit, torque.integral_saturation
        )
        self.position_controller = VectorPID(
            hold.gains, -hold.output_limit, hold.output_limit, hold.integral_saturation
        )

        self.autotuner: Autotuner | None = None
        self.last_tuning_result: TuningResult | None = None
        self._autotune_group: ControllerGroup | None = None
        self._autotune_started_at = 0.0
        self._elapsed = 0.0

        # Last applied commands, for diagnostics
        self.last_main_thrust = 0.0
        self.last_side_thrust = 0.0
        self.last_up_thrust = 0.0
        self.last_torque = np.zeros(3)

    # ------------------------------------------------------------------
    # Torque
    # ------------------------------------------------------------------

    def update_torque(
        self, target_rotation: Quaternion, dt: float, modifier: float = 1.0
    ) -> np.ndarray:
        """
        Turn the body toward a target orientation.

        Args:
            target_rotation: Desired orientation.
            dt: Time step in seconds.
            modifier: Extra scale applied on top of torque_multiplier.

        Returns:
            Applied world-frame torque.
        """
        _, rotation = self.body.get_pose()
        _, angular_velocity = self.body.get_velocity()
        torque = self.torque_controller.update(
            angular_velocity, rotation, target_rotation, dt
        )
        return self._apply_torque(torque * self.config.torque_multiplier * modifier)

    def update_torque_rate(
        self, target_rate, dt: float, modifier: float = 1.0
    ) -> np.ndarray:
        """
        Drive the body's angular velocity toward `target_rate`.

        Returns:
            Applied world-frame torque.
        """
        _, angular_velocity = self.body.get_velocity()
        torque = self.torque_controller.update_rate(angular_velocity, target_rate, dt)
        return self._apply_torque(torque * self.config.torque_multiplier * modifier)

    def _apply_torque(self, torque: np.ndarray) -> np.ndarray:
        self.body.apply_torque(torque, self.config.force_mode)
        self.last_torque = torque
        return torque

    # ------------------------------------------------------------------
    # Thrust
    # ------------------------------------------------------------------

    def update_main_thrust(
        self,
        forward_velocity: float,
        target_velocity: float,
        dt: float,
        modifier: float = 1.0,
    ) -> float:
        """
        Drive local forward velocity toward `target_velocity`.

        Negative commands follow the reverse thrust policy.

        Returns:
            Signed thrust actually applied along local forward.
        """
        command = self.main_thrust_controller.update_velocity(
            (0.0, 0.0, forward_velocity), (0.0, 0.0, target_velocity), dt
        )[2]
        thrust = command * self.config.main_thrust_multiplier * modifier

        if thrust < 0 and self.reverse_thrust_policy is ReverseThrustPolicy.SUPPRESS:
            thrust = 0.0

        _, rotation = self.body.get_pose()
        if thrust != 0.0:
            self.body.apply_force(forward_of(rotation) * thrust, self.config.force_mode)
        self.last_main_thrust = thrust
        return thrust

    def update_side_thrust(
        self,
        side_velocity: float,
        target_velocity: float,
        dt: float,
        modifier: float = 1.0,
    ) -> float:
        """Drive local right velocity toward `target_velocity`."""
        command = self.side_thrust_controller.update(
            side_velocity, target_velocity, dt, DerivativeMode.VELOCITY
        )
        thrust = command * self.config.side_thrust_multiplier * modifier
        _, rotation = self.body.get_pose()
        if thrust != 0.0:
            self.body.apply_force(right_of(rotation) * thrust, self.config.force_mode)
        self.last_side_thrust = thrust
        return thrust

    def update_up_thrust(
        self,
        up_velocity: float,
        target_velocity: float,
        dt: float,
        modifier: float = 1.0,
    ) -> float:
        """Drive local up velocity toward `target_velocity`."""
        command = self.up_thrust_controller.update(
            up_velocity, target_velocity, dt, DerivativeMode.VELOCITY
        )
        thrust = command * self.config.up_thrust_multiplier * modifier
        _, rotation = self.body.get_pose()
        if thrust != 0.0:
            self.body.apply_force(up_of(rotation) * thrust, self.config.force_mode)
        self.last_up_thrust = thrust
        return thrust

    # ------------------------------------------------------------------
    # Station-keeping
    # ------------------------------------------------------------------

    def hold_position(self, position, target_position, dt: float) -> np.ndarray:
        """
        Velocity setpoint that brings the body back onto `target_position`.

        Nothing is applied here; the caller feeds the result (projected onto
        the body axes) to the thrust loops.

        Args:
            position: Current world-frame position.
            target_position: Position to hold.
            dt: Time step in seconds.

        Returns:
            World-frame velocity setpoint, each axis bounded by the
            position_hold output limit.
        """
        return self.position_controller.update_position(position, target_position, dt)

    # ------------------------------------------------------------------
    # Gains and tuning
    # ------------------------------------------------------------------

    def gains_for(self, group: ControllerGroup) -> GainSet:
        """Live gain set of a controller group."""
        if group is ControllerGroup.MAIN_THRUST:
            return self.config.main_thrust.gains
        if group is ControllerGroup.SIDE_THRUST:
            return self.config.side_thrust.gains
        return self.config.torque.gains

    def controller_for(self, group: ControllerGroup) -> ErrorSource:
        """Loop whose error reflects a controller group's behavior."""
        if group is ControllerGroup.MAIN_THRUST:
            return self.main_thrust_controller
        if group is ControllerGroup.SIDE_THRUST:
            return self.side_thrust_controller
        return self.torque_controller

    def change_p_value(self, delta: float, group: ControllerGroup) -> float:
        """
        Nudge the proportional gain of a controller group.

        Returns:
            The new P value.
        """
        gains = self.gains_for(group)
        gains.p += delta
        gains.validate()
        logger.info("%s P gain changed by %+.4f to %.4f", group.value, delta, gains.p)
        return gains.p

    def start_autotuning(
        self, group: ControllerGroup = ControllerGroup.MAIN_THRUST
    ) -> Autotuner:
        """
        Attach an autotuner to a controller group.

        Replaces any autotuner already running.

        Returns:
            The new Autotuner.
        """
        if self.autotuner is not None:
            logger.warning(
                "Replacing running autotune of %s", self._autotune_group.value
            )
        self.autotuner = Autotuner(
            self.gains_for(group),
            self.controller_for(group),
            clock=lambda: self._elapsed,
        )
        self._autotune_group = group
        self._autotune_started_at = self._elapsed
        logger.info("Autotuning %s (P=%.4f)", group.value, self.gains_for(group).p)
        return self.autotuner

    def stop_autotuning(self) -> None:
        self.autotuner = None
        self._autotune_group = None

    @property
    def is_autotuning(self) -> bool:
        return self.autotuner is not None

    @property
    def elapsed_time(self) -> float:
        """Seconds of agent ticks since construction."""
        return self._elapsed

    def update(self, dt: float) -> bool:
        """
        End-of-tick bookkeeping: advance the clock and tick the autotuner.

        Args:
            dt: Time step in seconds.

        Returns:
            True if an autotune completed on this tick.
        """
        validate_dt(dt)
        self._elapsed += dt

        if self.autotuner is None:
            return False

        if self.autotuner.update():
            self.last_tuning_result = self.autotuner.result
            logger.info(
                "Autotune of %s finished after %.2fs",
                self._autotune_group.value,
                self._elapsed - self._autotune_started_at,
            )
            self.stop_autotuning()
            return True

        if self._elapsed - self._autotune_started_at >= self.config.autotune_timeout:
            logger.warning(
                "Autotune of %s timed out after %.2fs without oscillation; "
                "raise P and retry",
                self._autotune_group.value,
                self.config.autotune_timeout,
            )
            self.stop_autotuning()
        return False

    def reset(self) -> None:
        """Reset every controller's integrator and derivative state."""
        self.main_thrust_controller.reset()
        self.side_thrust_controller.reset()
        self.up_thrust_controller.reset()
        self.torque_controller.reset()
        self.position_controller.reset()


def _scalar(settings: ControllerSettings) -> ScalarPID:
    return ScalarPID(
        settings.gains,
        -settings.output_limit,
        settings.output_limit,
        settings.integral_saturation,
    )
