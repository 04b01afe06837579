"""
Maneuver Sequencer

Finite state machine that flies the vehicle to a target and holds station:

    TURN_TOWARDS_TARGET -> FORWARD_THRUST_MOVEMENT -> TURNING_AROUND
        -> FORWARD_THRUST_DECELERATION -> NO_MOVEMENT

Phase behavior:
    TURN_TOWARDS_TARGET          torque toward the target heading
    FORWARD_THRUST_MOVEMENT      hold heading, cruise forward
    TURNING_AROUND               torque only, turn to face away from the target
    FORWARD_THRUST_DECELERATION  face away, brake with main/side/up thrusters
    SIDE_THRUSTERS_MOVEMENT      reserved, no-op
    NO_MOVEMENT                  station-keeping: hold the target position, zero
                                 angular velocity

The turn around starts at the deceleration distance, or earlier when the
current closing speed could not be braked away before the stopping
distance. The turn around ends once the vehicle is side-on, inside the
stopping distance, or already moving away from the target.

Within a tick, torque is always commanded before thrust. Every transition
resets all controllers.

Dispatch goes through a single phase -> handler table that is checked for
exhaustiveness at construction.
"""

import logging
import math
from enum import Enum

import numpy as np

from vehicle_autopilot.controllers import validate_dt
from vehicle_autopilot.utils.coordinate_frame import (
    forward_of,
    right_of,
    safe_normalize,
    up_of,
    world_to_local,
)
from vehicle_autopilot.utils.quaternion import Quaternion, shortest_arc

from .agent import ThrusterAgent
from .config import AutopilotConfig
from .interfaces import PhysicsBody, TargetProvider

logger = logging.getLogger(__name__)


class ManeuverPhase(Enum):
    """Phases of the approach-decelerate-hold profile."""

    TURN_TOWARDS_TARGET = "turn_towards_target"
    FORWARD_THRUST_MOVEMENT = "forward_thrust_movement"
    TURNING_AROUND = "turning_around"
    FORWARD_THRUST_DECELERATION = "forward_thrust_deceleration"
    SIDE_THRUSTERS_MOVEMENT = "side_thrusters_movement"
    NO_MOVEMENT = "no_movement"


class ManeuverSequencer:
    """
    Phase sequencer driving a ThrusterAgent toward a target.

    Attributes:
        body (PhysicsBody): Vehicle rigid body (read only here).
        agent (ThrusterAgent): Actuator layer receiving commands.
        target (TargetProvider): Target pose source, re-read every tick.
        config (AutopilotConfig): Maneuver thresholds.
        phase (ManeuverPhase): Current phase.
        deceleration_distance (float): Distance at which to turn around.
        local_velocity (ndarray): Vehicle velocity in the local frame,
            refreshed at the start of each tick.
        phase_history (list[tuple[float, ManeuverPhase]]): Entered phases
            with the maneuver time at entry.
    """

    def __init__(
        self,
        body: PhysicsBody,
        agent: ThrusterAgent,
        target: TargetProvider,
        config: AutopilotConfig | None = None,
    ):
        """
        Initialize the sequencer.

        Args:
            body: Vehicle rigid body.
            agent: Thruster agent bound to the same body.
            target: Target provider.
            config: Maneuver configuration; the agent's config if None.

        Raises:
            ValueError: If body, agent or target is None.
        """
        if body is None:
            raise ValueError("ManeuverSequencer requires a physics body")
        if agent is None:
            raise ValueError("ManeuverSequencer requires a thruster agent")
        if target is None:
            raise ValueError("ManeuverSequencer requires a target provider")

        self.body = body
        self.agent = agent
        self.target = target
        self.config = config if config is not None else agent.config

        self._handlers = {
            ManeuverPhase.TURN_TOWARDS_TARGET: self._turn_towards_target,
            ManeuverPhase.FORWARD_THRUST_MOVEMENT: self._forward_thrust_movement,
            ManeuverPhase.TURNING_AROUND: self._turning_around,
            ManeuverPhase.FORWARD_THRUST_DECELERATION: self._forward_thrust_deceleration,
            ManeuverPhase.SIDE_THRUSTERS_MOVEMENT: self._side_thrusters_movement,
            ManeuverPhase.NO_MOVEMENT: self._no_movement,
        }
        missing = set(ManeuverPhase) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for phases: {sorted(p.name for p in missing)}")

        self.phase = ManeuverPhase.TURN_TOWARDS_TARGET
        self.deceleration_distance = 0.0
        self.local_velocity = np.zeros(3)
        self.phase_history: list[tuple[float, ManeuverPhase]] = []
        self._time = 0.0
        self._active = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def enter(self) -> None:
        """Begin a maneuver toward the current target."""
        self._time = 0.0
        self._active = True
        self.phase = ManeuverPhase.TURN_TOWARDS_TARGET
        self.phase_history = [(0.0, self.phase)]
        self.deceleration_distance = self._compute_deceleration_distance(
            self._distance_to_target()
        )
        self.agent.reset()
        logger.info(
            "Maneuver started: distance=%.2f, deceleration distance=%.2f",
            self._distance_to_target(),
            self.deceleration_distance,
        )

    def exit(self) -> None:
        """Abort the maneuver; update() is invalid until enter() is called again."""
        if self._active:
            logger.info("Maneuver exited in phase %s", self.phase.name)
        self._active = False

    def retarget(self, target: TargetProvider) -> None:
        """
        Switch to a new target and restart the maneuver.

        Raises:
            ValueError: If target is None.
        """
        if target is None:
            raise ValueError("ManeuverSequencer requires a target provider")
        self.target = target
        self.enter()

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def elapsed_time(self) -> float:
        """Seconds since enter()."""
        return self._time

    def update(self, dt: float) -> ManeuverPhase:
        """
        Execute one tick of the current phase.

        Args:
            dt: Time step in seconds.

        Returns:
            Phase after this tick.

        Raises:
            RuntimeError: If called before enter().
            ValueError: If dt <= 0.
        """
        if not self._active:
            raise RuntimeError("Maneuver not started. Call enter() first.")
        validate_dt(dt)

        position, rotation = self.body.get_pose()
        linear_velocity, angular_velocity = self.body.get_velocity()
        target_position = np.asarray(self.target.get_target_pose().position, dtype=float)

        self.local_velocity = world_to_local(rotation, linear_velocity)

        offset = target_position - position
        distance = float(np.linalg.norm(offset))
        forward = forward_of(rotation)
        direction = safe_normalize(offset, forward)

        self._handlers[self.phase](
            dt=dt,
            position=position,
            target_position=target_position,
            rotation=rotation,
            velocity=linear_velocity,
            forward=forward,
            direction=direction,
            distance=distance,
            angular_velocity=angular_velocity,
        )

        self.agent.update(dt)
        self._time += dt
        return self.phase

    # ------------------------------------------------------------------
    # Phase handlers
    # ------------------------------------------------------------------

    def _turn_towards_target(self, dt, rotation, forward, direction, distance, **_):
        if distance < self.config.stopping_distance:
            self._transition(ManeuverPhase.NO_MOVEMENT, distance)
            return

        self._steer(direction, rotation, forward, dt)

        if np.dot(forward, direction) > self.config.alignment_tolerance:
            self._transition(ManeuverPhase.FORWARD_THRUST_MOVEMENT, distance)

    def _forward_thrust_movement(
        self, dt, rotation, velocity, forward, direction, distance, **_
    ):
        torque = self._steer(direction, rotation, forward, dt)

        modifier = 1.0
        if self.config.torque_priority:
            modifier = 1.0 - math.sqrt(min(float(np.linalg.norm(torque)), 1.0))

        self.agent.update_main_thrust(
            self.local_velocity[2], self.config.cruise_speed, dt, modifier
        )

        closing_speed = float(np.dot(velocity, direction))
        if distance < self.turnaround_distance(closing_speed):
            self._transition(ManeuverPhase.TURNING_AROUND, distance)

    def _turning_around(self, dt, rotation, velocity, forward, direction, distance, **_):
        self._steer(-direction, rotation, forward, dt)

        side_on = abs(np.dot(forward, direction)) < self.config.turnaround_tolerance
        inside = distance < self.config.stopping_distance
        receding = np.dot(velocity, direction) < 0.0
        if side_on or inside or receding:
            self._transition(ManeuverPhase.FORWARD_THRUST_DECELERATION, distance)

    def _forward_thrust_deceleration(
        self, dt, rotation, forward, direction, distance, **_
    ):
        self._steer(-direction, rotation, forward, dt)

        desired_velocity = direction * self._braking_speed(distance)
        self.agent.update_main_thrust(
            self.local_velocity[2], float(np.dot(desired_velocity, forward)), dt
        )
        self.agent.update_side_thrust(
            self.local_velocity[0],
            float(np.dot(desired_velocity, right_of(rotation))),
            dt,
        )
        self.agent.update_up_thrust(
            self.local_velocity[1],
            float(np.dot(desired_velocity, up_of(rotation))),
            dt,
        )

        if distance < self.config.stopping_distance:
            self._transition(ManeuverPhase.NO_MOVEMENT, distance)

    def _side_thrusters_movement(self, **_):
        # Reserved for fine lateral alignment near the target; no transition
        # leads here and it commands nothing.
        pass

    def _no_movement(self, dt, position, target_position, rotation, **_):
        self.agent.update_torque_rate(np.zeros(3), dt)

        hold_velocity = world_to_local(
            rotation, self.agent.hold_position(position, target_position, dt)
        )
        self.agent.update_main_thrust(self.local_velocity[2], hold_velocity[2], dt)
        self.agent.update_side_thrust(self.local_velocity[0], hold_velocity[0], dt)
        self.agent.update_up_thrust(self.local_velocity[1], hold_velocity[1], dt)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _steer(
        self,
        desired_direction: np.ndarray,
        rotation: Quaternion,
        forward: np.ndarray,
        dt: float,
    ) -> np.ndarray:
        """
        Command torque toward a heading, capping the turn at 90 degrees.

        The target orientation is the current one turned along the shortest
        arc onto the heading, so roll is left alone and the orientation loop
        never sees more than a quarter turn.
        """
        heading = self.steering_direction(forward, desired_direction, right_of(rotation))
        return self.agent.update_torque(shortest_arc(forward, heading) * rotation, dt)

    @staticmethod
    def steering_direction(forward, desired, right) -> np.ndarray:
        """
        Heading to steer toward this tick.

        A desired heading behind the vehicle (dot < 0) is replaced by its
        component perpendicular to forward, so the orientation loop never
        sees a rotation of more than 90 degrees. For an exactly opposite
        heading, the vehicle's right axis is used.

        Args:
            forward: Current forward axis (unit).
            desired: Desired heading (unit).
            right: Current right axis (unit).

        Returns:
            Unit heading vector.
        """
        forward = np.asarray(forward, dtype=float)
        desired = np.asarray(desired, dtype=float)
        if np.dot(forward, desired) >= 0.0:
            return desired
        lateral = desired - np.dot(desired, forward) * forward
        return safe_normalize(lateral, right)

    def _braking_speed(self, distance: float) -> float:
        """Closing speed allowed at `distance` while braking."""
        if self.config.braking_deceleration <= 0:
            return 0.0
        return min(
            self.config.cruise_speed,
            math.sqrt(2.0 * self.config.braking_deceleration * distance),
        )

    def turnaround_distance(self, closing_speed: float) -> float:
        """
        Distance to the target at which forward thrust gives way to the turn.

        The deceleration distance, raised to the stopping distance plus the
        braking distance of `closing_speed` when that is larger. With
        braking_deceleration == 0 only the deceleration distance applies.

        Args:
            closing_speed: Velocity component toward the target (m/s).
        """
        distance = self.deceleration_distance
        deceleration = self.config.braking_deceleration
        if deceleration > 0 and closing_speed > 0:
            braking = closing_speed**2 / (2.0 * deceleration)
            distance = max(distance, self.config.stopping_distance + braking)
        return distance

    def _compute_deceleration_distance(self, distance: float) -> float:
        return min(
            distance / 1.5,
            distance * self.config.max_deceleration_distance_percent / 100.0,
        )

    def _distance_to_target(self) -> float:
        position, _ = self.body.get_pose()
        target_position = np.asarray(self.target.get_target_pose().position, dtype=float)
        return float(np.linalg.norm(target_position - position))

    def _transition(self, phase: ManeuverPhase, distance: float) -> None:
        previous = self.phase
        self.phase = phase
        self.agent.reset()

        if phase is ManeuverPhase.FORWARD_THRUST_MOVEMENT:
            self.deceleration_distance = self._compute_deceleration_distance(distance)

        self.phase_history.append((self._time, phase))
        logger.info(
            "Phase %s -> %s at t=%.2fs (distance=%.2f)",
            previous.name,
            phase.name,
            self._time,
            distance,
        )
