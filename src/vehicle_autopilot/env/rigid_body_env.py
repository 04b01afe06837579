"""
Rigid Body Environment

Reference physics collaborator for the autopilot: a free-floating rigid body
with isotropic inertia, implementing the PhysicsBody interface.

- Forces and torques are accumulated between steps according to ForceMode
- Numerical integration (semi-implicit Euler or explicit Euler)
- Orientation integrated on the unit quaternion via the exponential map
- Velocity clipping and NaN/Inf guarding
- Time series recording

State:
    position          [x, y, z]        - meters (world)
    rotation          (x, y, z, w)     - unit quaternion
    velocity          [vx, vy, vz]     - m/s (world)
    angular_velocity  [wx, wy, wz]     - rad/s (world)
"""

import logging

import numpy as np

from vehicle_autopilot.autopilot.interfaces import ForceMode
from vehicle_autopilot.utils.quaternion import Quaternion

from .config import EnvConfig

logger = logging.getLogger(__name__)


class RigidBodyEnv:
    """
    Free rigid body simulation.

    Attributes:
        config: Environment configuration.
        position: Current world position.
        rotation: Current orientation.
        velocity: Current world linear velocity.
        angular_velocity: Current world angular velocity.
    """

    def __init__(self, config: dict | EnvConfig | None = None):
        """
        Initialize the environment.

        Args:
            config: Configuration dictionary or EnvConfig instance.
                   If dict, will be converted via EnvConfig.from_dict().
                   If None, default configuration is used.
        """
        if config is None:
            self.config = EnvConfig()
        elif isinstance(config, dict):
            self.config = EnvConfig.from_dict(config)
        else:
            self.config = config

        self.position = np.zeros(3)
        self.rotation = Quaternion.identity()
        self.velocity = np.zeros(3)
        self.angular_velocity = np.zeros(3)

        self._time = 0.0
        self._step_count = 0
        self._initialized = False
        self._history: list[dict] = []
        self._clear_accumulators()

    def reset(self) -> dict:
        """
        Reset the body to the configured initial state.

        Returns:
            Initial state dictionary.
        """
        vehicle = self.config.vehicle
        self.position = np.array(vehicle.initial_position, dtype=float)
        self.rotation = Quaternion.from_array(vehicle.initial_rotation).normalized()
        self.velocity = np.array(vehicle.initial_velocity, dtype=float)
        self.angular_velocity = np.array(vehicle.initial_angular_velocity, dtype=float)

        self._time = 0.0
        self._step_count = 0
        self._history = []
        self._clear_accumulators()
        self._initialized = True

        return self.state

    # ------------------------------------------------------------------
    # PhysicsBody interface
    # ------------------------------------------------------------------

    def get_pose(self) -> tuple[np.ndarray, Quaternion]:
        self._require_initialized()
        return self.position.copy(), self.rotation

    def get_velocity(self) -> tuple[np.ndarray, np.ndarray]:
        self._require_initialized()
        return self.velocity.copy(), self.angular_velocity.copy()

    def apply_force(self, force, mode: ForceMode = ForceMode.FORCE) -> None:
        """
        Apply a world-frame force.

        Args:
            force: Force vector (interpretation depends on mode).
            mode: ForceMode.
        """
        self._require_initialized()
        force = self._sanitize(force, "force")
        mass = self.config.vehicle.mass

        if mode is ForceMode.FORCE:
            self._force += force
        elif mode is ForceMode.ACCELERATION:
            self._acceleration += force
        elif mode is ForceMode.IMPULSE:
            self._velocity_change += force / mass
        elif mode is ForceMode.VELOCITY_CHANGE:
            self._velocity_change += force
        else:
            raise ValueError(f"Unsupported force mode: {mode!r}")

    def apply_torque(self, torque, mode: ForceMode = ForceMode.FORCE) -> None:
        """
        Apply a world-frame torque.

        Args:
            torque: Torque vector (interpretation depends on mode).
            mode: ForceMode.
        """
        self._require_initialized()
        torque = self._sanitize(torque, "torque")
        inertia = self.config.vehicle.moment_of_inertia

        if mode is ForceMode.FORCE:
            self._torque += torque
        elif mode is ForceMode.ACCELERATION:
            self._angular_acceleration += torque
        elif mode is ForceMode.IMPULSE:
            self._angular_velocity_change += torque / inertia
        elif mode is ForceMode.VELOCITY_CHANGE:
            self._angular_velocity_change += torque
        else:
            raise ValueError(f"Unsupported force mode: {mode!r}")

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self, dt: float | None = None) -> dict:
        """
        Integrate accumulated forces and torques over one step.

        Args:
            dt: Step length in seconds; the configured dt if None.

        Returns:
            State dictionary after the step.

        Raises:
            RuntimeError: If reset() has not been called.
            ValueError: If dt <= 0.
        """
        self._require_initialized()
        dt = self.config.simulation.dt if dt is None else dt
        if dt <= 0:
            raise ValueError(f"dt must be > 0, got {dt}")

        vehicle = self.config.vehicle
        linear_acc = (
            self._force / vehicle.mass
            + self._acceleration
            - vehicle.linear_drag * self.velocity
        )
        angular_acc = (
            self._torque / vehicle.moment_of_inertia
            + self._angular_acceleration
            - vehicle.angular_drag * self.angular_velocity
        )

        if self.config.simulation.integrator == "euler":
            self.position = self.position + self.velocity * dt
            self.rotation = self._rotate_by(self.angular_velocity, dt)
            self.velocity = self.velocity + linear_acc * dt + self._velocity_change
            self.angular_velocity = (
                self.angular_velocity + angular_acc * dt + self._angular_velocity_change
            )
        else:
            self.velocity = self.velocity + linear_acc * dt + self._velocity_change
            self.angular_velocity = (
                self.angular_velocity + angular_acc * dt + self._angular_velocity_change
            )
            self.position = self.position + self.velocity * dt
            self.rotation = self._rotate_by(self.angular_velocity, dt)

        self._apply_state_constraints()
        self._clear_accumulators()

        self._time += dt
        self._step_count += 1
        self._record_step()

        return self.state

    def _rotate_by(self, angular_velocity: np.ndarray, dt: float) -> Quaternion:
        spin = Quaternion.from_rotation_vector(angular_velocity * dt)
        return (spin * self.rotation).normalized()

    def _apply_state_constraints(self) -> None:
        """Clip velocities to the configured limits."""
        max_vel = self.config.simulation.max_velocity
        speed = np.linalg.norm(self.velocity)
        if speed > max_vel:
            self.velocity = self.velocity / speed * max_vel

        max_ang_vel = self.config.simulation.max_angular_velocity
        ang_speed = np.linalg.norm(self.angular_velocity)
        if ang_speed > max_ang_vel:
            self.angular_velocity = self.angular_velocity / ang_speed * max_ang_vel

    def _clear_accumulators(self) -> None:
        self._force = np.zeros(3)
        self._acceleration = np.zeros(3)
        self._velocity_change = np.zeros(3)
        self._torque = np.zeros(3)
        self._angular_acceleration = np.zeros(3)
        self._angular_velocity_change = np.zeros(3)

    @staticmethod
    def _sanitize(vector, name: str) -> np.ndarray:
        vector = np.asarray(vector, dtype=float)
        if vector.shape != (3,):
            raise ValueError(f"{name} must have shape (3,), got {vector.shape}")
        if not np.all(np.isfinite(vector)):
            logger.warning("%s contains NaN or Inf, replacing with zeros", name)
            return np.zeros(3)
        return vector

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Environment not initialized. Call reset() first.")

    def _record_step(self) -> None:
        """Record step data for time series."""
        if not self.config.logging.enabled:
            return
        if self._step_count % self.config.logging.log_interval == 0:
            self._history.append(self.state)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_history(self) -> list[dict]:
        """
        Get recorded time series data.

        Returns:
            List of recorded state dictionaries.
        """
        return self._history.copy()

    @property
    def state(self) -> dict:
        """Current state as a JSON-friendly dictionary."""
        return {
            "time": self._time,
            "step": self._step_count,
            "position": self.position.tolist(),
            "rotation": self.rotation.as_array().tolist(),
            "velocity": self.velocity.tolist(),
            "angular_velocity": self.angular_velocity.tolist(),
        }

    @property
    def time(self) -> float:
        """Get current simulation time."""
        return self._time

    @property
    def dt(self) -> float:
        """Get simulation timestep."""
        return self.config.simulation.dt

    @property
    def is_initialized(self) -> bool:
        """Check if environment has been initialized."""
        return self._initialized
