"""
Target Motion Module

Target providers for maneuver runs. A provider answers get_target_pose()
from a clock, so moving targets advance with simulation time.
"""

from collections.abc import Callable
from typing import Protocol

import numpy as np

from vehicle_autopilot.autopilot.interfaces import Pose

from .config import TargetParams


class MotionPattern(Protocol):
    """Protocol for motion pattern implementations."""

    def get_state(self, t: float) -> tuple[np.ndarray, np.ndarray]:
        """
        Get target state at time t.

        Returns:
            Tuple of (position, velocity) as numpy arrays.
        """
        ...


class StationaryMotion:
    """Fixed position."""

    def __init__(self, position: np.ndarray):
        self.position = np.asarray(position, dtype=float).copy()

    def get_state(self, t: float) -> tuple[np.ndarray, np.ndarray]:
        return self.position.copy(), np.zeros(3)


class LinearMotion:
    """Constant velocity from a start position."""

    def __init__(self, start: np.ndarray, velocity: np.ndarray):
        """
        Initialize linear motion.

        Args:
            start: Starting position [x, y, z].
            velocity: Constant velocity [vx, vy, vz] in m/s.
        """
        self.start = np.asarray(start, dtype=float).copy()
        self.velocity = np.asarray(velocity, dtype=float).copy()

    def get_state(self, t: float) -> tuple[np.ndarray, np.ndarray]:
        return self.start + self.velocity * t, self.velocity.copy()


class TargetMotion:
    """
    Target provider built from TargetParams.

    Attributes:
        params: Target configuration.
        pattern: Underlying motion pattern.
    """

    def __init__(
        self,
        params: TargetParams | None = None,
        clock: Callable[[], float] | None = None,
    ):
        """
        Initialize the provider.

        Args:
            params: Target configuration (defaults if None).
            clock: Callable returning the current time; time 0 if None.
        """
        self.params = params or TargetParams()
        self.clock = clock or (lambda: 0.0)

        if self.params.motion_type == "linear":
            self.pattern: MotionPattern = LinearMotion(
                np.array(self.params.position), np.array(self.params.velocity)
            )
        else:
            self.pattern = StationaryMotion(np.array(self.params.position))

    def get_state(self, t: float) -> tuple[np.ndarray, np.ndarray]:
        return self.pattern.get_state(t)

    def get_position(self, t: float) -> np.ndarray:
        return self.get_state(t)[0]

    def get_target_pose(self) -> Pose:
        """Target pose at the clock's current time."""
        return Pose(position=self.get_position(self.clock()))


class StaticTarget:
    """Fixed target pose."""

    def __init__(self, position, rotation=None):
        self.pose = Pose(position=np.asarray(position, dtype=float))
        if rotation is not None:
            self.pose.rotation = rotation

    def get_target_pose(self) -> Pose:
        return Pose(position=self.pose.position.copy(), rotation=self.pose.rotation)
