"""
Collaborator Interfaces

Narrow contracts between the autopilot core and the systems it drives:
- PhysicsBody: reads pose/velocity, accepts forces and torques
- TargetProvider: supplies the target pose, re-read every tick

Any object with matching methods can be plugged in; RigidBodyEnv in
vehicle_autopilot.env is the reference implementation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import numpy as np

from vehicle_autopilot.utils.quaternion import Quaternion


class ForceMode(Enum):
    """
    How an applied force/torque changes the body's velocity.

    FORCE:           continuous, scaled by mass and dt
    ACCELERATION:    continuous, scaled by dt, ignores mass
    IMPULSE:         instantaneous, scaled by mass
    VELOCITY_CHANGE: instantaneous, ignores mass
    """

    FORCE = "force"
    ACCELERATION = "acceleration"
    IMPULSE = "impulse"
    VELOCITY_CHANGE = "velocity_change"


@dataclass
class Pose:
    """Position and orientation in the world frame."""

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: Quaternion = field(default_factory=Quaternion.identity)

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=float)


class PhysicsBody(Protocol):
    """Rigid body read/write interface."""

    def get_pose(self) -> tuple[np.ndarray, Quaternion]:
        """Return (position, rotation)."""
        ...

    def get_velocity(self) -> tuple[np.ndarray, np.ndarray]:
        """Return (linear velocity, angular velocity), world frame."""
        ...

    def apply_force(self, force: np.ndarray, mode: ForceMode = ForceMode.FORCE) -> None:
        ...

    def apply_torque(
        self, torque: np.ndarray, mode: ForceMode = ForceMode.FORCE
    ) -> None:
        ...


class TargetProvider(Protocol):
    """Source of the maneuver target."""

    def get_target_pose(self) -> Pose:
        ...
