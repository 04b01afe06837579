"""
Vehicle Simulation Environment Package

Reference physics collaborator for exercising the autopilot end to end: a
free-floating rigid body that implements the PhysicsBody interface, and
target providers implementing TargetProvider.

Coordinate Frame (right-handed):
    - Local +Z: forward, +Y: up, +X: right
    - Position, velocity, angular velocity and torque are world-frame

Key Assumptions:
- Isotropic moment of inertia (torque maps directly to angular acceleration)
- No gravity; drag defaults to zero (free space)
- Perfect state information

Force Modes:
    FORCE, ACCELERATION      accumulated and integrated over the next step
    IMPULSE, VELOCITY_CHANGE applied as an instantaneous velocity change

Target Motion:
- stationary: fixed position
- linear: constant velocity
"""

from .config import (
    EnvConfig,
    LoggingParams,
    SimulationParams,
    TargetParams,
    VehicleParams,
)
from .rigid_body_env import RigidBodyEnv
from .target_motion import LinearMotion, StaticTarget, StationaryMotion, TargetMotion

__all__ = [
    # Main classes
    "RigidBodyEnv",
    "TargetMotion",
    "StaticTarget",
    # Configuration
    "EnvConfig",
    "VehicleParams",
    "SimulationParams",
    "TargetParams",
    "LoggingParams",
    # Motion patterns
    "LinearMotion",
    "StationaryMotion",
]
