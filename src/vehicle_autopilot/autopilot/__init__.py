"""
Autopilot Package

Maneuver sequencing and actuation on top of the feedback controllers.

Components:
- ThrusterAgent: owns the thrust/torque controllers and applies their output
- ManeuverSequencer: phase machine flying the vehicle to a target and stopping
- Interfaces: PhysicsBody / TargetProvider contracts and ForceMode

Data Flow (one tick):
    sequencer reads pose, velocity, target
      -> torque command (OrientationPID)
      -> thrust commands (VectorPID / ScalarPID)
      -> agent applies forces and torques to the body
      -> agent ticks the autotuner, if one is attached
"""

from .agent import ControllerGroup, ReverseThrustPolicy, ThrusterAgent
from .config import VALID_REVERSE_THRUST_POLICIES, AutopilotConfig, ControllerSettings
from .interfaces import ForceMode, PhysicsBody, Pose, TargetProvider
from .sequencer import ManeuverPhase, ManeuverSequencer

__all__ = [
    "ThrusterAgent",
    "ControllerGroup",
    "ReverseThrustPolicy",
    "AutopilotConfig",
    "ControllerSettings",
    "VALID_REVERSE_THRUST_POLICIES",
    "ForceMode",
    "PhysicsBody",
    "Pose",
    "TargetProvider",
    "ManeuverPhase",
    "ManeuverSequencer",
]
