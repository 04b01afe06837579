"""
Vehicle Autopilot Package

A 6-DOF vehicle autopilot built from cascaded PID loops driving a rigid body
through thrust and torque, with relay autotuning and a maneuver sequencer.

Subpackages:
- controllers: ScalarPID, VectorPID, OrientationPID and the relay Autotuner
- autopilot: ThrusterAgent, ManeuverSequencer and collaborator interfaces
- env: Reference rigid-body environment and target providers
- utils: Configuration, logging, plotting, quaternion math and metrics
- simulate: Maneuver and autotune run pipeline
"""

import importlib.metadata

try:
    # Retrieve the version from installed package metadata
    __version__ = importlib.metadata.version("vehicle-autopilot")
except importlib.metadata.PackageNotFoundError:
    # Fallback for when the package is not installed
    __version__ = "0.0.0-dev"

from vehicle_autopilot.controllers import (
    Autotuner,
    GainSet,
    OrientationPID,
    ScalarPID,
    VectorPID,
)
from vehicle_autopilot.autopilot import (
    AutopilotConfig,
    ManeuverPhase,
    ManeuverSequencer,
    ThrusterAgent,
)
from vehicle_autopilot.env import RigidBodyEnv, TargetMotion
from vehicle_autopilot.utils import (
    DataLogger,
    ManeuverMetrics,
    Plotter,
    get_default_config,
    load_config,
)

__all__ = [
    "GainSet",
    "ScalarPID",
    "VectorPID",
    "OrientationPID",
    "Autotuner",
    "AutopilotConfig",
    "ThrusterAgent",
    "ManeuverPhase",
    "ManeuverSequencer",
    "RigidBodyEnv",
    "TargetMotion",
    "load_config",
    "get_default_config",
    "DataLogger",
    "Plotter",
    "ManeuverMetrics",
]
