"""
Vehicle Coordinate Frame Utilities

This module defines the frame conventions shared by the controllers, the
maneuver sequencer and the reference simulator.

Coordinate Frame Convention (right-handed):
    - Local +Z: forward (main thruster axis)
    - Local +Y: up
    - Local +X: right (side thruster axis)
    - World frame uses the same axes at identity rotation.

Vector Conventions:
    - Position, linear velocity, angular velocity and torque are world-frame.
    - Local velocity is the world velocity rotated by the inverse vehicle
      rotation: local = q^-1 * v.

This module is the single source of truth for frame conventions.
"""

import numpy as np

from .quaternion import Quaternion

# ==============================================================================
# Local Frame Axes
# ==============================================================================

LOCAL_RIGHT = np.array([1.0, 0.0, 0.0])
LOCAL_UP = np.array([0.0, 1.0, 0.0])
LOCAL_FORWARD = np.array([0.0, 0.0, 1.0])

# Vectors shorter than this have no usable direction.
MIN_VECTOR_MAGNITUDE = 1e-6


# ==============================================================================
# Frame Helpers
# ==============================================================================


def forward_of(rotation: Quaternion) -> np.ndarray:
    """World-frame forward (+Z local) axis of a rotation."""
    return rotation.rotate(LOCAL_FORWARD)


def right_of(rotation: Quaternion) -> np.ndarray:
    """World-frame right (+X local) axis of a rotation."""
    return rotation.rotate(LOCAL_RIGHT)


def up_of(rotation: Quaternion) -> np.ndarray:
    """World-frame up (+Y local) axis of a rotation."""
    return rotation.rotate(LOCAL_UP)


def world_to_local(rotation: Quaternion, vector) -> np.ndarray:
    """Express a world-frame vector in the vehicle's local frame."""
    return rotation.inverse().rotate(vector)


def local_to_world(rotation: Quaternion, vector) -> np.ndarray:
    """Express a local-frame vector in the world frame."""
    return rotation.rotate(vector)


def safe_normalize(vector, fallback) -> np.ndarray:
    """
    Normalize a vector, returning `fallback` when it is too short.

    Args:
        vector: Vector to normalize.
        fallback: Value returned for near-zero vectors.

    Returns:
        Unit vector or the fallback (as ndarray).
    """
    vector = np.asarray(vector, dtype=float)
    norm = np.linalg.norm(vector)
    if norm < MIN_VECTOR_MAGNITUDE:
        return np.asarray(fallback, dtype=float)
    return vector / norm
