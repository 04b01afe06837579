"""
Quaternion Math Utilities

Unit-quaternion helpers used by the orientation controller and the maneuver
sequencer.

Conventions:
    - Components are stored in (x, y, z, w) order.
    - Products follow the Hamilton convention: (a * b) applies b first, then a.
    - Rotations act on world-frame column vectors; the local frame has +Z
      forward, +Y up and +X right (see coordinate_frame).
"""

import math
from dataclasses import dataclass

import numpy as np

# Below this magnitude a rotation vector is treated as zero rotation.
_SMALL_ANGLE = 1e-12


@dataclass(frozen=True)
class Quaternion:
    """Immutable quaternion stored as (x, y, z, w)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    @classmethod
    def identity(cls) -> "Quaternion":
        """Return the identity rotation."""
        return cls(0.0, 0.0, 0.0, 1.0)

    @classmethod
    def from_array(cls, values) -> "Quaternion":
        """Build a quaternion from an (x, y, z, w) sequence."""
        x, y, z, w = (float(v) for v in values)
        return cls(x, y, z, w)

    @classmethod
    def from_axis_angle(cls, axis, angle: float) -> "Quaternion":
        """
        Build a rotation of `angle` radians about `axis`.

        Args:
            axis: Rotation axis (normalized internally).
            angle: Rotation angle in radians.

        Returns:
            Unit quaternion.

        Raises:
            ValueError: If axis has zero length.
        """
        axis = np.asarray(axis, dtype=float)
        norm = np.linalg.norm(axis)
        if norm < _SMALL_ANGLE:
            raise ValueError("Rotation axis must be non-zero")
        axis = axis / norm
        s = math.sin(angle / 2.0)
        return cls(axis[0] * s, axis[1] * s, axis[2] * s, math.cos(angle / 2.0))

    @classmethod
    def from_rotation_vector(cls, vector) -> "Quaternion":
        """
        Exponential map of a rotation vector (axis * angle).

        Args:
            vector: Rotation vector; its norm is the angle in radians.

        Returns:
            Unit quaternion. A zero vector maps to identity.
        """
        vector = np.asarray(vector, dtype=float)
        angle = float(np.linalg.norm(vector))
        if angle < _SMALL_ANGLE:
            return cls.identity()
        return cls.from_axis_angle(vector, angle)

    def as_array(self) -> np.ndarray:
        """Return components as ndarray in (x, y, z, w) order."""
        return np.array([self.x, self.y, self.z, self.w])

    @property
    def vector(self) -> np.ndarray:
        """Vector part (x, y, z)."""
        return np.array([self.x, self.y, self.z])

    def norm(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2 + self.w**2)

    def normalized(self) -> "Quaternion":
        """
        Return the unit quaternion with the same direction.

        Raises:
            ValueError: If the quaternion has zero length.
        """
        n = self.norm()
        if n < _SMALL_ANGLE:
            raise ValueError("Cannot normalize a zero-length quaternion")
        return Quaternion(self.x / n, self.y / n, self.z / n, self.w / n)

    def conjugate(self) -> "Quaternion":
        return Quaternion(-self.x, -self.y, -self.z, self.w)

    def inverse(self) -> "Quaternion":
        """Multiplicative inverse (conjugate / squared norm)."""
        n2 = self.x**2 + self.y**2 + self.z**2 + self.w**2
        if n2 < _SMALL_ANGLE:
            raise ValueError("Cannot invert a zero-length quaternion")
        return Quaternion(-self.x / n2, -self.y / n2, -self.z / n2, self.w / n2)

    def dot(self, other: "Quaternion") -> float:
        return (
            self.x * other.x + self.y * other.y + self.z * other.z + self.w * other.w
        )

    def __mul__(self, other):
        if isinstance(other, Quaternion):
            return Quaternion(
                self.w * other.x + self.x * other.w + self.y * other.z - self.z * other.y,
                self.w * other.y - self.x * other.z + self.y * other.w + self.z * other.x,
                self.w * other.z + self.x * other.y - self.y * other.x + self.z * other.w,
                self.w * other.w - self.x * other.x - self.y * other.y - self.z * other.z,
            )
        if isinstance(other, (int, float)):
            return Quaternion(
                self.x * other, self.y * other, self.z * other, self.w * other
            )
        return NotImplemented

    def __add__(self, other: "Quaternion") -> "Quaternion":
        return Quaternion(
            self.x + other.x, self.y + other.y, self.z + other.z, self.w + other.w
        )

    def __sub__(self, other: "Quaternion") -> "Quaternion":
        return Quaternion(
            self.x - other.x, self.y - other.y, self.z - other.z, self.w - other.w
        )

    def __neg__(self) -> "Quaternion":
        return Quaternion(-self.x, -self.y, -self.z, -self.w)

    def rotate(self, vector) -> np.ndarray:
        """
        Rotate a 3-vector by this (unit) quaternion.

        Args:
            vector: Vector to rotate.

        Returns:
            Rotated vector as ndarray.
        """
        v = np.asarray(vector, dtype=float)
        u = self.vector
        t = 2.0 * np.cross(u, v)
        return v + self.w * t + np.cross(u, t)

    def angle_to(self, other: "Quaternion") -> float:
        """Smallest rotation angle in radians between two orientations."""
        d = min(1.0, abs(self.normalized().dot(other.normalized())))
        return 2.0 * math.acos(d)


def rotation_delta(current: Quaternion, target: Quaternion) -> Quaternion:
    """
    Shortest-path rotation taking `current` onto `target`.

    Computed as target * current^-1, with the sign flipped so that w >= 0.
    The sign flip picks the shorter of the two double-cover representatives.

    Args:
        current: Current orientation.
        target: Desired orientation.

    Returns:
        Unit quaternion q with q * current == target and q.w >= 0.
    """
    delta = (target * current.inverse()).normalized()
    if delta.w < 0.0:
        delta = -delta
    return delta


def tangent_projection(q: Quaternion) -> np.ndarray:
    """
    Orthogonalizing 4x4 matrix for a unit quaternion.

    Projects a 4-vector (x, y, z, w order) onto the tangent space of the unit
    sphere at q, i.e. removes the component parallel to q. Written out
    entry-wise this is the re-projection matrix used by the orientation loop;
    in closed form it equals I - q q^T.

    Args:
        q: Unit quaternion.

    Returns:
        4x4 ndarray.
    """
    v = q.as_array()
    return np.eye(4) - np.outer(v, v)


def shortest_arc(from_direction, to_direction) -> Quaternion:
    """
    Smallest rotation taking one direction onto another.

    The result is continuous in both inputs everywhere except at exactly
    opposite directions, where any half turn about an axis perpendicular to
    `from_direction` is returned. For directions at most 90 degrees apart the
    w component is at least cos(45 deg).

    Args:
        from_direction: Start direction (need not be normalized).
        to_direction: End direction (need not be normalized).

    Returns:
        Unit quaternion q with q.rotate(from_direction) parallel to
        to_direction.

    Raises:
        ValueError: If either direction has zero length.
    """
    a = np.asarray(from_direction, dtype=float)
    b = np.asarray(to_direction, dtype=float)
    a_norm = np.linalg.norm(a)
    b_norm = np.linalg.norm(b)
    if a_norm < _SMALL_ANGLE or b_norm < _SMALL_ANGLE:
        raise ValueError("shortest_arc requires non-zero directions")
    a = a / a_norm
    b = b / b_norm

    w = 1.0 + float(np.dot(a, b))
    if w < 1e-9:
        axis = np.cross(a, [1.0, 0.0, 0.0])
        if np.linalg.norm(axis) < 1e-6:
            axis = np.cross(a, [0.0, 1.0, 0.0])
        return Quaternion.from_axis_angle(axis, math.pi)

    x, y, z = np.cross(a, b)
    return Quaternion(x, y, z, w).normalized()
