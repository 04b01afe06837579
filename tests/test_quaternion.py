"""Tests for quaternion math and coordinate frame helpers."""

import math

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from vehicle_autopilot.utils.coordinate_frame import (
    LOCAL_FORWARD,
    forward_of,
    local_to_world,
    right_of,
    safe_normalize,
    up_of,
    world_to_local,
)
from vehicle_autopilot.utils.quaternion import (
    Quaternion,
    rotation_delta,
    shortest_arc,
    tangent_projection,
)


def _random_quaternions(count: int, seed: int = 0) -> list[Quaternion]:
    rots = Rotation.random(count, seed)
    return [Quaternion.from_array(q) for q in rots.as_quat()]


def _same_rotation(a: Quaternion, b: Quaternion, atol: float = 1e-9) -> bool:
    return abs(abs(a.dot(b)) - 1.0) < atol


class TestQuaternionConstruction:
    """Tests for Quaternion constructors."""

    def test_identity(self):
        """Test identity components and that it leaves vectors unchanged."""
        q = Quaternion.identity()
        assert np.allclose(q.as_array(), [0.0, 0.0, 0.0, 1.0])
        assert np.allclose(q.rotate([1.0, 2.0, 3.0]), [1.0, 2.0, 3.0])

    def test_from_axis_angle_matches_scipy(self):
        """Test axis-angle construction against scipy."""
        axis = np.array([1.0, 2.0, -0.5])
        angle = 1.3
        q = Quaternion.from_axis_angle(axis, angle)
        expected = Rotation.from_rotvec(axis / np.linalg.norm(axis) * angle).as_quat()
        assert _same_rotation(q, Quaternion.from_array(expected))

    def test_from_axis_angle_zero_axis_raises(self):
        """Test that a zero rotation axis raises ValueError."""
        with pytest.raises(ValueError, match="non-zero"):
            Quaternion.from_axis_angle([0.0, 0.0, 0.0], 1.0)

    def test_from_rotation_vector_zero_is_identity(self):
        """Test that a zero rotation vector maps to identity."""
        q = Quaternion.from_rotation_vector([0.0, 0.0, 0.0])
        assert q == Quaternion.identity()

    def test_from_rotation_vector_matches_scipy(self):
        """Test the exponential map against scipy."""
        vec = np.array([0.3, -0.2, 0.9])
        q = Quaternion.from_rotation_vector(vec)
        expected = Quaternion.from_array(Rotation.from_rotvec(vec).as_quat())
        assert _same_rotation(q, expected)


class TestQuaternionAlgebra:
    """Tests for products, inverses and rotation of vectors."""

    def test_hamilton_product_matches_scipy(self):
        """Test that a * b composes like scipy (b applied first)."""
        qs = _random_quaternions(20, seed=2)
        for a, b in zip(qs[::2], qs[1::2]):
            expected = (
                Rotation.from_quat(a.as_array()) * Rotation.from_quat(b.as_array())
            ).as_quat()
            assert _same_rotation(a * b, Quaternion.from_array(expected))

    def test_rotate_matches_scipy(self):
        """Test vector rotation against scipy."""
        v = np.array([0.4, -1.2, 2.5])
        for q in _random_quaternions(10, seed=3):
            expected = Rotation.from_quat(q.as_array()).apply(v)
            assert np.allclose(q.rotate(v), expected)

    def test_inverse_composes_to_identity(self):
        """Test q * q^-1 == identity."""
        for q in _random_quaternions(10, seed=4):
            assert _same_rotation(q * q.inverse(), Quaternion.identity())

    def test_scalar_multiplication(self):
        """Test that multiplying by a scalar scales every component."""
        q = Quaternion(0.1, 0.2, 0.3, 0.4) * 2.0
        assert np.allclose(q.as_array(), [0.2, 0.4, 0.6, 0.8])

    def test_normalized(self):
        """Test normalization to unit length."""
        q = Quaternion(1.0, 1.0, 1.0, 1.0).normalized()
        assert q.norm() == pytest.approx(1.0)

    def test_angle_to(self):
        """Test the angle between two orientations."""
        a = Quaternion.identity()
        b = Quaternion.from_axis_angle([0.0, 1.0, 0.0], math.pi / 3)
        assert a.angle_to(b) == pytest.approx(math.pi / 3)
        assert a.angle_to(-b) == pytest.approx(math.pi / 3)


class TestRotationDelta:
    """Tests for rotation_delta and tangent_projection."""

    def test_delta_of_equal_rotations_is_identity(self):
        """Test rotation_delta(q, q) is the identity."""
        for q in _random_quaternions(20, seed=5):
            delta = rotation_delta(q, q)
            assert np.allclose(delta.as_array(), [0.0, 0.0, 0.0, 1.0], atol=1e-12)

    def test_delta_maps_current_onto_target(self):
        """Test delta * current == target."""
        qs = _random_quaternions(20, seed=6)
        for current, target in zip(qs[::2], qs[1::2]):
            delta = rotation_delta(current, target)
            assert _same_rotation(delta * current, target)

    def test_delta_has_non_negative_w(self):
        """Test the shortest-path sign convention."""
        qs = _random_quaternions(40, seed=7)
        for current, target in zip(qs[::2], qs[1::2]):
            assert rotation_delta(current, target).w >= 0.0

    def test_delta_ignores_double_cover_sign(self):
        """Test q and -q give the same delta."""
        current, target = _random_quaternions(2, seed=8)
        assert np.allclose(
            rotation_delta(current, target).as_array(),
            rotation_delta(current, -target).as_array(),
        )

    def test_tangent_projection_removes_parallel_component(self):
        """Test M q == 0 and M is idempotent."""
        for q in _random_quaternions(5, seed=9):
            m = tangent_projection(q)
            assert np.allclose(m @ q.as_array(), 0.0)
            assert np.allclose(m @ m, m)

    def test_tangent_projection_at_identity(self):
        """Test that at identity the projection keeps the vector part."""
        m = tangent_projection(Quaternion.identity())
        assert np.allclose(m, np.diag([1.0, 1.0, 1.0, 0.0]))


class TestShortestArc:
    """Tests for shortest_arc."""

    @pytest.mark.parametrize(
        "target",
        [
            [0.0, 0.0, 1.0],
            [0.0, 1.0, 0.0],
            [0.0, -1.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.3, 0.4, -0.8],
            [0.0, 0.0, -1.0],
        ],
    )
    def test_maps_forward_onto_target(self, target):
        """Test local +Z is rotated onto the requested direction."""
        q = shortest_arc(LOCAL_FORWARD, target)
        expected = np.asarray(target) / np.linalg.norm(target)
        assert np.allclose(q.rotate(LOCAL_FORWARD), expected)
        assert q.norm() == pytest.approx(1.0)

    def test_same_direction_is_identity(self):
        """Test equal directions give the identity rotation."""
        q = shortest_arc([0.0, 2.0, 0.0], [0.0, 1.0, 0.0])
        assert _same_rotation(q, Quaternion.identity())

    def test_rotation_angle_is_angle_between_directions(self):
        """Test the rotation turns exactly as far as the directions differ."""
        q = shortest_arc([1.0, 0.0, 0.0], [1.0, 1.0, 0.0])
        assert q.angle_to(Quaternion.identity()) == pytest.approx(math.pi / 4)
        assert np.allclose(q.vector / np.linalg.norm(q.vector), [0.0, 0.0, 1.0])

    def test_vertical_heading_from_any_roll(self):
        """Test turning straight up never needs more than a quarter turn."""
        for q0 in _random_quaternions(20, seed=5):
            forward = forward_of(q0)
            if forward[1] < 0.0:
                continue
            arc = shortest_arc(forward, [0.0, 1.0, 0.0])
            assert arc.w >= math.cos(math.pi / 4) - 1e-9
            assert np.allclose(forward_of(arc * q0), [0.0, 1.0, 0.0])

    def test_zero_direction_raises(self):
        """Test that a zero-length direction raises ValueError."""
        with pytest.raises(ValueError, match="non-zero directions"):
            shortest_arc([0.0, 0.0, 0.0], [0.0, 0.0, 1.0])


class TestCoordinateFrame:
    """Tests for local/world frame helpers."""

    def test_identity_axes(self):
        """Test the frame convention: +X right, +Y up, +Z forward."""
        q = Quaternion.identity()
        assert np.allclose(right_of(q), [1.0, 0.0, 0.0])
        assert np.allclose(up_of(q), [0.0, 1.0, 0.0])
        assert np.allclose(forward_of(q), [0.0, 0.0, 1.0])

    def test_frame_is_right_handed(self):
        """Test right x up == forward for arbitrary rotations."""
        for q in _random_quaternions(5, seed=10):
            assert np.allclose(np.cross(right_of(q), up_of(q)), forward_of(q))

    def test_world_local_roundtrip(self):
        """Test local_to_world inverts world_to_local."""
        q = _random_quaternions(1, seed=11)[0]
        v = np.array([1.0, -2.0, 0.5])
        assert np.allclose(local_to_world(q, world_to_local(q, v)), v)

    def test_world_to_local_of_forward(self):
        """Test the world forward axis maps to local +Z."""
        q = Quaternion.from_axis_angle([0.0, 1.0, 0.0], 0.7)
        assert np.allclose(world_to_local(q, forward_of(q)), LOCAL_FORWARD)

    def test_safe_normalize(self):
        """Test normalization and the fallback for tiny vectors."""
        assert np.allclose(safe_normalize([3.0, 0.0, 4.0], [0, 0, 1]), [0.6, 0.0, 0.8])
        assert np.allclose(safe_normalize([0.0, 0.0, 0.0], [0, 0, 1]), [0.0, 0.0, 1.0])
