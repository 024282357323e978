import math

import numpy as np
import pytest

from autoslam.lie import IMU, SE3, SO3, NavState, hat, jr, jr_inv

VECTORS = [
    np.array([0.1, -0.2, 0.3]),
    np.array([1.0, 2.0, -0.5]),
    np.array([0.0, 0.0, 3.0]),
    np.zeros(3),
    np.array([1e-12, 0.0, 0.0]),
    np.array([0.0, 0.0, math.pi - 1e-6]),
]


@pytest.mark.parametrize("omega", VECTORS)
def test_exp_log_round_trip(omega):
    assert np.allclose(SO3.exp(omega).log(), omega, atol=1e-9)


@pytest.mark.parametrize("omega", VECTORS)
def test_matrix_is_proper_rotation(omega):
    m = SO3.exp(omega).matrix()
    assert np.allclose(m.T @ m, np.eye(3), atol=1e-12)
    assert np.linalg.det(m) == pytest.approx(1.0)


def test_rot_z_quarter_turn():
    rotated = SO3.rot_z(math.pi / 2) * np.array([1.0, 0.0, 0.0])
    assert np.allclose(rotated, [0.0, 1.0, 0.0], atol=1e-12)


def test_quaternion_round_trip_normalises():
    q = np.array([0.3, -0.4, 0.5, 0.1])
    assert np.allclose(SO3.from_quaternion(q).unit_quaternion(), q / np.linalg.norm(q))


def test_zero_quaternion_rejected():
    with pytest.raises(ValueError):
        SO3.from_quaternion((0.0, 0.0, 0.0, 0.0))


def test_inverse_composes_to_identity():
    r = SO3.exp([0.3, -1.2, 0.7])
    assert np.allclose((r * r.inverse()).log(), np.zeros(3), atol=1e-12)
    assert np.allclose(r.inverse().matrix(), r.matrix().T)


def test_product_matches_matrix_product():
    a = SO3.exp([0.2, 0.1, -0.4])
    b = SO3.exp([-1.0, 0.5, 0.3])
    assert np.allclose((a * b).matrix(), a.matrix() @ b.matrix())


def test_hat_is_cross_product():
    a = np.array([1.0, -2.0, 0.5])
    b = np.array([0.3, 0.7, -1.1])
    assert np.allclose(hat(a) @ b, np.cross(a, b))
    assert np.allclose(hat(a), -hat(a).T)


def test_hat_rejects_bad_shape():
    with pytest.raises(ValueError):
        hat([1.0, 2.0])


@pytest.mark.parametrize("omega", [np.array([0.4, -0.3, 1.1]), np.array([1e-8, 0.0, 2e-8])])
def test_jr_first_order_perturbation(omega):
    dv = 1e-6 * np.array([1.0, -2.0, 0.5])
    lhs = SO3.exp(omega + dv)
    rhs = SO3.exp(omega) * SO3.exp(jr(omega) @ dv)
    assert np.linalg.norm((lhs.inverse() * rhs).log()) < 1e-10


@pytest.mark.parametrize("omega", [np.array([0.4, -0.3, 1.1]), np.zeros(3), np.array([2.0, 0.5, 0.1])])
def test_jr_inv_inverts_jr(omega):
    assert np.allclose(jr_inv(omega) @ jr(omega), np.eye(3), atol=1e-9)


def test_jr_inv_accepts_rotation():
    omega = np.array([0.2, 0.3, -0.1])
    assert np.allclose(jr_inv(SO3.exp(omega)), jr_inv(omega))


def test_se3_inverse_and_composition():
    a = SE3(SO3.exp([0.1, 0.2, 0.3]), [1.0, 2.0, 3.0])
    b = SE3(SO3.exp([-0.5, 0.0, 0.4]), [-1.0, 0.5, 2.0])
    assert np.allclose((a * a.inverse()).matrix(), np.eye(4), atol=1e-12)
    assert np.allclose((a * b).matrix(), a.matrix() @ b.matrix())


def test_se3_transforms_point_like_matrix():
    pose = SE3(SO3.exp([0.3, -0.2, 0.9]), [4.0, -1.0, 2.0])
    point = np.array([0.5, 1.5, -2.0])
    expected = (pose.matrix() @ np.append(point, 1.0))[:3]
    assert np.allclose(pose * point, expected)


def test_nav_state_se3():
    rotation = SO3.rot_z(0.4)
    state = NavState(1.0, rotation, [1.0, 2.0, 3.0])
    pose = state.se3()
    assert np.allclose(pose.translation, state.position)
    assert np.allclose(pose.rotation.matrix(), rotation.matrix())


def test_imu_converts_to_arrays():
    imu = IMU(0.5, [0.1, 0.2, 0.3], (0.0, 0.0, 9.8))
    assert np.array_equal(imu.acce, np.array([0.0, 0.0, 9.8]))
    assert imu.gyro.shape == (3,) and imu.gyro[1] == 0.2