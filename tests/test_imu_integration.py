import numpy as np
import pytest

from autoslam.imu_integration import IMUIntegration
from autoslam.lie import IMU

GRAVITY = np.array([0.0, 0.0, -9.8])


def _run(integ, gyro, acce, steps=100, dt=0.01):
    for i in range(1, steps + 1):
        integ.add_imu(IMU(i * dt, gyro, acce))


def test_stationary_stays_put():
    integ = IMUIntegration(GRAVITY, np.zeros(3), np.zeros(3))
    _run(integ, np.zeros(3), -GRAVITY)
    assert np.allclose(integ.position, 0.0, atol=1e-12)
    assert np.allclose(integ.velocity, 0.0, atol=1e-12)
    assert np.allclose(integ.rotation.log(), 0.0)


def test_biases_are_removed():
    bg = np.array([0.000224886, -7.61038e-05, -0.000742259])
    ba = np.array([-0.165205, 0.0926887, 0.0058049])
    integ = IMUIntegration(GRAVITY, bg, ba)
    _run(integ, bg, ba - GRAVITY)
    assert np.allclose(integ.position, 0.0, atol=1e-12)
    assert np.allclose(integ.rotation.log(), 0.0, atol=1e-12)


def test_constant_rotation():
    gyro = np.array([0.0, 0.0, 0.5])
    integ = IMUIntegration(GRAVITY, np.zeros(3), np.zeros(3))
    _run(integ, gyro, -GRAVITY)
    assert np.allclose(integ.rotation.log(), gyro * 100 * 0.01, atol=1e-9)


def test_constant_acceleration():
    accel = 1.5
    integ = IMUIntegration(GRAVITY, np.zeros(3), np.zeros(3))
    _run(integ, np.zeros(3), np.array([accel, 0.0, 0.0]) - GRAVITY)
    total = integ.timestamp
    assert integ.velocity[0] == pytest.approx(accel * total)
    assert integ.position[0] == pytest.approx(0.5 * accel * total * total)
    assert integ.position[2] == pytest.approx(0.0, abs=1e-12)


def test_large_gap_only_advances_clock():
    integ = IMUIntegration(GRAVITY, np.zeros(3), np.zeros(3))
    integ.add_imu(IMU(0.5, [1.0, 1.0, 1.0], [5.0, 5.0, 5.0]))
    state = integ.nav_state()
    assert state.timestamp == 0.5
    assert np.array_equal(state.position, np.zeros(3))
    assert np.array_equal(state.velocity, np.zeros(3))


def test_nav_state_carries_biases():
    bg = np.array([0.1, 0.2, 0.3])
    ba = np.array([-0.1, -0.2, -0.3])
    state = IMUIntegration(GRAVITY, bg, ba).nav_state()
    assert np.array_equal(state.bg, bg)
    assert np.array_equal(state.ba, ba)