import numpy as np
import pytest

from autoslam.lie import IMU, Odom
from autoslam.static_imu_init import StaticIMUInit, StaticIMUInitOptions

ACCE = np.array([0.1, 0.0, 9.8])
GYRO = np.array([1e-3, -2e-3, 5e-4])


def _feed(init, gyro_fn, acce_fn, samples=1101, dt=0.01):
    results = []
    for i in range(samples):
        results.append(init.add_imu(IMU(i * dt, gyro_fn(i), acce_fn(i))))
    return results


def test_initializes_without_odom():
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    _feed(init, lambda i: GYRO, lambda i: ACCE)
    assert init.init_success
    assert np.allclose(init.init_bg, GYRO)
    assert np.linalg.norm(init.gravity) == pytest.approx(9.81)
    assert np.allclose(init.gravity / np.linalg.norm(init.gravity), -ACCE / np.linalg.norm(ACCE))
    assert np.allclose(init.init_ba, ACCE + init.gravity)
    assert np.allclose(init.cov_gyro, 0.0)


def test_waits_for_static_by_default():
    init = StaticIMUInit()
    results = _feed(init, lambda i: GYRO, lambda i: ACCE)
    assert not any(results)
    assert not init.init_success


def test_static_odom_enables_init():
    init = StaticIMUInit()
    init.add_odom(Odom(0.0, 0, 0))
    _feed(init, lambda i: GYRO, lambda i: ACCE)
    assert init.init_success
    assert init.add_imu(IMU(20.0, GYRO, ACCE)) is True


def test_moving_odom_blocks_init():
    init = StaticIMUInit()
    init.add_odom(Odom(0.0, 10, 10))
    _feed(init, lambda i: GYRO, lambda i: ACCE)
    assert not init.init_success


def test_noisy_gyro_rejected():
    rng = np.random.default_rng(0)
    noise = rng.normal(scale=1.0, size=(1101, 3))
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    _feed(init, lambda i: noise[i], lambda i: ACCE)
    assert not init.init_success
    assert np.linalg.norm(init.cov_gyro) > init.options.max_static_gyro_var


def test_noisy_accelerometer_rejected():
    rng = np.random.default_rng(1)
    noise = rng.normal(scale=1.0, size=(1101, 3))
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    _feed(init, lambda i: GYRO, lambda i: ACCE + noise[i])
    assert not init.init_success
    assert np.linalg.norm(init.cov_acce) > init.options.max_static_acce_var


def test_too_few_samples():
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    for t in (0.0, 10.5, 11.0):
        init.add_imu(IMU(t, GYRO, ACCE))
    assert not init.init_success


def test_small_noise_estimates_mean_bias():
    rng = np.random.default_rng(2)
    noise = rng.normal(scale=1e-3, size=(1101, 3))
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    _feed(init, lambda i: GYRO + noise[i], lambda i: ACCE)
    assert init.init_success
    assert np.allclose(init.init_bg, GYRO, atol=5e-4)
    assert np.all(init.cov_gyro > 0)