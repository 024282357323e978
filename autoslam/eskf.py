"""Error-state Kalman filter fusing IMU, wheel odometry and GNSS/pose observations.

State order: p, v, R, bg, ba, g (18 dimensions).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np

from autoslam.lie import DEG2RAD, IMU, SE3, SO3, NavState, Odom, hat

logger = logging.getLogger(__name__)

_DEFAULT_GRAVITY = (0.0, 0.0, -9.8)


@dataclass(eq=False)
class GNSS:
    """A GNSS reading already converted to a pose in the map frame."""

    unix_time: float = 0.0
    utm_pose: SE3 = field(default_factory=SE3)
    heading_valid: bool = False


@dataclass
class ESKFOptions:
    imu_dt: float = 0.01
    gyro_var: float = 1e-5
    acce_var: float = 1e-2
    bias_gyro_var: float = 1e-6
    bias_acce_var: float = 1e-4

    odom_var: float = 0.5
    odom_span: float = 0.1
    wheel_radius: float = 0.155
    circle_pulse: float = 1024.0

    gnss_pos_noise: float = 0.1
    gnss_height_noise: float = 0.1
    gnss_ang_noise: float = 1.0 * DEG2RAD

    update_bias_gyro: bool = True
    update_bias_acce: bool = True


class ESKF:
    """18-dimensional error-state Kalman filter."""

    def __init__(self, options: ESKFOptions | None = None):
        self.options = options if options is not None else ESKFOptions()
        self.current_time = 0.0
        self.position = np.zeros(3)
        self.velocity = np.zeros(3)
        self.rotation = SO3()
        self.bg = np.zeros(3)
        self.ba = np.zeros(3)
        self.gravity = np.array(_DEFAULT_GRAVITY)
        self.cov = np.eye(18)
        self._first_gnss = True
        self._build_noise(self.options, self.options.odom_var)

    def set_initial_conditions(self, options: ESKFOptions, init_bg, init_ba, gravity=_DEFAULT_GRAVITY) -> None:
        # Odometry noise is taken from the options in effect before this call.
        self._build_noise(options, self.options.odom_var)
        self.options = options
        self.bg = np.array(init_bg, dtype=float).reshape(3)
        self.ba = np.array(init_ba, dtype=float).reshape(3)
        self.gravity = np.array(gravity, dtype=float).reshape(3)
        self.cov = np.eye(18) * 1e-4

    def _build_noise(self, options: ESKFOptions, odom_var: float) -> None:
        ev, et = options.acce_var, options.gyro_var
        eg, ea = options.bias_gyro_var, options.bias_acce_var
        self.process_noise = np.diag([0.0] * 3 + [ev] * 3 + [et] * 3 + [eg] * 3 + [ea] * 3 + [0.0] * 3)
        self.odom_noise = np.eye(3) * odom_var * odom_var
        gp2 = options.gnss_pos_noise ** 2
        gh2 = options.gnss_height_noise ** 2
        ga2 = options.gnss_ang_noise ** 2
        self.gnss_noise = np.diag([gp2, gp2, gh2, ga2, ga2, ga2])

    def predict(self, imu: IMU) -> bool:
        """Propagate with one IMU reading; returns False if the time step was rejected."""
        dt = imu.timestamp - self.current_time
        if dt > 5 * self.options.imu_dt or dt < 0:
            logger.info("skip this imu because dt = %s", dt)
            self.current_time = imu.timestamp
            return False

        acc = imu.acce - self.ba
        gyr = imu.gyro - self.bg
        acc_world = self.rotation * acc
        new_p = self.position + self.velocity * dt + 0.5 * acc_world * dt * dt + 0.5 * self.gravity * dt * dt
        new_v = self.velocity + acc_world * dt + self.gravity * dt
        self.rotation = self.rotation * SO3.exp(gyr * dt)
        self.velocity = new_v
        self.position = new_p

        r = self.rotation.matrix()
        eye3 = np.eye(3)
        f = np.eye(18)
        f[0:3, 3:6] = eye3 * dt
        f[3:6, 6:9] = -r @ hat(acc) * dt
        f[3:6, 12:15] = -r * dt
        f[3:6, 15:18] = eye3 * dt
        f[6:9, 6:9] = SO3.exp(-gyr * dt).matrix()
        f[6:9, 9:12] = -eye3 * dt

        self.cov = f @ self.cov @ f.T + self.process_noise
        self.current_time = imu.timestamp
        return True

    def observe_wheel_speed(self, odom: Odom) -> None:
        h = np.zeros((3, 18))
        h[:, 3:6] = np.eye(3)
        k = self.cov @ h.T @ np.linalg.inv(h @ self.cov @ h.T + self.odom_noise)

        opts = self.options
        scale = opts.wheel_radius / opts.circle_pulse * 2 * math.pi / opts.odom_span
        average_vel = 0.5 * (odom.left_pulse * scale + odom.right_pulse * scale)
        vel_world = self.rotation * np.array([average_vel, 0.0, 0.0])

        dx = k @ (vel_world - self.velocity)
        self.cov = (np.eye(18) - k @ h) @ self.cov
        self._update_and_reset(dx)

    def observe_gps(self, gnss: GNSS) -> None:
        """Observe a GNSS pose; the first one sets the pose directly."""
        if self._first_gnss:
            self.rotation = gnss.utm_pose.rotation
            self.position = gnss.utm_pose.translation.copy()
            self._first_gnss = False
            self.current_time = gnss.unix_time
            return

        if not gnss.heading_valid:
            raise ValueError("GNSS observation requires a valid heading")
        self.observe_se3(gnss.utm_pose, self.options.gnss_pos_noise, self.options.gnss_ang_noise)
        self.current_time = gnss.unix_time

    def observe_se3(self, pose: SE3, trans_noise: float = 0.1, ang_noise: float = 1.0 * DEG2RAD) -> None:
        h = np.zeros((6, 18))
        h[0:3, 0:3] = np.eye(3)
        h[3:6, 6:9] = np.eye(3)
        noise = np.diag([trans_noise] * 3 + [ang_noise] * 3)
        k = self.cov @ h.T @ np.linalg.inv(h @ self.cov @ h.T + noise)

        innov = np.concatenate(
            [pose.translation - self.position, (self.rotation.inverse() * pose.rotation).log()]
        )
        dx = k @ innov
        self.cov = (np.eye(18) - k @ h) @ self.cov
        self._update_and_reset(dx)

    def _update_and_reset(self, dx: np.ndarray) -> None:
        self.position = self.position + dx[0:3]
        self.velocity = self.velocity + dx[3:6]
        self.rotation = self.rotation * SO3.exp(dx[6:9])
        if self.options.update_bias_gyro:
            self.bg = self.bg + dx[9:12]
        if self.options.update_bias_acce:
            self.ba = self.ba + dx[12:15]
        self.gravity = self.gravity + dx[15:18]

        j = np.eye(18)
        j[6:9, 6:9] = np.eye(3) - 0.5 * hat(dx[6:9])
        self.cov = j @ self.cov @ j.T

    def nominal_state(self) -> NavState:
        return NavState(self.current_time, self.rotation, self.position, self.velocity, self.bg, self.ba)

    def nominal_se3(self) -> SE3:
        return SE3(self.rotation, self.position)

    def set_x(self, x: NavState, grav) -> None:
        self.current_time = x.timestamp
        self.rotation = x.rotation
        self.position = np.array(x.position, dtype=float)
        self.velocity = np.array(x.velocity, dtype=float)
        self.bg = np.array(x.bg, dtype=float)
        self.ba = np.array(x.ba, dtype=float)
        self.gravity = np.array(grav, dtype=float).reshape(3)

    def set_cov(self, cov) -> None:
        cov = np.array(cov, dtype=float)
        if cov.shape != (18, 18):
            raise ValueError(f"covariance must be 18x18, got {cov.shape}")
        self.cov = cov