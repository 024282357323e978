"""Estimates IMU biases, noise and gravity while the vehicle stands still."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

import numpy as np

from autoslam.lie import IMU, Odom

logger = logging.getLogger(__name__)


@dataclass
class StaticIMUInitOptions:
    init_time_seconds: float = 10.0
    init_imu_queue_max_size: int = 2000
    static_odom_pulse: int = 5
    max_static_gyro_var: float = 0.5
    max_static_acce_var: float = 0.05
    gravity_norm: float = 9.81
    use_speed_for_static_checking: bool = True


class StaticIMUInit:
    """Collects static IMU readings and estimates initial biases and gravity.

    With wheel odometry the vehicle must read as static; without it, the
    vehicle is assumed static from the start.
    """

    def __init__(self, options: StaticIMUInitOptions | None = None):
        self.options = options if options is not None else StaticIMUInitOptions()
        self.init_success = False
        self.cov_gyro = np.zeros(3)
        self.cov_acce = np.zeros(3)
        self.init_bg = np.zeros(3)
        self.init_ba = np.zeros(3)
        self.gravity = np.zeros(3)
        self._is_static = False
        self._queue: deque[IMU] = deque()
        self._current_time = 0.0
        self._init_start_time = 0.0

    def add_imu(self, imu: IMU) -> bool:
        """Add a reading; returns True only once initialisation has already succeeded."""
        if self.init_success:
            return True

        opts = self.options
        if opts.use_speed_for_static_checking and not self._is_static:
            logger.warning("waiting for the vehicle to be static")
            self._queue.clear()
            return False

        if not self._queue:
            self._init_start_time = imu.timestamp
        self._queue.append(imu)

        if imu.timestamp - self._init_start_time > opts.init_time_seconds:
            self._try_init()

        while len(self._queue) > opts.init_imu_queue_max_size:
            self._queue.popleft()

        self._current_time = imu.timestamp
        return False

    def add_odom(self, odom: Odom) -> None:
        """Update the static flag from wheel pulses."""
        if self.init_success:
            return
        limit = self.options.static_odom_pulse
        self._is_static = odom.left_pulse < limit and odom.right_pulse < limit
        self._current_time = odom.timestamp

    def _try_init(self) -> bool:
        if len(self._queue) < 10:
            return False

        gyros = np.array([imu.gyro for imu in self._queue])
        acces = np.array([imu.acce for imu in self._queue])

        mean_gyro = gyros.mean(axis=0)
        self.cov_gyro = gyros.var(axis=0, ddof=1)
        mean_acce = acces.mean(axis=0)
        logger.info("mean acce: %s", mean_acce)
        self.gravity = -mean_acce / np.linalg.norm(mean_acce) * self.options.gravity_norm

        corrected = acces + self.gravity
        mean_acce = corrected.mean(axis=0)
        self.cov_acce = corrected.var(axis=0, ddof=1)

        gyro_norm = float(np.linalg.norm(self.cov_gyro))
        if gyro_norm > self.options.max_static_gyro_var:
            logger.error("gyro noise too large: %s > %s", gyro_norm, self.options.max_static_gyro_var)
            return False
        acce_norm = float(np.linalg.norm(self.cov_acce))
        if acce_norm > self.options.max_static_acce_var:
            logger.error("accelerometer noise too large: %s > %s", acce_norm, self.options.max_static_acce_var)
            return False

        self.init_bg = mean_gyro
        self.init_ba = mean_acce
        logger.info(
            "IMU initialised after %.3f s, bg=%s, ba=%s, gravity=%s",
            self._current_time - self._init_start_time,
            self.init_bg,
            self.init_ba,
            self.gravity,
        )
        self.init_success = True
        return True