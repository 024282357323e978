"""IMU preintegration between two keyframes, with bias Jacobians and noise propagation."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from autoslam.lie import IMU, SO3, NavState, hat, jr

_DEFAULT_GRAVITY = (0.0, 0.0, -9.81)


@dataclass
class PreintegrationOptions:
    """Initial biases and measurement noise (standard deviations)."""

    init_bg: np.ndarray = field(default_factory=lambda: np.zeros(3))
    init_ba: np.ndarray = field(default_factory=lambda: np.zeros(3))
    noise_gyro: float = 1e-2
    noise_acce: float = 1e-1


class IMUPreintegration:
    """Accumulates IMU readings into relative rotation, velocity and position.

    Observations can be corrected to first order for a bias different from
    the one used while integrating.
    """

    def __init__(self, options: PreintegrationOptions | None = None):
        opts = options if options is not None else PreintegrationOptions()
        self.bg = np.array(opts.init_bg, dtype=float).reshape(3)
        self.ba = np.array(opts.init_ba, dtype=float).reshape(3)
        ng2 = opts.noise_gyro * opts.noise_gyro
        na2 = opts.noise_acce * opts.noise_acce
        self.noise_gyro_acce = np.diag([ng2] * 3 + [na2] * 3)

        self.dt = 0.0
        self.cov = np.zeros((9, 9))

        self.dR = SO3()
        self.dv = np.zeros(3)
        self.dp = np.zeros(3)

        self.dR_dbg = np.zeros((3, 3))
        self.dV_dbg = np.zeros((3, 3))
        self.dV_dba = np.zeros((3, 3))
        self.dP_dbg = np.zeros((3, 3))
        self.dP_dba = np.zeros((3, 3))

    def integrate(self, imu: IMU, dt: float) -> None:
        """Add one reading held for ``dt`` seconds."""
        gyr = imu.gyro - self.bg
        acc = imu.acce - self.ba
        r = self.dR.matrix()
        dt2 = dt * dt

        self.dp = self.dp + self.dv * dt + 0.5 * (r @ acc) * dt2
        self.dv = self.dv + (r @ acc) * dt

        acc_hat = hat(acc)
        a = np.eye(9)
        b = np.zeros((9, 6))
        a[3:6, 0:3] = -r * dt @ acc_hat
        a[6:9, 0:3] = -0.5 * r @ acc_hat * dt2
        a[6:9, 3:6] = dt * np.eye(3)
        b[3:6, 3:6] = r * dt
        b[6:9, 3:6] = 0.5 * r * dt2

        self.dP_dba = self.dP_dba + self.dV_dba * dt - 0.5 * r * dt2
        self.dP_dbg = self.dP_dbg + self.dV_dbg * dt - 0.5 * r * dt2 @ acc_hat @ self.dR_dbg
        self.dV_dba = self.dV_dba - r * dt
        self.dV_dbg = self.dV_dbg - r * dt @ acc_hat @ self.dR_dbg

        omega = gyr * dt
        right_j = jr(omega)
        delta_r = SO3.exp(omega)
        self.dR = self.dR * delta_r
        delta_rt = delta_r.matrix().T

        a[0:3, 0:3] = delta_rt
        b[0:3, 0:3] = right_j * dt

        self.cov = a @ self.cov @ a.T + b @ self.noise_gyro_acce @ b.T
        self.dR_dbg = delta_rt @ self.dR_dbg - right_j * dt
        self.dt += dt

    def predict(self, start: NavState, grav=_DEFAULT_GRAVITY) -> NavState:
        """State reached from ``start`` after the integrated interval."""
        g = np.array(grav, dtype=float).reshape(3)
        rot = start.rotation
        rj = rot * self.dR
        vj = rot * self.dv + start.velocity + g * self.dt
        pj = rot * self.dp + start.position + start.velocity * self.dt + 0.5 * g * self.dt * self.dt
        return NavState(start.timestamp + self.dt, rj, pj, vj, self.bg, self.ba)

    def delta_rotation(self, bg) -> SO3:
        return self.dR * SO3.exp(self.dR_dbg @ (np.asarray(bg, dtype=float) - self.bg))

    def delta_velocity(self, bg, ba) -> np.ndarray:
        dbg = np.asarray(bg, dtype=float) - self.bg
        dba = np.asarray(ba, dtype=float) - self.ba
        return self.dv + self.dV_dbg @ dbg + self.dV_dba @ dba

    def delta_position(self, bg, ba) -> np.ndarray:
        dbg = np.asarray(bg, dtype=float) - self.bg
        dba = np.asarray(ba, dtype=float) - self.ba
        return self.dp + self.dP_dbg @ dbg + self.dP_dba @ dba