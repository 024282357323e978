"""Preintegration residual linking two navigation states, with its Jacobians."""

from __future__ import annotations

import numpy as np

from autoslam.imu_preintegration import IMUPreintegration
from autoslam.lie import SE3, hat, jr, jr_inv


class InertialEdge:
    """9-dimensional residual (rotation, velocity, position) of a preintegration.

    Variables, in order: pose1 (R1 then p1), v1, bg1, ba1, pose2 (R2 then p2), v2.
    Rotations are perturbed on the right, translations and vectors additively.
    """

    def __init__(self, preinteg: IMUPreintegration, gravity, weight: float = 1.0):
        self.preint = preinteg
        self.dt = preinteg.dt
        self.gravity = np.array(gravity, dtype=float).reshape(3)
        try:
            self.information = np.linalg.inv(preinteg.cov) * weight
        except np.linalg.LinAlgError as exc:
            raise ValueError("preintegration covariance is singular") from exc

    def error(self, pose1: SE3, v1, bg1, ba1, pose2: SE3, v2) -> np.ndarray:
        v1 = np.asarray(v1, dtype=float)
        v2 = np.asarray(v2, dtype=float)
        g, dt = self.gravity, self.dt
        d_r = self.preint.delta_rotation(bg1)
        dv = self.preint.delta_velocity(bg1, ba1)
        dp = self.preint.delta_position(bg1, ba1)

        r1_inv = pose1.rotation.inverse()
        er = (d_r.inverse() * r1_inv * pose2.rotation).log()
        rit = r1_inv.matrix()
        ev = rit @ (v2 - v1 - g * dt) - dv
        ep = rit @ (pose2.translation - pose1.translation - v1 * dt - g * dt * dt / 2) - dp
        return np.concatenate([er, ev, ep])

    def jacobians(self, pose1: SE3, v1, bg1, ba1, pose2: SE3, v2) -> list[np.ndarray]:
        """Jacobians of the residual with respect to each of the six variables."""
        v1 = np.asarray(v1, dtype=float)
        v2 = np.asarray(v2, dtype=float)
        bg = np.asarray(bg1, dtype=float)
        g, dt = self.gravity, self.dt
        pre = self.preint
        dbg = bg - pre.bg

        r1 = pose1.rotation
        r1t = r1.inverse()
        r2 = pose2.rotation
        r1t_m = r1t.matrix()
        pi, pj = pose1.translation, pose2.translation

        d_r = pre.delta_rotation(bg)
        e_r = d_r.inverse() * r1t * r2
        inv_jr = jr_inv(e_r)

        j_pose1 = np.zeros((9, 6))
        j_pose1[0:3, 0:3] = -inv_jr @ (r2.inverse() * r1).matrix()
        j_pose1[3:6, 0:3] = hat(r1t * (v2 - v1 - g * dt))
        j_pose1[6:9, 0:3] = hat(r1t * (pj - pi - v1 * dt - 0.5 * g * dt * dt))
        j_pose1[6:9, 3:6] = -r1t_m

        j_v1 = np.zeros((9, 3))
        j_v1[3:6, :] = -r1t_m
        j_v1[6:9, :] = -r1t_m * dt

        j_bg1 = np.zeros((9, 3))
        j_bg1[0:3, :] = -inv_jr @ e_r.inverse().matrix() @ jr(pre.dR_dbg @ dbg) @ pre.dR_dbg
        j_bg1[3:6, :] = -pre.dV_dbg
        j_bg1[6:9, :] = -pre.dP_dbg

        j_ba1 = np.zeros((9, 3))
        j_ba1[3:6, :] = -pre.dV_dba
        j_ba1[6:9, :] = -pre.dP_dba

        j_pose2 = np.zeros((9, 6))
        j_pose2[0:3, 0:3] = inv_jr
        j_pose2[6:9, 3:6] = r1t_m

        j_v2 = np.zeros((9, 3))
        j_v2[3:6, :] = r1t_m

        return [j_pose1, j_v1, j_bg1, j_ba1, j_pose2, j_v2]

    def hessian(self, pose1: SE3, v1, bg1, ba1, pose2: SE3, v2) -> np.ndarray:
        """24x24 matrix J^T * information * J over all stacked variables."""
        j = np.hstack(self.jacobians(pose1, v1, bg1, ba1, pose2, v2))
        return j.T @ self.information @ j