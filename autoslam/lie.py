"""Rotations, rigid transforms and the sensor records shared across the package."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

DEG2RAD = math.pi / 180.0
RAD2DEG = 180.0 / math.pi

_EPS = 1e-10
_SMALL_ANGLE = 1e-6


def _vec3(v) -> np.ndarray:
    """Return a fresh float array of shape (3,), raising ValueError on a bad shape."""
    return np.array(v, dtype=float).reshape(3)


def hat(v) -> np.ndarray:
    """Skew-symmetric matrix such that hat(a) @ b == cross(a, b)."""
    x, y, z = _vec3(v)
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def jr(v) -> np.ndarray:
    """Right Jacobian of SO(3) at the tangent vector ``v``."""
    w = _vec3(v)
    theta = float(np.linalg.norm(w))
    k = hat(w)
    if theta < _SMALL_ANGLE:
        return np.eye(3) - 0.5 * k + (k @ k) / 6.0
    t2 = theta * theta
    return np.eye(3) - (1.0 - math.cos(theta)) / t2 * k + (theta - math.sin(theta)) / (t2 * theta) * (k @ k)


def jr_inv(v) -> np.ndarray:
    """Inverse right Jacobian of SO(3); accepts a tangent vector or an SO3."""
    w = v.log() if isinstance(v, SO3) else _vec3(v)
    theta = float(np.linalg.norm(w))
    k = hat(w)
    if theta < _SMALL_ANGLE:
        return np.eye(3) + 0.5 * k + (k @ k) / 12.0
    coeff = 1.0 / (theta * theta) - (1.0 + math.cos(theta)) / (2.0 * theta * math.sin(theta))
    return np.eye(3) + 0.5 * k + coeff * (k @ k)


class SO3:
    """A 3D rotation stored as a unit quaternion (w, x, y, z)."""

    __slots__ = ("_q",)

    def __init__(self, quaternion=(1.0, 0.0, 0.0, 0.0)):
        q = np.array(quaternion, dtype=float).reshape(4)
        norm = float(np.linalg.norm(q))
        if norm < _EPS:
            raise ValueError("quaternion must be non-zero")
        self._q = q / norm

    @classmethod
    def exp(cls, omega) -> "SO3":
        w = _vec3(omega)
        theta_sq = float(w @ w)
        theta = math.sqrt(theta_sq)
        if theta < _EPS:
            theta_po4 = theta_sq * theta_sq
            imag = 0.5 - theta_sq / 48.0 + theta_po4 / 3840.0
            real = 1.0 - theta_sq / 8.0 + theta_po4 / 384.0
        else:
            half = 0.5 * theta
            imag = math.sin(half) / theta
            real = math.cos(half)
        return cls((real, *(imag * w)))

    @classmethod
    def rot_z(cls, angle: float) -> "SO3":
        return cls.exp((0.0, 0.0, angle))

    @classmethod
    def from_quaternion(cls, q) -> "SO3":
        """Build from a quaternion given as (w, x, y, z); it is normalised."""
        return cls(q)

    def log(self) -> np.ndarray:
        w = self._q[0]
        vec = self._q[1:]
        n_sq = float(vec @ vec)
        n = math.sqrt(n_sq)
        if n_sq < _EPS * _EPS:
            factor = 2.0 / w - 2.0 / 3.0 * n_sq / (w ** 3)
        elif abs(w) < _EPS:
            factor = (math.pi if w > 0 else -math.pi) / n
        else:
            factor = 2.0 * math.atan(n / w) / n
        return factor * vec

    def inverse(self) -> "SO3":
        w, x, y, z = self._q
        return SO3((w, -x, -y, -z))

    def matrix(self) -> np.ndarray:
        w, x, y, z = self._q
        return np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
                [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
                [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
            ]
        )

    def unit_quaternion(self) -> np.ndarray:
        """Quaternion as (w, x, y, z)."""
        return self._q.copy()

    def __mul__(self, other):
        if isinstance(other, SO3):
            w1, x1, y1, z1 = self._q
            w2, x2, y2, z2 = other._q
            return SO3(
                (
                    w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
                    w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
                    w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
                    w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
                )
            )
        try:
            arr = np.asarray(other, dtype=float)
        except (TypeError, ValueError):
            return NotImplemented
        if arr.shape[:1] != (3,):
            return NotImplemented
        return self.matrix() @ arr

    def __repr__(self) -> str:
        return f"SO3(quaternion={self._q.tolist()})"


@dataclass(eq=False)
class SE3:
    """A rigid transform: rotation followed by translation."""

    rotation: SO3 = field(default_factory=SO3)
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.translation = _vec3(self.translation)

    def inverse(self) -> "SE3":
        rinv = self.rotation.inverse()
        return SE3(rinv, -(rinv * self.translation))

    def matrix(self) -> np.ndarray:
        m = np.eye(4)
        m[:3, :3] = self.rotation.matrix()
        m[:3, 3] = self.translation
        return m

    def __mul__(self, other):
        if isinstance(other, SE3):
            return SE3(self.rotation * other.rotation, self.rotation * other.translation + self.translation)
        rotated = self.rotation * other
        if rotated is NotImplemented:
            return NotImplemented
        return rotated + self.translation


@dataclass
class IMU:
    """One IMU reading: angular rate and specific force."""

    timestamp: float = 0.0
    gyro: np.ndarray = field(default_factory=lambda: np.zeros(3))
    acce: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.gyro = _vec3(self.gyro)
        self.acce = _vec3(self.acce)


@dataclass
class Odom:
    """One wheel-encoder reading in pulses per measurement span."""

    timestamp: float = 0.0
    left_pulse: float = 0.0
    right_pulse: float = 0.0


@dataclass(eq=False)
class NavState:
    """Navigation state: pose, velocity and IMU biases at a time."""

    timestamp: float = 0.0
    rotation: SO3 = field(default_factory=SO3)
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    bg: np.ndarray = field(default_factory=lambda: np.zeros(3))
    ba: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.position = _vec3(self.position)
        self.velocity = _vec3(self.velocity)
        self.bg = _vec3(self.bg)
        self.ba = _vec3(self.ba)

    def se3(self) -> SE3:
        return SE3(self.rotation, self.position)