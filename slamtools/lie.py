"""Rotation group SO(3) helpers and a rigid-body transform type SE(3)."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

_SMALL_ANGLE = 1e-10
_NEAR_PI = 1e-6


def hat(v) -> np.ndarray:
    """Skew-symmetric matrix such that ``hat(v) @ u == cross(v, u)``."""
    x, y, z = np.asarray(v, dtype=float).reshape(3)
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def _vee(m: np.ndarray) -> np.ndarray:
    return np.array([m[2, 1], m[0, 2], m[1, 0]])


def so3_exp(omega) -> np.ndarray:
    """Rotation matrix for a rotation vector."""
    w = np.asarray(omega, dtype=float).reshape(3)
    theta = float(np.linalg.norm(w))
    w_hat = hat(w)
    if theta < _SMALL_ANGLE:
        return np.eye(3) + w_hat + 0.5 * (w_hat @ w_hat)
    a = math.sin(theta) / theta
    b = (1.0 - math.cos(theta)) / (theta * theta)
    return np.eye(3) + a * w_hat + b * (w_hat @ w_hat)


def so3_log(rotation) -> np.ndarray:
    """Rotation vector of a rotation matrix, with angle in ``[0, pi]``."""
    r = np.asarray(rotation, dtype=float)
    if r.shape != (3, 3):
        raise ValueError(f"rotation must be 3x3, got {r.shape}")
    diagonal_sum = float(r[0, 0] + r[1, 1] + r[2, 2])
    cos_theta = float(np.clip((diagonal_sum - 1.0) / 2.0, -1.0, 1.0))
    theta = math.acos(cos_theta)
    skew_part = _vee(r - r.T)
    if theta < _SMALL_ANGLE:
        return 0.5 * skew_part
    if math.pi - theta < _NEAR_PI:
        b = 0.5 * (r + np.eye(3))
        i = int(np.argmax(np.diag(b)))
        axis = b[:, i] / math.sqrt(max(b[i, i], 0.0))
        axis /= np.linalg.norm(axis)
        if axis @ skew_part < 0.0:
            axis = -axis
        return theta * axis
    return theta / (2.0 * math.sin(theta)) * skew_part


@dataclass(frozen=True, eq=False)
class SE3:
    """Rigid transform ``p -> rotation @ p + translation``."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        rotation = np.asarray(self.rotation, dtype=float)
        translation = np.asarray(self.translation, dtype=float).reshape(3)
        if rotation.shape != (3, 3):
            raise ValueError(f"rotation must be 3x3, got {rotation.shape}")
        object.__setattr__(self, "rotation", rotation)
        object.__setattr__(self, "translation", translation)

    @classmethod
    def identity(cls) -> "SE3":
        """The identity transform."""
        return cls(np.eye(3), np.zeros(3))

    @classmethod
    def exp(cls, xi) -> "SE3":
        """Exponential map of a twist ``(rho, phi)``: translation part first."""
        twist = np.asarray(xi, dtype=float).reshape(6)
        rho, phi = twist[:3], twist[3:]
        theta = float(np.linalg.norm(phi))
        phi_hat = hat(phi)
        phi_hat2 = phi_hat @ phi_hat
        if theta < _SMALL_ANGLE:
            v = np.eye(3) + 0.5 * phi_hat + phi_hat2 / 6.0
        else:
            v = (
                np.eye(3)
                + (1.0 - math.cos(theta)) / theta**2 * phi_hat
                + (theta - math.sin(theta)) / theta**3 * phi_hat2
            )
        return cls(so3_exp(phi), v @ rho)

    def compose(self, other: "SE3") -> "SE3":
        """Return ``self * other``: apply ``other`` first, then ``self``."""
        return SE3(
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation,
        )

    def __matmul__(self, other: "SE3") -> "SE3":
        return self.compose(other)

    def transform(self, points) -> np.ndarray:
        """Transform one point of shape (3,) or many of shape (N, 3)."""
        p = np.asarray(points, dtype=float)
        if p.ndim == 1:
            return self.rotation @ p + self.translation
        return p @ self.rotation.T + self.translation

    def matrix(self) -> np.ndarray:
        """Homogeneous 4x4 matrix."""
        m = np.eye(4)
        m[:3, :3] = self.rotation
        m[:3, 3] = self.translation
        return m