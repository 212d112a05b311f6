"""Projection of points through a BAL camera with radial distortion."""

from __future__ import annotations

import sys

import numpy as np

CAMERA_SIZE = 9
_EPSILON = sys.float_info.epsilon


def _rotate(angle_axis: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Rodrigues rotation, broadcast over leading dimensions."""
    theta2 = np.sum(angle_axis * angle_axis, axis=-1, keepdims=True)
    large = theta2 > _EPSILON
    theta = np.sqrt(np.where(large, theta2, 1.0))
    w = angle_axis / theta
    cos_t = np.cos(theta)
    sin_t = np.sin(theta)
    w_cross = np.cross(w, points)
    tmp = np.sum(w * points, axis=-1, keepdims=True) * (1.0 - cos_t)
    rotated = points * cos_t + w_cross * sin_t + w * tmp
    # First-order approximation near the identity.
    approx = points + np.cross(angle_axis, points)
    return np.where(large, rotated, approx)


def _check(camera, point) -> tuple[np.ndarray, np.ndarray]:
    cam = np.asarray(camera, dtype=float)
    pt = np.asarray(point, dtype=float)
    if cam.shape[-1:] != (CAMERA_SIZE,):
        raise ValueError(f"camera must have {CAMERA_SIZE} values in its last axis")
    if pt.shape[-1:] != (3,):
        raise ValueError("point must have 3 values in its last axis")
    return cam, pt


def project_with_distortion(camera, point) -> np.ndarray:
    """Predicted image position of ``point`` seen by ``camera``.

    A camera is ``(angle-axis[3], translation[3], focal, k1, k2)``. Points
    are divided by ``-z`` and then scaled by ``focal * (1 + k1 r^2 + k2 r^4)``.
    Cameras of shape (M, 9) and points of shape (M, 3) give (M, 2).
    """
    cam, pt = _check(camera, point)
    p = _rotate(cam[..., :3], pt) + cam[..., 3:6]
    xp = -p[..., 0] / p[..., 2]
    yp = -p[..., 1] / p[..., 2]
    l1 = cam[..., 7]
    l2 = cam[..., 8]
    focal = cam[..., 6]
    r2 = xp * xp + yp * yp
    distortion = 1.0 + r2 * (l1 + l2 * r2)
    return np.stack((focal * distortion * xp, focal * distortion * yp), axis=-1)


def reprojection_residual(camera, point, observed) -> np.ndarray:
    """Prediction minus observation."""
    return project_with_distortion(camera, point) - np.asarray(observed, dtype=float)