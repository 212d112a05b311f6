"""Pinhole camera helpers: pixel to normalised coordinates and back-projection."""

from __future__ import annotations

import numpy as np

# Intrinsics of the TUM Freiburg2 camera used by the pose estimation examples.
DEFAULT_K = np.array(
    [
        [520.9, 0.0, 325.1],
        [0.0, 521.0, 249.7],
        [0.0, 0.0, 1.0],
    ]
)


def _as_intrinsics(k) -> np.ndarray:
    mat = np.asarray(k, dtype=float)
    if mat.shape != (3, 3):
        raise ValueError(f"intrinsic matrix must be 3x3, got {mat.shape}")
    if mat[0, 0] == 0.0 or mat[1, 1] == 0.0:
        raise ValueError("focal lengths must be non-zero")
    return mat


def _as_pixel(point) -> np.ndarray:
    p = np.asarray(point, dtype=float).ravel()
    if p.shape != (2,):
        raise ValueError(f"pixel must have two coordinates, got shape {p.shape}")
    return p


def pixel2cam(point, k=DEFAULT_K) -> np.ndarray:
    """Map a pixel ``(u, v)`` to normalised image coordinates ``(x, y)``."""
    p = _as_pixel(point)
    mat = _as_intrinsics(k)
    return np.array(
        [
            (p[0] - mat[0, 2]) / mat[0, 0],
            (p[1] - mat[1, 2]) / mat[1, 1],
        ]
    )


def backproject(point, depth, k=DEFAULT_K) -> np.ndarray:
    """Lift a pixel with a known depth to a 3-D point in the camera frame."""
    x, y = pixel2cam(point, k)
    d = float(depth)
    return np.array([x * d, y * d, d])