"""Linear triangulation of matched points and depth colouring for plots."""

from __future__ import annotations

import numpy as np

from slamtools.camera import DEFAULT_K

UPPER_DEPTH = 50.0
LOWER_DEPTH = 10.0


def _as_points(points, name: str) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name} must have shape (N, 2), got {arr.shape}")
    return arr


def _as_projection(proj, name: str) -> np.ndarray:
    mat = np.asarray(proj, dtype=float)
    if mat.shape != (3, 4):
        raise ValueError(f"{name} must be a 3x4 projection matrix, got {mat.shape}")
    return mat


def triangulate_points(proj1, proj2, pts1, pts2) -> np.ndarray:
    """Linear (DLT) triangulation; returns homogeneous points of shape (N, 4)."""
    p1 = _as_projection(proj1, "proj1")
    p2 = _as_projection(proj2, "proj2")
    a = _as_points(pts1, "pts1")
    b = _as_points(pts2, "pts2")
    if a.shape[0] != b.shape[0]:
        raise ValueError("pts1 and pts2 must have the same length")
    result = np.empty((a.shape[0], 4))
    for row, ((x1, y1), (x2, y2)) in enumerate(zip(a, b)):
        system = np.vstack(
            (
                x1 * p1[2] - p1[0],
                y1 * p1[2] - p1[1],
                x2 * p2[2] - p2[0],
                y2 * p2[2] - p2[1],
            )
        )
        _, _, vt = np.linalg.svd(system)
        result[row] = vt[-1]
    return result


def triangulate(points1, points2, rotation, translation, k=DEFAULT_K) -> np.ndarray:
    """3-D points in the first camera frame from pixel matches and the relative pose."""
    a = _as_points(points1, "points1")
    b = _as_points(points2, "points2")
    mat = np.asarray(k, dtype=float)
    if mat.shape != (3, 3):
        raise ValueError(f"intrinsic matrix must be 3x3, got {mat.shape}")
    r = np.asarray(rotation, dtype=float).reshape(3, 3)
    t = np.asarray(translation, dtype=float).reshape(3, 1)

    def normalise(px: np.ndarray) -> np.ndarray:
        return np.column_stack(
            ((px[:, 0] - mat[0, 2]) / mat[0, 0], (px[:, 1] - mat[1, 2]) / mat[1, 1])
        )

    proj1 = np.hstack((np.eye(3), np.zeros((3, 1))))
    proj2 = np.hstack((r, t))
    homogeneous = triangulate_points(proj1, proj2, normalise(a), normalise(b))
    return homogeneous[:, :3] / homogeneous[:, 3:4]


def depth_color(depth) -> tuple[float, float, float]:
    """BGR colour for a depth, clamped to ``[10, 50]``: near is red, far is blue."""
    d = min(max(float(depth), LOWER_DEPTH), UPPER_DEPTH)
    th_range = UPPER_DEPTH - LOWER_DEPTH
    return (255.0 * d / th_range, 0.0, 255.0 * (1.0 - d / th_range))