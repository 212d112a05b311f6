"""Two-view epipolar geometry: fundamental and essential matrices and relative pose."""

from __future__ import annotations

import logging

import numpy as np

from slamtools.camera import DEFAULT_K, pixel2cam
from slamtools.lie import hat
from slamtools.triangulation import triangulate_points

logger = logging.getLogger(__name__)

DEFAULT_FOCAL = 521.0
DEFAULT_PRINCIPAL_POINT = (325.1, 249.7)
DISTANCE_THRESHOLD = 50.0
_MIN_POINTS = 8
_W = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])


def skew(t) -> np.ndarray:
    """Skew-symmetric matrix ``t^`` with ``skew(t) @ v == cross(t, v)``."""
    return hat(t)


def _as_points(points, name: str) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name} must have shape (N, 2), got {arr.shape}")
    return arr


def _check_pairs(points1, points2, minimum: int) -> tuple[np.ndarray, np.ndarray]:
    p1 = _as_points(points1, "points1")
    p2 = _as_points(points2, "points2")
    if p1.shape[0] != p2.shape[0]:
        raise ValueError("points1 and points2 must have the same length")
    if p1.shape[0] < minimum:
        raise ValueError(f"at least {minimum} point pairs are required")
    return p1, p2


def epipolar_constraint(pt1, pt2, rotation, translation, k=DEFAULT_K) -> float:
    """Value of ``y2^T t^ R y1`` for a pixel pair; zero for a perfect match."""
    y1 = np.append(pixel2cam(pt1, k), 1.0)
    y2 = np.append(pixel2cam(pt2, k), 1.0)
    r = np.asarray(rotation, dtype=float).reshape(3, 3)
    return float(y2 @ skew(translation) @ r @ y1)


def _hartley_transform(points: np.ndarray) -> np.ndarray:
    centroid = points.mean(axis=0)
    mean_dist = float(np.linalg.norm(points - centroid, axis=1).mean())
    scale = np.sqrt(2.0) / mean_dist if mean_dist > 0 else 1.0
    return np.array(
        [
            [scale, 0.0, -scale * centroid[0]],
            [0.0, scale, -scale * centroid[1]],
            [0.0, 0.0, 1.0],
        ]
    )


def _homogeneous(points: np.ndarray) -> np.ndarray:
    return np.column_stack((points, np.ones(points.shape[0])))


def _linear_epipolar(x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    """Least-squares solution of ``x2^T M x1 = 0`` for a 3x3 matrix M."""
    a = np.column_stack(
        (
            x2[:, 0] * x1[:, 0],
            x2[:, 0] * x1[:, 1],
            x2[:, 0],
            x2[:, 1] * x1[:, 0],
            x2[:, 1] * x1[:, 1],
            x2[:, 1],
            x1[:, 0],
            x1[:, 1],
            np.ones(x1.shape[0]),
        )
    )
    _, _, vt = np.linalg.svd(a)
    return vt[-1].reshape(3, 3)


def find_fundamental_8point(points1, points2) -> np.ndarray:
    """Normalised eight-point fundamental matrix, rank 2 and scaled so ``F[2, 2] == 1``."""
    p1, p2 = _check_pairs(points1, points2, _MIN_POINTS)
    t1 = _hartley_transform(p1)
    t2 = _hartley_transform(p2)
    n1 = (_homogeneous(p1) @ t1.T)[:, :2]
    n2 = (_homogeneous(p2) @ t2.T)[:, :2]
    f = _linear_epipolar(n1, n2)
    u, s, vt = np.linalg.svd(f)
    f = u @ np.diag([s[0], s[1], 0.0]) @ vt
    f = t2.T @ f @ t1
    if abs(f[2, 2]) > np.finfo(float).eps:
        f = f / f[2, 2]
    logger.debug("fundamental_matrix is\n%s", f)
    return f


def _normalise(points: np.ndarray, focal: float, principal_point) -> np.ndarray:
    if focal == 0:
        raise ValueError("focal length must be non-zero")
    cx, cy = (float(v) for v in principal_point)
    return np.column_stack(((points[:, 0] - cx) / focal, (points[:, 1] - cy) / focal))


def find_essential(
    points1, points2, focal=DEFAULT_FOCAL, principal_point=DEFAULT_PRINCIPAL_POINT
) -> np.ndarray:
    """Essential matrix from pixel pairs, with singular values ``(1, 1, 0)``."""
    p1, p2 = _check_pairs(points1, points2, _MIN_POINTS)
    n1 = _normalise(p1, float(focal), principal_point)
    n2 = _normalise(p2, float(focal), principal_point)
    e = _linear_epipolar(n1, n2)
    u, _, vt = np.linalg.svd(e)
    e = u @ np.diag([1.0, 1.0, 0.0]) @ vt
    logger.debug("essential_matrix is\n%s", e)
    return e


def _count_in_front(r: np.ndarray, t: np.ndarray, n1: np.ndarray, n2: np.ndarray) -> int:
    proj1 = np.hstack((np.eye(3), np.zeros((3, 1))))
    proj2 = np.hstack((r, t.reshape(3, 1)))
    q = triangulate_points(proj1, proj2, n1, n2)
    w = q[:, 3]
    mask = q[:, 2] * w > 0
    safe_w = np.where(w == 0.0, 1.0, w)
    euclid = q[:, :3] / safe_w[:, np.newaxis]
    mask &= euclid[:, 2] < DISTANCE_THRESHOLD
    second = euclid @ r.T + t
    mask &= (second[:, 2] > 0) & (second[:, 2] < DISTANCE_THRESHOLD)
    return int(mask.sum())


def recover_pose(
    essential,
    points1,
    points2,
    focal=DEFAULT_FOCAL,
    principal_point=DEFAULT_PRINCIPAL_POINT,
) -> tuple[np.ndarray, np.ndarray]:
    """Pick the ``(R, t)`` of the essential matrix that puts most points in front of both cameras.

    The translation has unit length.
    """
    e = np.asarray(essential, dtype=float)
    if e.shape != (3, 3):
        raise ValueError(f"essential matrix must be 3x3, got {e.shape}")
    p1, p2 = _check_pairs(points1, points2, 1)
    n1 = _normalise(p1, float(focal), principal_point)
    n2 = _normalise(p2, float(focal), principal_point)

    u, _, vt = np.linalg.svd(e)
    if np.linalg.det(u) < 0:
        u = -u
    if np.linalg.det(vt) < 0:
        vt = -vt
    r1 = u @ _W @ vt
    r2 = u @ _W.T @ vt
    t = u[:, 2] / np.linalg.norm(u[:, 2])

    candidates = [(r1, t), (r2, t), (r1, -t), (r2, -t)]
    counts = [_count_in_front(r, tt, n1, n2) for r, tt in candidates]
    best = int(np.argmax(counts))
    rotation, translation = candidates[best]
    logger.debug("R is\n%s\nt is\n%s", rotation, translation)
    return rotation.copy(), translation.copy()