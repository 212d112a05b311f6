"""Camera pose from 3-D to 2-D correspondences by Gauss-Newton on SE(3)."""

from __future__ import annotations

import logging
import math

import numpy as np

from slamtools.lie import SE3

logger = logging.getLogger(__name__)

CONVERGENCE_NORM = 1e-6


def reprojection_jacobian(point_cam, fx, fy) -> np.ndarray:
    """Jacobian (2x6) of ``observed - project(exp(xi) * p)`` at a camera-frame point."""
    x, y, z = np.asarray(point_cam, dtype=float).reshape(3)
    if z == 0.0:
        raise ValueError("point depth must be non-zero")
    inv_z = 1.0 / z
    inv_z2 = inv_z * inv_z
    return np.array(
        [
            [
                -fx * inv_z,
                0.0,
                fx * x * inv_z2,
                fx * x * y * inv_z2,
                -fx - fx * x * x * inv_z2,
                fx * y * inv_z,
            ],
            [
                0.0,
                -fy * inv_z,
                fy * y * inv_z2,
                fy + fy * y * y * inv_z2,
                -fy * x * y * inv_z2,
                -fy * x * inv_z,
            ],
        ]
    )


def _check_inputs(points_3d, points_2d, k):
    p3 = np.asarray(points_3d, dtype=float)
    p2 = np.asarray(points_2d, dtype=float)
    mat = np.asarray(k, dtype=float)
    if p3.ndim != 2 or p3.shape[1] != 3:
        raise ValueError(f"points_3d must have shape (N, 3), got {p3.shape}")
    if p2.ndim != 2 or p2.shape[1] != 2:
        raise ValueError(f"points_2d must have shape (N, 2), got {p2.shape}")
    if p3.shape[0] != p2.shape[0]:
        raise ValueError("points_3d and points_2d must have the same length")
    if p3.shape[0] == 0:
        raise ValueError("at least one correspondence is required")
    if mat.shape != (3, 3):
        raise ValueError(f"intrinsic matrix must be 3x3, got {mat.shape}")
    return p3, p2, mat


def solve_pnp_gauss_newton(points_3d, points_2d, k, pose=None, iterations=10) -> SE3:
    """Refine ``pose`` (world to camera) minimising the reprojection error."""
    p3, p2, mat = _check_inputs(points_3d, points_2d, k)
    fx, fy, cx, cy = mat[0, 0], mat[1, 1], mat[0, 2], mat[1, 2]
    current = pose if pose is not None else SE3.identity()
    last_cost = 0.0

    for iteration in range(iterations):
        hessian = np.zeros((6, 6))
        bias = np.zeros(6)
        cost = 0.0
        for pw, observed in zip(p3, p2):
            pc = current.transform(pw)
            proj = np.array([fx * pc[0] / pc[2] + cx, fy * pc[1] / pc[2] + cy])
            error = observed - proj
            cost += float(error @ error)
            jac = reprojection_jacobian(pc, fx, fy)
            hessian += jac.T @ jac
            bias += -jac.T @ error

        try:
            dx = np.linalg.solve(hessian, bias)
        except np.linalg.LinAlgError:
            dx = np.full(6, math.nan)
        if math.isnan(dx[0]):
            logger.warning("result is nan!")
            break

        if iteration > 0 and cost >= last_cost:
            logger.debug("cost: %.12g, last cost: %.12g", cost, last_cost)
            break

        current = SE3.exp(dx).compose(current)
        last_cost = cost
        logger.debug("iteration %d cost=%.12g", iteration, cost)
        if np.linalg.norm(dx) < CONVERGENCE_NORM:
            break

    return current