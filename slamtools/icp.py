"""Rigid alignment of matched 3-D point sets: closed-form SVD and iterative refinement."""

from __future__ import annotations

import logging

import numpy as np

from slamtools.lie import SE3, hat

logger = logging.getLogger(__name__)

_INITIAL_TAU = 1e-5
_MAX_TRIALS = 10


def _check_pairs(pts1, pts2) -> tuple[np.ndarray, np.ndarray]:
    a = np.asarray(pts1, dtype=float)
    b = np.asarray(pts2, dtype=float)
    if a.ndim != 2 or a.shape[1] != 3 or b.ndim != 2 or b.shape[1] != 3:
        raise ValueError("point sets must have shape (N, 3)")
    if a.shape[0] != b.shape[0]:
        raise ValueError("point sets must have the same length")
    if a.shape[0] == 0:
        raise ValueError("at least one point pair is required")
    return a, b


def icp_svd(pts1, pts2) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(R, t)`` such that ``pts1 ~= R @ p2 + t`` for matched points."""
    a, b = _check_pairs(pts1, pts2)
    c1 = a.mean(axis=0)
    c2 = b.mean(axis=0)
    q1 = a - c1
    q2 = b - c2
    w = q1.T @ q2
    logger.debug("W=%s", w)
    u, _, vt = np.linalg.svd(w)
    rotation = u @ vt
    if np.linalg.det(rotation) < 0:
        rotation = -rotation
    translation = c1 - rotation @ c2
    return rotation, translation


def _residuals(pose: SE3, a: np.ndarray, b: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    transformed = pose.transform(b)
    return a - transformed, transformed


def _cost(errors: np.ndarray) -> float:
    return float((errors * errors).sum())


def _linearise(errors: np.ndarray, transformed: np.ndarray):
    hessian = np.zeros((6, 6))
    bias = np.zeros(6)
    for e, p in zip(errors, transformed):
        jac = np.hstack((-np.eye(3), hat(p)))
        hessian += jac.T @ jac
        bias += -jac.T @ e
    return hessian, bias


def icp_bundle_adjustment(pts1, pts2, iterations=10) -> tuple[np.ndarray, np.ndarray]:
    """Refine the pose mapping ``pts2`` onto ``pts1`` by Levenberg-Marquardt from identity."""
    a, b = _check_pairs(pts1, pts2)
    pose = SE3.identity()
    errors, transformed = _residuals(pose, a, b)
    cost = _cost(errors)
    damping = None
    growth = 2.0

    for iteration in range(iterations):
        if cost == 0.0:
            break
        hessian, bias = _linearise(errors, transformed)
        if damping is None:
            damping = _INITIAL_TAU * float(np.max(np.diag(hessian)))
        accepted = False
        for _ in range(_MAX_TRIALS):
            try:
                dx = np.linalg.solve(hessian + damping * np.eye(6), bias)
            except np.linalg.LinAlgError:
                damping *= growth
                growth *= 2.0
                continue
            candidate = SE3.exp(dx).compose(pose)
            new_errors, new_transformed = _residuals(candidate, a, b)
            new_cost = _cost(new_errors)
            predicted = float(dx @ (damping * dx + bias))
            rho = (cost - new_cost) / predicted if predicted > 0 else -1.0
            if rho > 0 and np.isfinite(new_cost):
                pose = candidate
                errors, transformed, cost = new_errors, new_transformed, new_cost
                damping *= max(1.0 / 3.0, 1.0 - (2.0 * rho - 1.0) ** 3)
                growth = 2.0
                accepted = True
                break
            damping *= growth
            growth *= 2.0
        logger.debug("iteration %d chi2=%.12g lambda=%g", iteration, cost, damping)
        if not accepted:
            break

    logger.debug("T=\n%s", pose.matrix())
    return pose.rotation.copy(), pose.translation.copy()