"""Lucas-Kanade sparse optical flow by Gauss-Newton, single level and coarse-to-fine."""

from __future__ import annotations

import logging
import math

import numpy as np

from slamtools.imaging import bilinear_clamped, build_pyramid

logger = logging.getLogger(__name__)

HALF_PATCH_SIZE = 4
ITERATIONS = 10
CONVERGENCE_NORM = 1e-2
PYRAMID_LEVELS = 4
PYRAMID_SCALE = 0.5

_OFFSETS = np.arange(-HALF_PATCH_SIZE, HALF_PATCH_SIZE, dtype=float)
_PATCH_X, _PATCH_Y = (a.ravel() for a in np.meshgrid(_OFFSETS, _OFFSETS, indexing="ij"))


def _as_keypoints(points, name: str) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 2))
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name} must have shape (N, 2), got {arr.shape}")
    return arr


def _as_gray(image, name: str) -> np.ndarray:
    img = np.asarray(image, dtype=float)
    if img.ndim != 2:
        raise ValueError(f"{name} must be a 2-D grayscale array, got shape {img.shape}")
    return img


def _gradient(img: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    return np.column_stack(
        (
            0.5 * (bilinear_clamped(img, xs + 1, ys) - bilinear_clamped(img, xs - 1, ys)),
            0.5 * (bilinear_clamped(img, xs, ys + 1) - bilinear_clamped(img, xs, ys - 1)),
        )
    )


def _track_point(img1, img2, kx, ky, dx, dy, inverse) -> tuple[float, float, bool]:
    xs1 = kx + _PATCH_X
    ys1 = ky + _PATCH_Y
    reference = bilinear_clamped(img1, xs1, ys1)
    jac = np.zeros((xs1.size, 2))
    hessian = np.zeros((2, 2))
    if inverse:
        # The template gradient does not depend on the displacement.
        jac = -_gradient(img1, xs1, ys1)
        hessian = jac.T @ jac

    last_cost = 0.0
    success = True
    for iteration in range(ITERATIONS):
        xs2 = xs1 + dx
        ys2 = ys1 + dy
        error = reference - bilinear_clamped(img2, xs2, ys2)
        if not inverse:
            jac = -_gradient(img2, xs2, ys2)
            hessian = jac.T @ jac
        bias = -(jac.T @ error)
        cost = float(error @ error)

        try:
            update = np.linalg.solve(hessian, bias)
        except np.linalg.LinAlgError:
            update = np.full(2, math.nan)
        if math.isnan(update[0]):
            logger.debug("update is nan")
            success = False
            break

        if iteration > 0 and cost > last_cost:
            break

        dx += float(update[0])
        dy += float(update[1])
        last_cost = cost
        success = True
        if np.linalg.norm(update) < CONVERGENCE_NORM:
            break
    return dx, dy, success


def optical_flow_single_level(
    img1, img2, kp1, kp2=None, inverse=False, has_initial=False
) -> tuple[np.ndarray, np.ndarray]:
    """Track ``(x, y)`` keypoints of ``img1`` into ``img2``.

    With ``has_initial`` the positions in ``kp2`` are the starting guess.
    Returns the tracked positions and a boolean success flag per keypoint.
    """
    a = _as_gray(img1, "img1")
    b = _as_gray(img2, "img2")
    points = _as_keypoints(kp1, "kp1")
    if has_initial:
        if kp2 is None:
            raise ValueError("kp2 is required when has_initial is set")
        guesses = _as_keypoints(kp2, "kp2")
        if guesses.shape != points.shape:
            raise ValueError("kp1 and kp2 must have the same length")
    else:
        guesses = points

    tracked = np.empty_like(points)
    success = np.zeros(points.shape[0], dtype=bool)
    for i, ((kx, ky), (gx, gy)) in enumerate(zip(points, guesses)):
        dx, dy = (gx - kx, gy - ky) if has_initial else (0.0, 0.0)
        dx, dy, ok = _track_point(a, b, kx, ky, dx, dy, inverse)
        tracked[i] = (kx + dx, ky + dy)
        success[i] = ok
    return tracked, success


def optical_flow_multi_level(img1, img2, kp1, inverse=False) -> tuple[np.ndarray, np.ndarray]:
    """Coarse-to-fine tracking over a four-level pyramid with scale one half."""
    points = _as_keypoints(kp1, "kp1")
    pyr1 = build_pyramid(_as_gray(img1, "img1"), PYRAMID_LEVELS, PYRAMID_SCALE)
    pyr2 = build_pyramid(_as_gray(img2, "img2"), PYRAMID_LEVELS, PYRAMID_SCALE)

    top_scale = PYRAMID_SCALE ** (PYRAMID_LEVELS - 1)
    kp1_pyr = points * top_scale
    kp2_pyr = kp1_pyr.copy()
    success = np.zeros(points.shape[0], dtype=bool)

    for level in reversed(range(PYRAMID_LEVELS)):
        kp2_pyr, success = optical_flow_single_level(
            pyr1[level], pyr2[level], kp1_pyr, kp2_pyr, inverse, True
        )
        logger.debug("tracked pyramid level %d", level)
        if level > 0:
            kp1_pyr = kp1_pyr / PYRAMID_SCALE
            kp2_pyr = kp2_pyr / PYRAMID_SCALE
    return kp2_pyr, success