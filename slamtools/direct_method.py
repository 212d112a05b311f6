"""Camera pose estimation by the sparse direct method, single layer and pyramidal."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from slamtools.imaging import bilinear, build_pyramid
from slamtools.lie import SE3

logger = logging.getLogger(__name__)

BASELINE = 0.573
HALF_PATCH_SIZE = 1
ITERATIONS = 10
CONVERGENCE_NORM = 1e-3
PYRAMID_LEVELS = 4
PYRAMID_SCALE = 0.5

_OFFSETS = np.arange(-HALF_PATCH_SIZE, HALF_PATCH_SIZE + 1, dtype=float)
_PATCH_X, _PATCH_Y = (a.ravel() for a in np.meshgrid(_OFFSETS, _OFFSETS, indexing="ij"))


@dataclass(frozen=True)
class Intrinsics:
    """Pinhole intrinsics; the defaults are those of the KITTI stereo example."""

    fx: float = 718.856
    fy: float = 718.856
    cx: float = 607.1928
    cy: float = 185.2157

    def scaled(self, factor) -> "Intrinsics":
        """Intrinsics of the image resized by ``factor``."""
        f = float(factor)
        return Intrinsics(self.fx * f, self.fy * f, self.cx * f, self.cy * f)


def disparity_to_depth(disparity, fx=Intrinsics.fx, baseline=BASELINE):
    """Depth ``fx * baseline / disparity``; zero disparity gives infinity."""
    d = np.asarray(disparity, dtype=float)
    with np.errstate(divide="ignore"):
        depth = fx * baseline / d
    if depth.ndim == 0:
        return float(depth)
    return depth


def _as_gray(image, name: str) -> np.ndarray:
    img = np.asarray(image, dtype=float)
    if img.ndim != 2 or img.size == 0:
        raise ValueError(f"{name} must be a non-empty 2-D grayscale array")
    return img


def _as_reference(px_ref, depth_ref) -> tuple[np.ndarray, np.ndarray]:
    px = np.asarray(px_ref, dtype=float)
    if px.size == 0:
        px = np.zeros((0, 2))
    if px.ndim != 2 or px.shape[1] != 2:
        raise ValueError(f"px_ref must have shape (N, 2), got {px.shape}")
    depth = np.asarray(depth_ref, dtype=float).ravel()
    if depth.shape[0] != px.shape[0]:
        raise ValueError("px_ref and depth_ref must have the same length")
    return px, depth


class JacobianAccumulator:
    """Accumulates the normal equations of the photometric error over reference pixels."""

    def __init__(self, img1, img2, px_ref, depth_ref, pose=None, intrinsics=None):
        self.img1 = _as_gray(img1, "img1")
        self.img2 = _as_gray(img2, "img2")
        self.px_ref, self.depth_ref = _as_reference(px_ref, depth_ref)
        self.pose = pose if pose is not None else SE3.identity()
        self.intrinsics = intrinsics if intrinsics is not None else Intrinsics()
        self.projection = np.zeros((self.px_ref.shape[0], 2))
        self.reset()

    def reset(self) -> None:
        """Zero the Hessian, bias and cost."""
        self.hessian = np.zeros((6, 6))
        self.bias = np.zeros(6)
        self.cost = 0.0

    def accumulate(self, start, stop) -> None:
        """Add the contribution of reference pixels ``start`` to ``stop - 1``."""
        k = self.intrinsics
        idx = np.arange(int(start), int(stop))
        if idx.size == 0:
            return
        px = self.px_ref[idx]
        depth = self.depth_ref[idx]
        point_ref = depth[:, np.newaxis] * np.column_stack(
            ((px[:, 0] - k.cx) / k.fx, (px[:, 1] - k.cy) / k.fy, np.ones(idx.size))
        )
        point_cur = self.pose.transform(point_ref)

        in_front = point_cur[:, 2] > 0
        idx, px, point_cur = idx[in_front], px[in_front], point_cur[in_front]
        big_x, big_y, big_z = point_cur[:, 0], point_cur[:, 1], point_cur[:, 2]
        u = k.fx * big_x / big_z + k.cx
        v = k.fy * big_y / big_z + k.cy

        rows, cols = self.img2.shape
        inside = (
            (u >= HALF_PATCH_SIZE)
            & (u <= cols - HALF_PATCH_SIZE)
            & (v >= HALF_PATCH_SIZE)
            & (v <= rows - HALF_PATCH_SIZE)
        )
        if not inside.any():
            return
        idx, px = idx[inside], px[inside]
        u, v = u[inside], v[inside]
        big_x, big_y, big_z = big_x[inside], big_y[inside], big_z[inside]
        self.projection[idx] = np.column_stack((u, v))

        z_inv = 1.0 / big_z
        z2_inv = z_inv * z_inv
        zeros = np.zeros_like(big_z)
        j_pixel = np.stack(
            (
                np.column_stack(
                    (
                        k.fx * z_inv,
                        zeros,
                        -k.fx * big_x * z2_inv,
                        -k.fx * big_x * big_y * z2_inv,
                        k.fx + k.fx * big_x * big_x * z2_inv,
                        -k.fx * big_y * z_inv,
                    )
                ),
                np.column_stack(
                    (
                        zeros,
                        k.fy * z_inv,
                        -k.fy * big_y * z2_inv,
                        -k.fy - k.fy * big_y * big_y * z2_inv,
                        k.fy * big_x * big_y * z2_inv,
                        k.fy * big_x * z_inv,
                    )
                ),
            ),
            axis=1,
        )

        ux = u[:, np.newaxis] + _PATCH_X
        vy = v[:, np.newaxis] + _PATCH_Y
        error = bilinear(
            self.img1, px[:, 0, np.newaxis] + _PATCH_X, px[:, 1, np.newaxis] + _PATCH_Y
        ) - bilinear(self.img2, ux, vy)
        grad_u = 0.5 * (bilinear(self.img2, ux + 1, vy) - bilinear(self.img2, ux - 1, vy))
        grad_v = 0.5 * (bilinear(self.img2, ux, vy + 1) - bilinear(self.img2, ux, vy - 1))

        jac = -(
            grad_u[:, :, np.newaxis] * j_pixel[:, np.newaxis, 0, :]
            + grad_v[:, :, np.newaxis] * j_pixel[:, np.newaxis, 1, :]
        )
        self.hessian += np.einsum("mki,mkj->ij", jac, jac)
        self.bias += -np.einsum("mk,mki->i", error, jac)
        self.cost += float((error * error).sum()) / idx.size


def direct_pose_single_layer(img1, img2, px_ref, depth_ref, pose=None, intrinsics=None) -> SE3:
    """Refine the pose taking reference-frame points into the second image."""
    current = pose if pose is not None else SE3.identity()
    accumulator = JacobianAccumulator(img1, img2, px_ref, depth_ref, current, intrinsics)
    count = accumulator.px_ref.shape[0]
    last_cost = 0.0

    for iteration in range(ITERATIONS):
        accumulator.pose = current
        accumulator.reset()
        accumulator.accumulate(0, count)

        try:
            update = np.linalg.solve(accumulator.hessian, accumulator.bias)
        except np.linalg.LinAlgError:
            update = np.full(6, math.nan)
        if math.isnan(update[0]):
            # Happens on flat patches, where the Hessian is singular.
            logger.debug("update is nan")
            break

        current = SE3.exp(update).compose(current)
        cost = accumulator.cost
        if iteration > 0 and cost > last_cost:
            logger.debug("cost increased: %g, %g", cost, last_cost)
            break
        if np.linalg.norm(update) < CONVERGENCE_NORM:
            break
        last_cost = cost
        logger.debug("iteration: %d, cost: %g", iteration, cost)

    logger.debug("T21 =\n%s", current.matrix())
    return current


def direct_pose_multi_layer(img1, img2, px_ref, depth_ref, pose=None, intrinsics=None) -> SE3:
    """Coarse-to-fine direct pose estimation over a four-level pyramid."""
    px, depth = _as_reference(px_ref, depth_ref)
    base = intrinsics if intrinsics is not None else Intrinsics()
    pyr1 = build_pyramid(_as_gray(img1, "img1"), PYRAMID_LEVELS, PYRAMID_SCALE)
    pyr2 = build_pyramid(_as_gray(img2, "img2"), PYRAMID_LEVELS, PYRAMID_SCALE)
    current = pose if pose is not None else SE3.identity()

    for level in reversed(range(PYRAMID_LEVELS)):
        scale = PYRAMID_SCALE**level
        current = direct_pose_single_layer(
            pyr1[level], pyr2[level], px * scale, depth, current, base.scaled(scale)
        )
    return current