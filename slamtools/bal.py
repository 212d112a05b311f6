"""Bundle adjustment in the large (BAL) problems: loading, saving, normalising and noise."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from slamtools.noise import rand_normal
from slamtools.rotation import (
    angle_axis_rotate_point,
    angle_axis_to_quaternion,
    quaternion_to_angle_axis,
)

logger = logging.getLogger(__name__)

POINT_BLOCK_SIZE = 3
ANGLE_AXIS_CAMERA_SIZE = 9
QUATERNION_CAMERA_SIZE = 10
TARGET_DEVIATION = 100.0


def median(data) -> float:
    """Element at position ``n // 2`` of the sorted values (the upper median)."""
    values = np.asarray(data, dtype=float).ravel()
    if values.size == 0:
        raise ValueError("median of an empty sequence")
    mid = values.size // 2
    return float(np.partition(values, mid)[mid])


class _Tokens:
    """Whitespace-separated values of a BAL file, read in order."""

    def __init__(self, text: str) -> None:
        self._items = iter(text.split())

    def next(self, kind):
        try:
            token = next(self._items)
        except StopIteration:
            raise ValueError("Invalid BAL data file: unexpected end of data") from None
        try:
            return kind(token)
        except ValueError:
            raise ValueError(f"Invalid BAL data file: bad value {token!r}") from None


class BALProblem:
    """Cameras, points and observations of a bundle adjustment problem.

    ``parameters`` holds all camera blocks followed by all point blocks.
    A camera block is an angle-axis rotation, a translation, the focal
    length and two radial distortion terms; with ``use_quaternions`` the
    rotation is stored as a quaternion ``(w, x, y, z)`` instead.
    """

    def __init__(
        self,
        num_cameras,
        num_points,
        camera_index,
        point_index,
        observations,
        parameters,
        use_quaternions=False,
    ) -> None:
        self.num_cameras = int(num_cameras)
        self.num_points = int(num_points)
        self.use_quaternions = bool(use_quaternions)
        if self.num_cameras < 0 or self.num_points < 0:
            raise ValueError("counts must be non-negative")
        self.camera_index = np.asarray(camera_index, dtype=np.intp).ravel().copy()
        self.point_index = np.asarray(point_index, dtype=np.intp).ravel().copy()
        obs = np.asarray(observations, dtype=float)
        self.observations = obs.reshape(-1, 2).copy() if obs.size else np.zeros((0, 2))
        self.parameters = np.asarray(parameters, dtype=float).ravel().copy()

        n = self.camera_index.size
        if self.point_index.size != n or self.observations.shape[0] != n:
            raise ValueError("camera_index, point_index and observations must have one entry each")
        if n and (self.camera_index.min() < 0 or self.camera_index.max() >= self.num_cameras):
            raise ValueError("camera index out of range")
        if n and (self.point_index.min() < 0 or self.point_index.max() >= self.num_points):
            raise ValueError("point index out of range")
        expected = self.camera_block_size * self.num_cameras + POINT_BLOCK_SIZE * self.num_points
        if self.parameters.size != expected:
            raise ValueError(f"expected {expected} parameters, got {self.parameters.size}")

    @property
    def camera_block_size(self) -> int:
        return QUATERNION_CAMERA_SIZE if self.use_quaternions else ANGLE_AXIS_CAMERA_SIZE

    @property
    def point_block_size(self) -> int:
        return POINT_BLOCK_SIZE

    @property
    def num_observations(self) -> int:
        return int(self.camera_index.size)

    @property
    def num_parameters(self) -> int:
        return int(self.parameters.size)

    @property
    def cameras(self) -> np.ndarray:
        """Writable view of the camera blocks, shape ``(num_cameras, camera_block_size)``."""
        end = self.camera_block_size * self.num_cameras
        return self.parameters[:end].reshape(self.num_cameras, self.camera_block_size)

    @property
    def points(self) -> np.ndarray:
        """Writable view of the points, shape ``(num_points, 3)``."""
        start = self.camera_block_size * self.num_cameras
        return self.parameters[start:].reshape(self.num_points, POINT_BLOCK_SIZE)

    @classmethod
    def from_file(cls, path, use_quaternions=False) -> "BALProblem":
        """Load a problem from a BAL text file."""
        tokens = _Tokens(Path(path).read_text())
        num_cameras = tokens.next(int)
        num_points = tokens.next(int)
        num_observations = tokens.next(int)
        if min(num_cameras, num_points, num_observations) < 0:
            raise ValueError("Invalid BAL data file: negative count")
        logger.debug("Header: %d %d %d", num_cameras, num_points, num_observations)

        camera_index = np.empty(num_observations, dtype=np.intp)
        point_index = np.empty(num_observations, dtype=np.intp)
        observations = np.empty((num_observations, 2))
        for i in range(num_observations):
            camera_index[i] = tokens.next(int)
            point_index[i] = tokens.next(int)
            observations[i] = (tokens.next(float), tokens.next(float))

        count = ANGLE_AXIS_CAMERA_SIZE * num_cameras + POINT_BLOCK_SIZE * num_points
        parameters = np.array([tokens.next(float) for _ in range(count)])

        if use_quaternions:
            split = ANGLE_AXIS_CAMERA_SIZE * num_cameras
            cams = parameters[:split].reshape(num_cameras, ANGLE_AXIS_CAMERA_SIZE)
            converted = [
                np.concatenate((angle_axis_to_quaternion(cam[:3]), cam[3:])) for cam in cams
            ]
            parameters = np.concatenate(converted + [parameters[split:]])

        return cls(
            num_cameras,
            num_points,
            camera_index,
            point_index,
            observations,
            parameters,
            use_quaternions,
        )

    def _angle_axis_camera(self, camera: np.ndarray) -> np.ndarray:
        if self.use_quaternions:
            return np.concatenate((quaternion_to_angle_axis(camera[:4]), camera[4:]))
        return camera

    def write_to_file(self, path) -> None:
        """Save the problem as a BAL text file, cameras in angle-axis form."""
        lines = [f"{self.num_cameras} {self.num_points} {self.num_observations}"]
        for c, p, (u, v) in zip(self.camera_index, self.point_index, self.observations):
            lines.append(f"{c} {p} {u:g} {v:g}")
        for camera in self.cameras:
            lines.extend(f"{value:.16g}" for value in self._angle_axis_camera(camera))
        for point in self.points:
            lines.extend(f"{value:.16g}" for value in point)
        Path(path).write_text("\n".join(lines) + "\n")

    def write_to_ply(self, path) -> None:
        """Save camera centres (green) and points (white) as an ASCII PLY point cloud."""
        lines = [
            "ply",
            "format ascii 1.0",
            f"element vertex {self.num_cameras + self.num_points}",
            "property float x",
            "property float y",
            "property float z",
            "property uchar red",
            "property uchar green",
            "property uchar blue",
            "end_header",
        ]
        for camera in self.cameras:
            _, center = self.camera_to_angle_axis_and_center(camera)
            lines.append(f"{center[0]:g} {center[1]:g} {center[2]:g} 0 255 0")
        for point in self.points:
            coords = "".join(f"{value:g} " for value in point)
            lines.append(f"{coords} 255 255 255")
        Path(path).write_text("\n".join(lines) + "\n")

    def camera_to_angle_axis_and_center(self, camera) -> tuple[np.ndarray, np.ndarray]:
        """Angle-axis rotation and optical centre ``c = -R^T t`` of a camera block."""
        cam = np.asarray(camera, dtype=float).ravel()
        if cam.size != self.camera_block_size:
            raise ValueError(f"camera block must have {self.camera_block_size} values")
        if self.use_quaternions:
            angle_axis = quaternion_to_angle_axis(cam[:4])
        else:
            angle_axis = cam[:3].copy()
        b = self.camera_block_size
        center = -angle_axis_rotate_point(-angle_axis, cam[b - 6 : b - 3])
        return angle_axis, center

    def angle_axis_and_center_to_camera(self, angle_axis, center) -> np.ndarray:
        """Rotation and translation part of a camera block (its first ``block - 3`` values).

        The translation is ``t = -R c``; the rotation is stored in this
        problem's representation.
        """
        aa = np.asarray(angle_axis, dtype=float).ravel()
        rotation = angle_axis_to_quaternion(aa) if self.use_quaternions else aa.copy()
        translation = -angle_axis_rotate_point(aa, center)
        return np.concatenate((rotation, translation))

    def _set_pose(self, camera: np.ndarray, angle_axis, center) -> None:
        camera[: self.camera_block_size - 3] = self.angle_axis_and_center_to_camera(
            angle_axis, center
        )

    def normalize(self) -> None:
        """Centre the points on their median and scale the median L1 deviation to 100."""
        points = self.points
        med = np.array([median(points[:, axis]) for axis in range(3)])
        deviation = median(np.abs(points - med).sum(axis=1))
        scale = TARGET_DEVIATION / deviation
        points[:] = scale * (points - med)

        for camera in self.cameras:
            angle_axis, center = self.camera_to_angle_axis_and_center(camera)
            self._set_pose(camera, angle_axis, scale * (center - med))

    def perturb(self, rotation_sigma, translation_sigma, point_sigma, rng=None) -> None:
        """Add Gaussian noise to points, camera rotations and camera translations."""
        if point_sigma < 0.0 or rotation_sigma < 0.0 or translation_sigma < 0.0:
            raise ValueError("noise deviations must be non-negative")

        def noise(sigma: float) -> np.ndarray:
            return np.array([rand_normal(rng) * sigma for _ in range(3)])

        if point_sigma > 0:
            points = self.points
            for point in points:
                point += noise(point_sigma)

        b = self.camera_block_size
        for camera in self.cameras:
            angle_axis, center = self.camera_to_angle_axis_and_center(camera)
            if rotation_sigma > 0.0:
                angle_axis = angle_axis + noise(rotation_sigma)
            self._set_pose(camera, angle_axis, center)
            if translation_sigma > 0.0:
                camera[b - 6 : b - 3] += noise(translation_sigma)