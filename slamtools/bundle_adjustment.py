"""Bundle adjustment of BAL problems with a sparse least-squares solver."""

from __future__ import annotations

import argparse
import logging
import random

import numpy as np
from scipy.optimize import OptimizeResult, least_squares
from scipy.sparse import lil_matrix

from slamtools.bal import POINT_BLOCK_SIZE, BALProblem
from slamtools.reprojection import CAMERA_SIZE, project_with_distortion

logger = logging.getLogger(__name__)

HUBER_SCALE = 1.0


def _sparsity(problem: BALProblem) -> lil_matrix:
    n_obs = problem.num_observations
    pattern = lil_matrix((2 * n_obs, problem.num_parameters), dtype=int)
    rows = np.arange(n_obs)
    point_offset = problem.num_cameras * CAMERA_SIZE
    for k in range(CAMERA_SIZE):
        cols = problem.camera_index * CAMERA_SIZE + k
        pattern[2 * rows, cols] = 1
        pattern[2 * rows + 1, cols] = 1
    for k in range(POINT_BLOCK_SIZE):
        cols = point_offset + problem.point_index * POINT_BLOCK_SIZE + k
        pattern[2 * rows, cols] = 1
        pattern[2 * rows + 1, cols] = 1
    return pattern


def solve_bundle_adjustment(problem: BALProblem, robust=True, max_nfev=None) -> OptimizeResult:
    """Jointly refine all cameras and points of ``problem`` in place.

    With ``robust`` each residual goes through a Huber loss of scale 1.
    Returns the solver result.
    """
    if problem.use_quaternions:
        raise ValueError("bundle adjustment needs cameras in angle-axis form")
    if problem.num_observations == 0:
        raise ValueError("the problem has no observations")

    n_camera_values = problem.num_cameras * CAMERA_SIZE
    camera_index = problem.camera_index
    point_index = problem.point_index
    observed = problem.observations

    def residuals(x: np.ndarray) -> np.ndarray:
        cameras = x[:n_camera_values].reshape(-1, CAMERA_SIZE)
        points = x[n_camera_values:].reshape(-1, POINT_BLOCK_SIZE)
        predicted = project_with_distortion(cameras[camera_index], points[point_index])
        return (predicted - observed).ravel()

    logger.info(
        "bal problem has %d cameras and %d points, forming %d observations",
        problem.num_cameras,
        problem.num_points,
        problem.num_observations,
    )
    result = least_squares(
        residuals,
        problem.parameters.copy(),
        jac_sparsity=_sparsity(problem),
        method="trf",
        x_scale="jac",
        loss="huber" if robust else "linear",
        f_scale=HUBER_SCALE,
        max_nfev=max_nfev,
    )
    problem.parameters[:] = result.x
    logger.info("bundle adjustment finished: cost %g after %d evaluations", result.cost, result.nfev)
    return result


def main(argv=None) -> int:
    """Load a BAL file, normalise and perturb it, solve it and save point clouds."""
    parser = argparse.ArgumentParser(description="Bundle adjustment of a BAL dataset.")
    parser.add_argument("path", help="BAL data file")
    parser.add_argument("--initial", default="initial.ply", help="point cloud before solving")
    parser.add_argument("--final", default="final.ply", help="point cloud after solving")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--no-robust", action="store_true", help="disable the Huber loss")
    parser.add_argument("--max-nfev", type=int, default=None)
    args = parser.parse_args(argv)

    problem = BALProblem.from_file(args.path)
    problem.normalize()
    problem.perturb(0.1, 0.5, 0.5, random.Random(args.seed))
    problem.write_to_ply(args.initial)

    print(
        f"bal problem have {problem.num_cameras} cameras and {problem.num_points} points. "
    )
    print(f"Forming {problem.num_observations} observations. ")
    result = solve_bundle_adjustment(problem, not args.no_robust, args.max_nfev)
    print(f"final cost: {result.cost:g}, evaluations: {result.nfev}")
    problem.write_to_ply(args.final)
    return 0