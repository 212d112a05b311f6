import numpy as np
import pytest

from slamtools.camera import DEFAULT_K
from slamtools.lie import SE3
from slamtools.pnp import reprojection_jacobian, solve_pnp_gauss_newton


def _project(pose, points, k):
    pc = pose.transform(points)
    uv = pc @ k.T
    return uv[:, :2] / uv[:, 2:3]


def _scene():
    rng = np.random.default_rng(3)
    points = np.column_stack(
        (rng.uniform(-1.0, 1.0, 30), rng.uniform(-1.0, 1.0, 30), rng.uniform(3.0, 6.0, 30))
    )
    true_pose = SE3.exp([0.05, -0.04, 0.1, 0.03, -0.05, 0.08])
    return points, true_pose


def test_recovers_known_pose():
    points, true_pose = _scene()
    observed = _project(true_pose, points, DEFAULT_K)
    estimate = solve_pnp_gauss_newton(points, observed, DEFAULT_K, SE3.identity(), 20)
    np.testing.assert_allclose(estimate.matrix(), true_pose.matrix(), atol=1e-6)


def test_exact_pose_is_a_fixed_point():
    points, true_pose = _scene()
    observed = _project(true_pose, points, DEFAULT_K)
    estimate = solve_pnp_gauss_newton(points, observed, DEFAULT_K, true_pose, 5)
    np.testing.assert_allclose(estimate.matrix(), true_pose.matrix(), atol=1e-9)


def test_jacobian_matches_numeric_derivative():
    k = DEFAULT_K
    point = np.array([0.3, -0.2, 2.0])
    jac = reprojection_jacobian(point, k[0, 0], k[1, 1])
    eps = 1e-6
    numeric = np.zeros((2, 6))
    base = _project(SE3.identity(), point[None, :], k)[0]
    for i in range(6):
        delta = np.zeros(6)
        delta[i] = eps
        moved = _project(SE3.exp(delta), point[None, :], k)[0]
        numeric[:, i] = -(moved - base) / eps
    np.testing.assert_allclose(jac, numeric, rtol=1e-4, atol=1e-2)


def test_jacobian_rejects_zero_depth():
    with pytest.raises(ValueError):
        reprojection_jacobian([1.0, 1.0, 0.0], 500.0, 500.0)


def test_mismatched_lengths_rejected():
    with pytest.raises(ValueError):
        solve_pnp_gauss_newton(np.ones((3, 3)), np.ones((2, 2)), DEFAULT_K)


def test_empty_input_rejected():
    with pytest.raises(ValueError):
        solve_pnp_gauss_newton(np.zeros((0, 3)), np.zeros((0, 2)), DEFAULT_K)