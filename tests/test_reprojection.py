import numpy as np
import pytest

from slamtools.lie import so3_exp
from slamtools.reprojection import project_with_distortion, reprojection_residual


def _camera(aa=(0.0, 0.0, 0.0), t=(0.0, 0.0, 0.0), focal=1.0, k1=0.0, k2=0.0):
    return np.array([*aa, *t, focal, k1, k2], dtype=float)


def test_point_on_axis_projects_to_centre():
    result = project_with_distortion(_camera(focal=500.0), [0.0, 0.0, -3.0])
    assert np.allclose(result, [0.0, 0.0])


def test_projection_without_distortion_divides_by_minus_depth():
    point = np.array([1.0, -2.0, -4.0])
    result = project_with_distortion(_camera(focal=2.0), point)
    assert np.allclose(result, 2.0 * np.array([point[0], point[1]]) / -point[2])


def test_distortion_scales_radially():
    point = [0.3, 0.4, -1.0]
    plain = project_with_distortion(_camera(focal=1.0), point)
    distorted = project_with_distortion(_camera(focal=1.0, k1=0.1, k2=0.05), point)
    r2 = float(plain @ plain)
    assert np.allclose(distorted, plain * (1.0 + r2 * (0.1 + 0.05 * r2)))


def test_rotation_and_translation_applied_before_projection():
    aa = np.array([0.1, -0.2, 0.3])
    t = np.array([0.5, -0.1, -6.0])
    point = np.array([0.2, 0.7, -0.4])
    camera = _camera(aa, t, focal=300.0)
    expected = project_with_distortion(_camera(focal=300.0), so3_exp(aa) @ point + t)
    assert np.allclose(project_with_distortion(camera, point), expected)


def test_batch_matches_single():
    rng = np.random.default_rng(0)
    cams = np.column_stack(
        (
            rng.normal(0, 0.2, (5, 3)),
            rng.normal(0, 1, (5, 2)),
            rng.uniform(-12, -8, 5),
            rng.uniform(300, 600, 5),
            rng.normal(0, 0.01, (5, 2)),
        )
    )
    points = rng.normal(0, 1, (5, 3))
    batch = project_with_distortion(cams, points)
    assert batch.shape == (5, 2)
    for cam, pt, row in zip(cams, points, batch):
        assert np.allclose(project_with_distortion(cam, pt), row)


def test_residual_is_zero_at_prediction():
    camera = _camera((0.05, 0.0, -0.1), (0.0, 1.0, -5.0), focal=400.0, k1=0.01)
    point = [0.3, -0.2, 0.1]
    observed = project_with_distortion(camera, point)
    assert np.allclose(reprojection_residual(camera, point, observed), 0.0)
    shifted = reprojection_residual(camera, point, observed + np.array([1.0, -2.0]))
    assert np.allclose(shifted, [-1.0, 2.0])


def test_wrong_shapes_raise():
    with pytest.raises(ValueError):
        project_with_distortion(np.zeros(8), [0.0, 0.0, -1.0])
    with pytest.raises(ValueError):
        project_with_distortion(_camera(), [0.0, -1.0])