import numpy as np
import pytest

from slamtools.camera import DEFAULT_K
from slamtools.lie import so3_exp
from slamtools.triangulation import depth_color, triangulate, triangulate_points


def _project(points, k):
    uvw = points @ k.T
    return uvw[:, :2] / uvw[:, 2:3]


@pytest.fixture
def scene():
    rng = np.random.default_rng(3)
    n = 25
    pts = np.column_stack(
        (rng.uniform(-1.0, 1.0, n), rng.uniform(-1.0, 1.0, n), rng.uniform(3.0, 9.0, n))
    )
    rotation = so3_exp([0.02, 0.08, -0.03])
    translation = np.array([-0.6, 0.05, 0.1])
    return pts, rotation, translation


def test_triangulate_recovers_points(scene):
    pts, rotation, translation = scene
    px1 = _project(pts, DEFAULT_K)
    px2 = _project(pts @ rotation.T + translation, DEFAULT_K)
    recovered = triangulate(px1, px2, rotation, translation, DEFAULT_K)
    assert recovered.shape == pts.shape
    assert np.allclose(recovered, pts, atol=1e-8)


def test_triangulate_points_is_consistent_with_projections(scene):
    pts, rotation, translation = scene
    proj1 = np.hstack((np.eye(3), np.zeros((3, 1))))
    proj2 = np.hstack((rotation, translation.reshape(3, 1)))
    n1 = pts[:, :2] / pts[:, 2:3]
    cam2 = pts @ rotation.T + translation
    n2 = cam2[:, :2] / cam2[:, 2:3]
    homogeneous = triangulate_points(proj1, proj2, n1, n2)
    assert homogeneous.shape == (len(pts), 4)
    assert np.allclose(np.linalg.norm(homogeneous, axis=1), 1.0)
    euclid = homogeneous[:, :3] / homogeneous[:, 3:4]
    assert np.allclose(euclid, pts, atol=1e-8)


def test_triangulated_depth_positive_in_both_views(scene):
    pts, rotation, translation = scene
    px1 = _project(pts, DEFAULT_K)
    px2 = _project(pts @ rotation.T + translation, DEFAULT_K)
    recovered = triangulate(px1, px2, rotation, translation)
    assert (recovered[:, 2] > 0).all()
    assert ((recovered @ rotation.T + translation)[:, 2] > 0).all()


def test_triangulate_points_rejects_bad_inputs():
    proj = np.hstack((np.eye(3), np.zeros((3, 1))))
    with pytest.raises(ValueError):
        triangulate_points(proj, proj, np.zeros((3, 2)), np.zeros((2, 2)))
    with pytest.raises(ValueError):
        triangulate_points(np.eye(3), proj, np.zeros((1, 2)), np.zeros((1, 2)))
    with pytest.raises(ValueError):
        triangulate(np.zeros((2, 3)), np.zeros((2, 3)), np.eye(3), np.zeros(3))


def test_depth_color_clamps():
    assert depth_color(1.0) == depth_color(10.0)
    assert depth_color(500.0) == depth_color(50.0)


def test_depth_color_midpoint():
    assert depth_color(20.0) == pytest.approx((127.5, 0.0, 127.5))


def test_depth_color_channels_sum_and_monotone():
    colors = [depth_color(d) for d in (12.0, 25.0, 40.0)]
    for blue, green, red in colors:
        assert green == 0.0
        assert blue + red == pytest.approx(255.0)
    assert colors[0][0] < colors[1][0] < colors[2][0]