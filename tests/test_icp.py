import numpy as np
import pytest

from slamtools.icp import icp_bundle_adjustment, icp_svd
from slamtools.lie import so3_exp


def _pairs():
    rng = np.random.default_rng(11)
    pts2 = rng.uniform(-2.0, 2.0, size=(40, 3))
    rotation = so3_exp([0.2, -0.3, 0.25])
    translation = np.array([0.5, -0.2, 1.0])
    pts1 = pts2 @ rotation.T + translation
    return pts1, pts2, rotation, translation


def test_svd_recovers_exact_transform():
    pts1, pts2, rotation, translation = _pairs()
    r, t = icp_svd(pts1, pts2)
    np.testing.assert_allclose(r, rotation, atol=1e-9)
    np.testing.assert_allclose(t, translation, atol=1e-9)


def test_svd_result_is_a_rotation():
    rng = np.random.default_rng(5)
    r, _ = icp_svd(rng.normal(size=(20, 3)), rng.normal(size=(20, 3)))
    np.testing.assert_allclose(r @ r.T, np.eye(3), atol=1e-9)
    assert np.linalg.det(r) == pytest.approx(1.0)


def test_identical_sets_give_identity():
    pts = np.random.default_rng(2).normal(size=(10, 3))
    r, t = icp_svd(pts, pts)
    np.testing.assert_allclose(r, np.eye(3), atol=1e-9)
    np.testing.assert_allclose(t, np.zeros(3), atol=1e-9)


def test_bundle_adjustment_recovers_transform():
    pts1, pts2, rotation, translation = _pairs()
    r, t = icp_bundle_adjustment(pts1, pts2, 30)
    np.testing.assert_allclose(r, rotation, atol=1e-6)
    np.testing.assert_allclose(t, translation, atol=1e-6)


def test_bundle_adjustment_agrees_with_svd_under_noise():
    pts1, pts2, _, _ = _pairs()
    noisy = pts1 + np.random.default_rng(7).normal(scale=0.01, size=pts1.shape)
    r_svd, t_svd = icp_svd(noisy, pts2)
    r_ba, t_ba = icp_bundle_adjustment(noisy, pts2, 30)
    np.testing.assert_allclose(r_ba, r_svd, atol=1e-5)
    np.testing.assert_allclose(t_ba, t_svd, atol=1e-5)


def test_mismatched_lengths_rejected():
    with pytest.raises(ValueError):
        icp_svd(np.ones((3, 3)), np.ones((4, 3)))


def test_empty_rejected():
    with pytest.raises(ValueError):
        icp_bundle_adjustment(np.zeros((0, 3)), np.zeros((0, 3)))