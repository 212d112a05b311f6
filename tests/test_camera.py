import numpy as np
import pytest

from slamtools.camera import DEFAULT_K, backproject, pixel2cam


def test_principal_point_maps_to_origin():
    result = pixel2cam((325.1, 249.7), DEFAULT_K)
    np.testing.assert_allclose(result, [0.0, 0.0], atol=1e-12)


def test_pixel2cam_inverts_projection():
    k = np.array([[500.0, 0.0, 320.0], [0.0, 400.0, 240.0], [0.0, 0.0, 1.0]])
    normalised = pixel2cam((100.0, 50.0), k)
    reprojected = k @ np.array([normalised[0], normalised[1], 1.0])
    np.testing.assert_allclose(reprojected[:2], [100.0, 50.0])


def test_backproject_has_requested_depth_and_reprojects():
    pixel = (400.0, 120.0)
    point = backproject(pixel, 2.5, DEFAULT_K)
    assert point[2] == pytest.approx(2.5)
    projected = DEFAULT_K @ point
    np.testing.assert_allclose(projected[:2] / projected[2], pixel)


def test_backproject_zero_depth_gives_origin():
    np.testing.assert_allclose(backproject((10.0, 20.0), 0.0), np.zeros(3))


def test_bad_intrinsics_rejected():
    with pytest.raises(ValueError):
        pixel2cam((1.0, 2.0), np.eye(2))


def test_bad_pixel_rejected():
    with pytest.raises(ValueError):
        pixel2cam((1.0, 2.0, 3.0), DEFAULT_K)