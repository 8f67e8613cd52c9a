import numpy as np
import pytest

from omnicam.core.ocam import OmniCameraModel
from omnicam.core.undistort import panoramic_remap_tables, perspective_remap_tables, remap_image

POL = [-69.6915, 0.0, 0.00054772, 2.1371e-05, -8.7523e-09]
INVPOL = [142.7468, 104.8486, 7.3973, 17.4581, 12.6308, -4.3751, 6.9093, 10.9703, -0.6053, -3.9119, -1.0675, 0.0]


def _model() -> OmniCameraModel:
    return OmniCameraModel((640, 480), POL, [320.0, 240.0], [1.0, 0.0, 0.0], INVPOL)


def test_perspective_tables_center_hits_principal_point():
    map_x, map_y = perspective_remap_tables(_model(), 101, 81, zoom=2.0)
    assert map_x.shape == (81, 101)
    assert map_x.dtype == np.float32
    assert map_x[40, 50] == pytest.approx(320.0)
    assert map_y[40, 50] == pytest.approx(240.0)
    # x grows to the right, y grows downwards
    assert map_x[40, 100] > map_x[40, 50] > map_x[40, 0]
    assert map_y[80, 50] > map_y[40, 50] > map_y[0, 50]


def test_perspective_tables_stay_inside_fisheye_image():
    map_x, map_y = perspective_remap_tables(_model(), 64, 48, zoom=2.0)
    assert np.all((map_x >= 0) & (map_x < 640))
    assert np.all((map_y >= 0) & (map_y < 480))


def test_panoramic_tables_ring_bounds():
    map_x, map_y = panoramic_remap_tables(_model(), 360, 50, r_min=20.0, r_max=200.0)
    assert map_x.shape == (50, 360)
    assert map_x[0, 0] == pytest.approx(520.0)
    assert map_y[0, 0] == pytest.approx(240.0)
    r = np.hypot(map_x - 320.0, map_y - 240.0)
    assert np.all(r <= 200.0 + 1e-3)
    assert np.all(r > 20.0)


def test_panoramic_tables_reject_bad_radii():
    with pytest.raises(ValueError):
        panoramic_remap_tables(_model(), 10, 10, r_min=50.0, r_max=10.0)


def test_remap_image_identity_tables():
    rng = np.random.default_rng(0)
    img = rng.integers(0, 256, size=(12, 16), dtype=np.uint8)
    yy, xx = np.meshgrid(np.arange(12, dtype=np.float32), np.arange(16, dtype=np.float32), indexing="ij")
    out = remap_image(img, xx, yy, interpolation="nearest")
    assert np.array_equal(out, img)

    with pytest.raises(ValueError):
        remap_image(img, xx, yy, interpolation="bogus")
