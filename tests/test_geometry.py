"""
Tests for geometries and datasets.
"""

import numpy as np
import pytest

from core import (
    ProjectionData2D,
    VolumeData2D,
    create_proj_geom,
    create_vol_geom,
    proj_geom_from_dict,
    vol_geom_from_dict,
)


def test_parallel_geometry():
    geom = create_proj_geom("parallel", 0.5, 32, [0.0, 1.0, 2.0])
    assert geom.kind == "parallel"
    assert geom.sinogram_shape == (3, 32)
    assert not geom.is_fan_flat
    assert geom.angles.dtype == np.float32


def test_fan_flat_geometry():
    geom = create_proj_geom("fan-flat", 1.0, 16, [0.0], source_origin=100.0, origin_detector=50.0)
    assert geom.is_fan_flat
    assert geom.magnification == pytest.approx(1.5)
    assert geom.to_dict()["source_origin"] == 100.0


@pytest.mark.parametrize("kwargs", [
    dict(kind="cone", detector_width=1.0, detector_count=4, angles=[0.0]),
    dict(kind="parallel", detector_width=0.0, detector_count=4, angles=[0.0]),
    dict(kind="parallel", detector_width=1.0, detector_count=0, angles=[0.0]),
    dict(kind="parallel", detector_width=1.0, detector_count=4, angles=[]),
])
def test_invalid_projection_geometry(kwargs):
    with pytest.raises(ValueError):
        create_proj_geom(**kwargs)


def test_angles_from_range():
    geom = proj_geom_from_dict({"detector_count": 8, "angles": {"start": 0.0, "stop": np.pi, "count": 4}})
    np.testing.assert_allclose(geom.angles, [0, np.pi / 4, np.pi / 2, 3 * np.pi / 4], rtol=1e-6)


def test_volume_window_and_pixel_centres():
    geom = vol_geom_from_dict({"rows": 2, "cols": 4})
    assert (geom.min_x, geom.max_x, geom.min_y, geom.max_y) == (-2.0, 2.0, -1.0, 1.0)
    x, y = geom.pixel_centers()
    assert x.shape == (2, 4)
    assert x[0, 0] == pytest.approx(-1.5)
    assert y[0, 0] == pytest.approx(0.5)
    xs, _ = geom.pixel_centers(2)
    assert xs.shape == (4, 8)


def test_dataset_shape_is_enforced():
    geom = create_proj_geom("parallel", 1.0, 4, [0.0, 1.0])
    with pytest.raises(ValueError):
        ProjectionData2D(geom, np.zeros((3, 4)))
    flat = ProjectionData2D(geom, np.arange(8))
    assert flat.dimensions == (2, 4)


def test_uninitialized_dataset():
    data = VolumeData2D()
    assert not data.is_initialized
    assert data.dimensions == (0, 0)
    with pytest.raises(ValueError):
        data.data
    data.initialize(create_vol_geom(3))
    assert data.is_initialized
    data.set_data(np.ones(9))
    assert data.data.shape == (3, 3)
