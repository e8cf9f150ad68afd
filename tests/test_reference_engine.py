"""
Numerical checks of the reference engine on analytic disk phantoms.
"""

import numpy as np
import pytest

from core import ProjectionData2D, VolumeData2D, create_proj_geom, create_vol_geom
from loaders import DiskPhantomLoader, rasterize_disks
from reconstruction import FilteredBackProjectionAlgorithm, FilterKind, ReferenceFBPEngine, parker_weights
from reconstruction.windows import ramp_response

CENTRED = [(0.0, 0.0, 20.0, 1.0)]
OFFSET = [(10.0, -8.0, 6.0, 1.0)]


def _parallel(count=180):
    return create_proj_geom("parallel", 1.0, 128, np.linspace(0, np.pi, count, endpoint=False))


def _fan(angles):
    # Magnification 2 with detector width 2 gives unit spacing at the centre
    return create_proj_geom("fanflat", 2.0, 128, angles, source_origin=300.0, origin_detector=300.0)


def _reconstruct(geom, disks, kind=FilterKind.RAM_LAK, short_scan=False, **kwargs):
    proj = DiskPhantomLoader(disks, relative=False).load(geom)
    rec = VolumeData2D(create_vol_geom(64))
    with FilteredBackProjectionAlgorithm() as alg:
        assert alg.initialize_direct(proj, rec, kind, **kwargs)
        alg.short_scan = short_scan
        alg.run()
    return rec.data


def test_parallel_centred_disk():
    img = _reconstruct(_parallel(), CENTRED)
    assert img[28:36, 28:36].mean() == pytest.approx(1.0, abs=0.05)
    assert abs(img[0:4, 0:4].mean()) < 0.05
    truth = rasterize_disks(create_vol_geom(64), CENTRED)
    interior = np.abs(img - truth)[16:48, 16:48]
    assert np.median(interior) < 0.05


def test_parallel_offset_disk_lands_in_place():
    img = _reconstruct(_parallel(), OFFSET)
    # (x, y) = (10, -8) is row 39.5, col 41.5
    assert img[39:41, 41:43].mean() == pytest.approx(1.0, abs=0.1)
    # Mirror image position stays empty
    assert abs(img[23:25, 21:23].mean()) < 0.1


def test_fan_full_scan():
    geom = _fan(np.linspace(0, 2 * np.pi, 360, endpoint=False))
    img = _reconstruct(geom, CENTRED)
    assert img[28:36, 28:36].mean() == pytest.approx(1.0, abs=0.08)
    assert abs(img[0:4, 0:4].mean()) < 0.08


def test_fan_full_scan_offset_disk():
    geom = _fan(np.linspace(0, 2 * np.pi, 360, endpoint=False))
    img = _reconstruct(geom, OFFSET)
    assert img[39:41, 41:43].mean() == pytest.approx(1.0, abs=0.15)
    assert abs(img[23:25, 21:23].mean()) < 0.15


def test_fan_short_scan():
    gamma_m = np.arctan(63.5 / 300.0)
    geom = _fan(np.linspace(0, np.pi + 2 * gamma_m, 240))
    img = _reconstruct(geom, CENTRED, short_scan=True)
    assert img[28:36, 28:36].mean() == pytest.approx(1.0, abs=0.1)
    assert abs(img[0:4, 0:4].mean()) < 0.1


def test_smoothing_window_lowers_noise_not_level():
    rng = np.random.default_rng(1)
    geom = _parallel()
    proj = DiskPhantomLoader(CENTRED, relative=False).load(geom)
    noisy = ProjectionData2D(geom, proj.data + rng.normal(0, 0.5, proj.data.shape))

    results = {}
    for kind in (FilterKind.RAM_LAK, FilterKind.HANN):
        rec = VolumeData2D(create_vol_geom(64))
        with FilteredBackProjectionAlgorithm() as alg:
            assert alg.initialize_direct(noisy, rec, kind)
            alg.run()
        results[kind] = rec.data

    centre = slice(26, 38)
    assert results[FilterKind.HANN][centre, centre].mean() == pytest.approx(1.0, abs=0.1)
    assert results[FilterKind.HANN][centre, centre].std() < results[FilterKind.RAM_LAK][centre, centre].std()


def test_sampled_ramp_as_projection_filter_matches_ram_lak():
    geom = _parallel(90)
    reference = _reconstruct(geom, CENTRED)
    padded = 256   # smallest power of two >= 2 * 128
    coeffs = ramp_response(padded, 1.0)
    custom = _reconstruct(geom, CENTRED, FilterKind.PROJECTION, filter=coeffs, filter_width=coeffs.size)
    np.testing.assert_allclose(custom, reference, atol=1e-3)


def test_real_space_kernel_matches_ram_lak():
    geom = _parallel(90)
    reference = _reconstruct(geom, CENTRED)
    k = np.arange(-127, 128)
    kernel = np.where(k % 2 == 1, -1.0 / (np.pi * np.maximum(np.abs(k), 1)) ** 2, 0.0)
    kernel[k == 0] = 0.25
    custom = _reconstruct(geom, CENTRED, FilterKind.RPROJECTION, filter=kernel, filter_width=kernel.size)
    np.testing.assert_allclose(custom, reference, atol=1e-3)


def test_per_angle_gains_scale_the_result():
    geom = _parallel(90)
    reference = _reconstruct(geom, CENTRED)
    doubled = _reconstruct(geom, CENTRED, FilterKind.SINOGRAM, filter=np.full(90, 2.0))
    np.testing.assert_allclose(doubled, 2.0 * reference, rtol=1e-4, atol=1e-4)


def test_pixel_super_sampling_keeps_level():
    proj = DiskPhantomLoader(CENTRED, relative=False).load(_parallel())
    rec = VolumeData2D(create_vol_geom(64))
    with FilteredBackProjectionAlgorithm() as alg:
        assert alg.initialize_direct(proj, rec, FilterKind.RAM_LAK)
        alg.pixel_super_sampling = 2
        alg.run()
    assert rec.data[28:36, 28:36].mean() == pytest.approx(1.0, abs=0.05)


def test_detector_super_sampling_leaves_result_unchanged():
    proj = DiskPhantomLoader(CENTRED, relative=False).load(_parallel(60))
    images = []
    for factor in (1, 4):
        rec = VolumeData2D(create_vol_geom(64))
        with FilteredBackProjectionAlgorithm() as alg:
            assert alg.initialize_direct(proj, rec, FilterKind.RAM_LAK)
            alg.detector_super_sampling = factor
            alg.run()
        images.append(rec.data.copy())
    np.testing.assert_array_equal(images[0], images[1])


class TestEngineContract:

    def _engine(self, geom=None):
        engine = ReferenceFBPEngine()
        assert engine.set_gpu_index(-1)
        assert engine.set_geometry(create_vol_geom(16), geom or _parallel(8))
        assert engine.set_super_sampling(1, 1)
        return engine

    def test_filter_requires_init(self):
        engine = self._engine()
        assert not engine.set_filter(FilterKind.RAM_LAK, None, 0)
        assert engine.init()
        assert engine.set_filter(FilterKind.RAM_LAK, None, 0)

    def test_custom_filter_requires_coefficients(self):
        engine = self._engine()
        engine.init()
        assert not engine.set_filter(FilterKind.PROJECTION, None, 16)
        assert not engine.set_filter(FilterKind.SINOGRAM, np.ones(5), 16)

    def test_gpu_index_below_minus_one_is_rejected(self):
        assert not ReferenceFBPEngine().set_gpu_index(-2)

    def test_negative_super_sampling_is_rejected(self):
        assert not ReferenceFBPEngine().set_super_sampling(-1, 1)

    def test_short_scan_needs_fan_geometry(self):
        engine = self._engine()
        engine.init()
        assert not engine.set_short_scan(True)
        assert engine.set_short_scan(False)
        fan = self._engine(_fan(np.linspace(0, np.pi, 8)))
        fan.init()
        assert fan.set_short_scan(True)

    def test_sinogram_shape_is_checked(self):
        engine = self._engine()
        engine.init()
        engine.set_filter(FilterKind.RAM_LAK, None, 0)
        assert not engine.set_sinogram(np.zeros((8, 64)))
        assert not engine.iterate()
        assert engine.set_sinogram(np.zeros((8, 128)))
        assert engine.iterate()
        assert engine.get_reconstruction().shape == (16, 16)

    def test_release_twice(self):
        engine = self._engine()
        engine.init()
        engine.release()
        engine.release()
        assert engine.released
        assert engine.get_reconstruction() is None


def test_parker_weights_cover_redundant_pairs():
    gamma_m = np.arctan(63.5 / 300.0)
    angles = np.linspace(0, np.pi + 2 * gamma_m, 200)
    geom = _fan(angles)
    w = parker_weights(geom, angles)
    assert w.shape == (200, 128)
    assert w.min() >= 0.0 and w.max() <= 1.0
    # A ray and its conjugate at (beta + pi + 2 gamma, -gamma) share unit weight
    c = 64
    beta = angles - angles[0]
    gamma = np.arctan((c - 63.5) / 300.0)
    mid = np.argmin(np.abs(beta - 0.2))
    opposite = np.argmin(np.abs(beta - (beta[mid] + np.pi + 2 * gamma)))
    assert w[mid, c] + w[opposite, 127 - c] == pytest.approx(1.0, abs=0.05)
