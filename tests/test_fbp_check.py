"""
Tests for FBP configuration validation.
"""

import numpy as np
import pytest

from core import ProjectionData2D, VolumeData2D, create_vol_geom
from reconstruction import FilteredBackProjectionAlgorithm, FilterKind

from conftest import make_parallel


def _cfg(proj_id, rec_id, **extra):
    options = extra.pop("option", {})
    cfg = {"type": "FBP_CUDA", "ProjectionDataId": proj_id, "ReconstructionDataId": rec_id}
    cfg.update(extra)
    if options:
        cfg["option"] = options
    return cfg


@pytest.fixture
def algorithm(engine_factory, data_manager):
    alg = FilteredBackProjectionAlgorithm(engine_factory=engine_factory, data_manager=data_manager)
    yield alg
    alg.close()


@pytest.mark.parametrize("name", ["projection", "sinogram", "rprojection", "rsinogram"])
def test_custom_kind_without_coefficients_fails(algorithm, datasets, name):
    assert not algorithm.initialize(_cfg(*datasets, FilterType=name))
    assert not algorithm.is_initialized
    assert algorithm.last_error.field == "Filter"
    assert algorithm.last_error.message == "Invalid filter pointer."


@pytest.mark.parametrize("name", ["ram-lak", "hann", "none", "kaiser", "flat-top"])
def test_analytic_kinds_need_no_coefficients(algorithm, datasets, name):
    assert algorithm.initialize(_cfg(*datasets, FilterType=name))
    assert algorithm.is_initialized
    assert algorithm.filter_buffer.is_empty


@pytest.mark.parametrize("gpu, ok", [(-2, False), (-1, True), (0, True), (3, True)])
def test_gpu_index_lower_bound(algorithm, datasets, gpu, ok):
    assert algorithm.initialize(_cfg(*datasets, option={"GPUindex": gpu})) is ok
    if not ok:
        assert algorithm.last_error.field == "GPUindex"


@pytest.mark.parametrize("ss, ok", [(-1, False), (0, True), (1, True), (4, True)])
def test_pixel_super_sampling_lower_bound(algorithm, datasets, ss, ok):
    assert algorithm.initialize(_cfg(*datasets, option={"PixelSuperSampling": ss})) is ok


def test_detector_super_sampling_lower_bound(algorithm, datasets):
    assert not algorithm.initialize(_cfg(*datasets, option={"DetectorSuperSampling": -1}))
    assert algorithm.last_error.field == "DetectorSuperSampling"


def test_uninitialized_projection_fails(algorithm, data_manager):
    proj_id = data_manager.store(ProjectionData2D())
    rec_id = data_manager.create_volume(create_vol_geom(10))
    assert not algorithm.initialize(_cfg(proj_id, rec_id))
    assert algorithm.last_error.field == "ProjectionDataId"


def test_uninitialized_reconstruction_fails(algorithm, data_manager):
    proj_id = data_manager.create_projection(make_parallel())
    rec_id = data_manager.store(VolumeData2D())
    assert not algorithm.initialize(_cfg(proj_id, rec_id))
    assert algorithm.last_error.field == "ReconstructionDataId"


def test_unknown_dataset_id_fails(algorithm, datasets):
    proj_id, _ = datasets
    assert not algorithm.initialize(_cfg(proj_id, 999))
    assert algorithm.last_error.field == "ReconstructionDataId"


def test_dataset_of_wrong_type_is_rejected(algorithm, datasets):
    proj_id, rec_id = datasets
    assert not algorithm.initialize(_cfg(rec_id, proj_id))
    assert algorithm.last_error.field == "ProjectionDataId"


def test_missing_projection_in_direct_init(algorithm):
    rec = VolumeData2D(create_vol_geom(10))
    assert not algorithm.initialize_direct(None, rec, FilterKind.RAM_LAK)
    assert algorithm.last_error.field == "ProjectionDataId"


def test_filter_check_precedes_dataset_initialization(algorithm):
    # Missing coefficients are reported before uninitialized datasets
    assert not algorithm.initialize_direct(ProjectionData2D(), VolumeData2D(), FilterKind.SINOGRAM)
    assert algorithm.last_error.field == "Filter"


def test_check_can_be_repeated(algorithm, datasets):
    assert algorithm.initialize(_cfg(*datasets))
    assert algorithm.check()
    algorithm.gpu_index = -5
    assert not algorithm.check()
    assert not algorithm.is_initialized


def test_failed_check_logs_reason(algorithm, datasets, caplog):
    algorithm.initialize(_cfg(*datasets, FilterType="sinogram"))
    assert "FBP_CUDA: Invalid filter pointer." in caplog.text


def test_direct_coefficients_satisfy_custom_kind(algorithm, datasets, data_manager):
    proj = data_manager.get_projection(datasets[0])
    rec = data_manager.get_volume(datasets[1])
    assert algorithm.initialize_direct(proj, rec, "projection", np.ones(16), filter_width=16)
