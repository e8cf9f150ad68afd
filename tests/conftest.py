"""
Shared fixtures: an engine double that records every call, and a private
dataset registry per test.
"""

import os
import sys

import numpy as np
import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from core import create_proj_geom, create_vol_geom
from core.gpu_backend import get_gpu_backend
from data import DataManager2D
from reconstruction import FBPEngine


class RecordingEngine(FBPEngine):
    """Engine double; methods named in ``fail`` report failure."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []
        self.release_count = 0
        self.filter_args = None
        self.short_scan = None
        self.vol_geom = None
        self._volume = None

    def _record(self, name, *args):
        self.calls.append(name)
        return name not in self.fail

    def set_gpu_index(self, index):
        return self._record("set_gpu_index", index)

    def set_geometry(self, vol_geom, proj_geom):
        self.vol_geom = vol_geom
        return self._record("set_geometry")

    def set_super_sampling(self, detector_super_sampling, pixel_super_sampling):
        return self._record("set_super_sampling")

    def init(self):
        return self._record("init")

    def set_filter(self, kind, coefficients, width, d=1.0, parameter=-1.0):
        self.filter_args = (kind, None if coefficients is None else coefficients.copy(), width, d, parameter)
        return self._record("set_filter")

    def set_short_scan(self, enabled):
        self.short_scan = enabled
        return self._record("set_short_scan")

    def set_sinogram(self, sinogram):
        return self._record("set_sinogram")

    def iterate(self, iterations=1):
        self._volume = np.full(self.vol_geom.shape, 7.0, dtype=np.float32)
        return self._record("iterate")

    def get_reconstruction(self):
        self.calls.append("get_reconstruction")
        return self._volume

    def release(self):
        self.release_count += 1


class EngineFactory:
    """Callable handing out RecordingEngines and remembering each one."""

    def __init__(self, fail=()):
        self.fail = fail
        self.engines = []

    def __call__(self):
        engine = RecordingEngine(self.fail)
        self.engines.append(engine)
        return engine

    @property
    def last(self):
        return self.engines[-1]


@pytest.fixture(autouse=True)
def cpu_backend():
    """Run every test on the NumPy path."""
    backend = get_gpu_backend()
    previous = backend._gpu_enabled
    backend.set_enabled(False)
    yield backend
    backend.set_enabled(previous)


@pytest.fixture
def data_manager():
    return DataManager2D()


@pytest.fixture
def engine_factory():
    return EngineFactory()


def make_parallel(angles=8, detectors=16):
    return create_proj_geom("parallel", 1.0, detectors, np.linspace(0, np.pi, angles, endpoint=False))


def make_fanflat(angles=12, detectors=16):
    return create_proj_geom("fanflat", 1.0, detectors, np.linspace(0, 2 * np.pi, angles, endpoint=False),
                            source_origin=100.0, origin_detector=50.0)


@pytest.fixture
def datasets(data_manager):
    """Register a random sinogram and an empty slice; returns (proj_id, rec_id)."""
    proj_geom = make_parallel()
    rng = np.random.default_rng(0)
    proj_id = data_manager.create_projection(proj_geom, rng.random(proj_geom.sinogram_shape))
    rec_id = data_manager.create_volume(create_vol_geom(10))
    return proj_id, rec_id


@pytest.fixture
def fan_datasets(data_manager):
    proj_geom = make_fanflat()
    proj_id = data_manager.create_projection(proj_geom, np.ones(proj_geom.sinogram_shape))
    rec_id = data_manager.create_volume(create_vol_geom(10))
    return proj_id, rec_id
