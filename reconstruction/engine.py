"""
FBP reconstruction engines.

``FBPEngine`` is the contract the algorithm layer drives; every call is
synchronous and reports success as a bool. ``ReferenceFBPEngine`` implements
it on CuPy when the GPU backend is active and on NumPy otherwise.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np
import scipy.fft as sp_fft

from config import FILTER_PARAMETER_UNSET
from core.geometry import ProjectionGeometry2D, VolumeGeometry2D
from core.gpu_backend import get_gpu_backend
from reconstruction.filters import FilterKind
from reconstruction.windows import analytic_response, ramp_response

logger = logging.getLogger(__name__)


class FBPEngine(ABC):
    """Abstract filtered back-projection engine."""

    @abstractmethod
    def set_gpu_index(self, index: int) -> bool:
        """Select the device the engine runs on (-1 = current device)."""

    @abstractmethod
    def set_geometry(self, vol_geom: VolumeGeometry2D, proj_geom: ProjectionGeometry2D) -> bool:
        pass

    @abstractmethod
    def set_super_sampling(self, detector_super_sampling: int, pixel_super_sampling: int) -> bool:
        """
        Set the ray and pixel supersampling factors.

        Filtered back-projection has no forward-projection step, so only the
        pixel factor affects the result. The detector factor is validated and
        otherwise ignored.
        """

    @abstractmethod
    def init(self) -> bool:
        """Allocate device resources for the configured geometry."""

    @abstractmethod
    def set_filter(self, kind: FilterKind, coefficients: Optional[np.ndarray], width: int,
                   d: float = 1.0, parameter: float = FILTER_PARAMETER_UNSET) -> bool:
        pass

    @abstractmethod
    def set_short_scan(self, enabled: bool) -> bool:
        pass

    @abstractmethod
    def set_sinogram(self, sinogram: np.ndarray) -> bool:
        pass

    @abstractmethod
    def iterate(self, iterations: int = 1) -> bool:
        pass

    @abstractmethod
    def get_reconstruction(self) -> Optional[np.ndarray]:
        pass

    @abstractmethod
    def release(self) -> None:
        """Free every resource held by the engine. Safe to call twice."""


def _sample_rows(xp, row, idx):
    """Linear interpolation of ``row`` at fractional indices, zero outside."""
    n = row.shape[0]
    ext = xp.concatenate([row, xp.zeros(1, dtype=row.dtype)])
    i0 = xp.floor(idx).astype(xp.int64)
    frac = (idx - i0).astype(row.dtype)
    valid = (i0 >= 0) & (i0 <= n - 1)
    i0 = xp.clip(i0, 0, n - 1)
    values = ext[i0] * (1 - frac) + ext[i0 + 1] * frac
    return xp.where(valid, values, 0)


def parker_weights(proj_geom, angles: np.ndarray) -> np.ndarray:
    """
    Short-scan redundancy weights, shape (angle_count, detector_count).

    Expects angles increasing from the first projection over at least
    pi + 2 * fan half-angle.
    """
    n = proj_geom.detector_count
    ds = proj_geom.detector_width / proj_geom.magnification
    s = (np.arange(n) - (n - 1) / 2.0) * ds
    gamma = np.arctan(s / proj_geom.source_origin)[None, :]
    gamma_m = float(np.max(np.abs(gamma))) + 1e-6
    beta = (np.asarray(angles, dtype=np.float64) - float(angles[0]))[:, None]

    w = np.zeros((beta.shape[0], n), dtype=np.float64)
    rise_end = 2.0 * gamma_m - 2.0 * gamma
    fall_start = np.pi - 2.0 * gamma
    end = np.pi + 2.0 * gamma_m

    rise = beta < rise_end
    flat = (beta >= rise_end) & (beta < fall_start)
    fall = (beta >= fall_start) & (beta <= end)

    w_rise = np.sin(np.pi / 4.0 * beta / (gamma_m - gamma)) ** 2
    w_fall = np.sin(np.pi / 4.0 * (end - beta) / (gamma_m + gamma)) ** 2
    w = np.where(rise, w_rise, w)
    w = np.where(flat, 1.0, w)
    w = np.where(fall, w_fall, w)
    return w


class ReferenceFBPEngine(FBPEngine):
    """
    Direct FBP for parallel and fan-flat 2-D geometries.

    Filtering runs in the Fourier domain on zero-padded rows; back-projection
    is voxel driven with linear detector interpolation.
    """

    def __init__(self) -> None:
        self._backend = get_gpu_backend()
        self._xp: Any = np
        self._fft: Any = None
        self.gpu_index = -1
        self.vol_geom: Optional[VolumeGeometry2D] = None
        self.proj_geom: Optional[ProjectionGeometry2D] = None
        self.pixel_super_sampling = 1
        self.short_scan = False
        self.initialized = False
        self.released = False

        self._kind: Optional[FilterKind] = None
        self._response = None       # (1 | angles, bins) frequency response
        self._padded_length = 0
        self._sinogram = None
        self._volume = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_gpu_index(self, index: int) -> bool:
        if not self._backend.select_device(int(index)):
            return False
        self.gpu_index = int(index)
        return True

    def set_geometry(self, vol_geom: VolumeGeometry2D, proj_geom: ProjectionGeometry2D) -> bool:
        self.vol_geom = vol_geom
        self.proj_geom = proj_geom
        self.initialized = False
        return True

    def set_super_sampling(self, detector_super_sampling: int, pixel_super_sampling: int) -> bool:
        if detector_super_sampling < 0 or pixel_super_sampling < 0:
            return False
        # 0 behaves like 1 (no supersampling)
        self.pixel_super_sampling = max(1, int(pixel_super_sampling))
        return True

    def init(self) -> bool:
        if self.vol_geom is None or self.proj_geom is None:
            logger.error("ReferenceFBPEngine: init() called before set_geometry()")
            return False
        self._xp = self._backend.array_module()
        self._fft = self._backend.fft_module()
        n = self.proj_geom.detector_count
        m = 64
        while m < 2 * n:
            m *= 2
        self._padded_length = m
        self._volume = None
        self.initialized = True
        return True

    @property
    def _detector_spacing(self) -> float:
        """Detector spacing in the plane through the rotation centre."""
        geom = self.proj_geom
        if geom.is_fan_flat:
            return geom.detector_width / geom.magnification
        return geom.detector_width

    def set_filter(self, kind: FilterKind, coefficients: Optional[np.ndarray], width: int,
                   d: float = 1.0, parameter: float = FILTER_PARAMETER_UNSET) -> bool:
        if not self.initialized:
            logger.error("ReferenceFBPEngine: set_filter() requires init()")
            return False
        xp = self._xp
        angles = self.proj_geom.angle_count
        ds = self._detector_spacing
        self._kind = kind
        self._response = None

        if not kind.is_custom:
            resp = analytic_response(kind, self._padded_length, ds, d, parameter)
            self._response = xp.asarray(resp[None, :], dtype=xp.float32)
            return True

        if coefficients is None:
            logger.error("ReferenceFBPEngine: filter '%s' needs coefficients", kind.value)
            return False
        coeffs = np.asarray(coefficients, dtype=np.float64).ravel()
        width = int(width)

        if kind.is_angle_indexed and coeffs.size == angles:
            # One gain per angle applied to the plain ramp
            ramp = ramp_response(self._padded_length, ds)
            self._response = xp.asarray(coeffs[:, None] * ramp[None, :], dtype=xp.float32)
            return True

        if width <= 0:
            logger.error("ReferenceFBPEngine: filter '%s' needs a positive width", kind.value)
            return False
        if kind.is_angle_indexed:
            if coeffs.size != angles * width:
                logger.error("ReferenceFBPEngine: '%s' filter has %d value(s), expected %d or %d",
                             kind.value, coeffs.size, angles, angles * width)
                return False
            rows = coeffs.reshape(angles, width)
        else:
            if coeffs.size < width:
                logger.error("ReferenceFBPEngine: '%s' filter has %d value(s), width is %d",
                             kind.value, coeffs.size, width)
                return False
            rows = coeffs[:width][None, :]

        if kind.is_real_space:
            while self._padded_length < self.proj_geom.detector_count + width:
                self._padded_length *= 2
            kpad = np.zeros((rows.shape[0], self._padded_length))
            shift = width // 2
            for j in range(width):
                kpad[:, (j - shift) % self._padded_length] = rows[:, j]
            self._response = xp.asarray(sp_fft.rfft(kpad, axis=1), dtype=xp.complex64)
        else:
            # Frequency samples given on [0, Nyquist]; resample onto our bins
            n_bins = self._padded_length // 2 + 1
            target = np.linspace(0.0, 1.0, n_bins)
            source = np.linspace(0.0, 1.0, width) if width > 1 else np.zeros(1)
            resampled = np.stack([np.interp(target, source, r) for r in rows])
            self._response = xp.asarray(resampled, dtype=xp.float32)
        return True

    def set_short_scan(self, enabled: bool) -> bool:
        if enabled and (self.proj_geom is None or not self.proj_geom.is_fan_flat):
            logger.error("ReferenceFBPEngine: short-scan weighting needs a fan-flat geometry")
            return False
        self.short_scan = bool(enabled)
        return True

    # ------------------------------------------------------------------
    # Data transfer
    # ------------------------------------------------------------------

    def set_sinogram(self, sinogram: np.ndarray) -> bool:
        if not self.initialized:
            return False
        arr = np.asarray(sinogram, dtype=np.float32)
        if arr.shape != self.proj_geom.sinogram_shape:
            logger.error("ReferenceFBPEngine: sinogram shape %s, geometry expects %s",
                         arr.shape, self.proj_geom.sinogram_shape)
            return False
        self._sinogram = self._backend.to_gpu(arr.copy())
        return True

    def get_reconstruction(self) -> Optional[np.ndarray]:
        if self._volume is None:
            return None
        return np.asarray(self._backend.to_cpu(self._volume), dtype=np.float32)

    # ------------------------------------------------------------------
    # Reconstruction
    # ------------------------------------------------------------------

    def _filter(self, sino):
        xp = self._xp
        geom = self.proj_geom
        n = geom.detector_count

        if geom.is_fan_flat:
            ds = self._detector_spacing
            s = (xp.arange(n, dtype=xp.float32) - (n - 1) / 2.0) * ds
            r = geom.source_origin
            sino = sino * (r / xp.sqrt(r * r + s * s))[None, :]
            if self.short_scan:
                sino = sino * xp.asarray(parker_weights(geom, geom.angles), dtype=xp.float32)

        if self._kind == FilterKind.NONE:
            return sino

        m = self._padded_length
        spectrum = self._fft.rfft(sino, n=m, axis=1)
        filtered = self._fft.irfft(spectrum * self._response, n=m, axis=1)
        return filtered[:, :n].astype(xp.float32)

    def _angle_weight(self) -> float:
        geom = self.proj_geom
        if geom.is_fan_flat and self.short_scan and geom.angle_count > 1:
            return float(np.mean(np.diff(geom.angles.astype(np.float64))))
        return float(np.pi / geom.angle_count)

    def _back_project(self, filtered):
        xp = self._xp
        geom = self.proj_geom
        ss = self.pixel_super_sampling
        x, y = self.vol_geom.pixel_centers(ss)
        x = xp.asarray(x.ravel(), dtype=xp.float32)
        y = xp.asarray(y.ravel(), dtype=xp.float32)
        n = geom.detector_count
        ds = self._detector_spacing
        centre = (n - 1) / 2.0

        acc = xp.zeros_like(x)
        for a, angle in enumerate(geom.angles.astype(np.float64)):
            c, s = np.cos(angle), np.sin(angle)
            t = x * c + y * s
            if geom.is_fan_flat:
                l = -x * s + y * c
                u = (geom.source_origin - l) / geom.source_origin
                acc += _sample_rows(xp, filtered[a], (t / u) / ds + centre) / (u * u)
            else:
                acc += _sample_rows(xp, filtered[a], t / ds + centre)

        acc *= self._angle_weight()
        rows, cols = self.vol_geom.shape
        img = acc.reshape(rows, ss, cols, ss).mean(axis=(1, 3))
        return img

    def iterate(self, iterations: int = 1) -> bool:
        """Run one filtered back-projection; FBP ignores the iteration count."""
        if not self.initialized or self._sinogram is None or self._response is None and self._kind != FilterKind.NONE:
            logger.error("ReferenceFBPEngine: iterate() before geometry, filter and sinogram were set")
            return False
        filtered = self._filter(self._sinogram)
        self._volume = self._back_project(filtered)
        return True

    def release(self) -> None:
        if self.released:
            return
        self._sinogram = None
        self._volume = None
        self._response = None
        self.initialized = False
        self.released = True
        self._backend.clear_memory()


def create_fbp_engine() -> FBPEngine:
    """Factory for the default engine."""
    return ReferenceFBPEngine()
