"""
GPU Backend Manager for CuPy acceleration.
Provides transparent switching between NumPy and CuPy based on availability.
"""

import logging
from typing import Any, Optional

import numpy as np
import scipy.fft as cpu_fft

from config import GPU_ENABLED

logger = logging.getLogger(__name__)

# Try to import CuPy
try:
    import cupy as cp
    import cupyx.scipy.fft as gpu_fft
    CUPY_AVAILABLE = True
except ImportError:
    cp = None
    gpu_fft = None
    CUPY_AVAILABLE = False


class GPUBackend:
    """
    Singleton for GPU backend management.
    Handles GPU detection, device selection, memory queries and array transfers.
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if GPUBackend._initialized:
            return
        GPUBackend._initialized = True

        self._gpu_enabled = GPU_ENABLED

        if CUPY_AVAILABLE and self._gpu_enabled:
            try:
                device = cp.cuda.Device()
                total_mem = device.mem_info[1] / (1024**3)  # GB
                logger.info("GPU initialized: device %d, %.1f GB VRAM", device.id, total_mem)
            except Exception as e:
                logger.warning("GPU initialization failed, using CPU backend: %s", e)
                self._gpu_enabled = False
        elif not CUPY_AVAILABLE:
            logger.info("CuPy not available, using CPU backend")

    @property
    def available(self) -> bool:
        """Check if GPU is available and enabled."""
        return CUPY_AVAILABLE and self._gpu_enabled

    def set_enabled(self, enabled: bool):
        """Enable or disable GPU acceleration."""
        self._gpu_enabled = enabled

    def device_count(self) -> int:
        if not self.available:
            return 0
        try:
            return int(cp.cuda.runtime.getDeviceCount())
        except Exception:
            return 0

    def select_device(self, index: int) -> bool:
        """
        Make device ``index`` current. -1 keeps the current device.

        Returns False when the index does not name a usable device.
        """
        if index < -1:
            return False
        if not self.available or index == -1:
            return True
        if index >= self.device_count():
            logger.error("GPU index %d out of range (%d device(s))", index, self.device_count())
            return False
        cp.cuda.Device(index).use()
        return True

    def array_module(self) -> Any:
        """Return cupy when the GPU path is active, numpy otherwise."""
        return cp if self.available else np

    def fft_module(self) -> Any:
        """Return the scipy.fft namespace matching ``array_module``."""
        return gpu_fft if self.available else cpu_fft

    def to_gpu(self, array: np.ndarray) -> Any:
        """Transfer NumPy array to GPU."""
        if self.available and isinstance(array, np.ndarray):
            return cp.asarray(array)
        return array

    def to_cpu(self, array: Any) -> np.ndarray:
        """Transfer GPU array to CPU."""
        if CUPY_AVAILABLE and isinstance(array, cp.ndarray):
            return cp.asnumpy(array)
        return array

    def clear_memory(self):
        """Clear GPU memory pool (use sparingly)."""
        if CUPY_AVAILABLE:
            cp.get_default_memory_pool().free_all_blocks()


# Global singleton
_backend: Optional[GPUBackend] = None


def get_gpu_backend() -> GPUBackend:
    """Get the global GPU backend instance."""
    global _backend
    if _backend is None:
        _backend = GPUBackend()
    return _backend


def is_gpu_available() -> bool:
    """Check if GPU acceleration is available."""
    return get_gpu_backend().available
