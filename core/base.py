"""
Core data structures and abstract base classes.
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from core.geometry import ProjectionGeometry2D, VolumeGeometry2D


class Data2D:
    """
    A float32 2-D buffer bound to a geometry.

    A dataset created without a geometry is *uninitialized* until
    ``initialize`` is called; algorithms refuse to run on it.
    """

    def __init__(self, geometry=None, data: Optional[np.ndarray] = None,
                 metadata: Optional[Dict[str, Any]] = None) -> None:
        self.geometry = None
        self._data: Optional[np.ndarray] = None
        self.metadata: Dict[str, Any] = dict(metadata or {})
        if geometry is not None:
            self.initialize(geometry, data)

    def _expected_shape(self, geometry) -> Tuple[int, int]:
        raise NotImplementedError

    def initialize(self, geometry, data: Optional[np.ndarray] = None) -> None:
        """Bind a geometry and allocate (or copy in) the data buffer."""
        shape = self._expected_shape(geometry)
        if data is None:
            buf = np.zeros(shape, dtype=np.float32)
        else:
            buf = np.array(data, dtype=np.float32, copy=True)
            if buf.size == shape[0] * shape[1] and buf.shape != shape:
                buf = buf.reshape(shape)
            if buf.shape != shape:
                raise ValueError(f"Data shape {buf.shape} does not match geometry shape {shape}")
        self.geometry = geometry
        self._data = buf

    @property
    def is_initialized(self) -> bool:
        return self.geometry is not None and self._data is not None

    @property
    def data(self) -> np.ndarray:
        if self._data is None:
            raise ValueError("Dataset is not initialized.")
        return self._data

    def set_data(self, values: np.ndarray) -> None:
        """Overwrite the buffer in-place, keeping shape and dtype."""
        self.data[...] = np.asarray(values, dtype=np.float32).reshape(self.data.shape)

    @property
    def dimensions(self) -> Tuple[int, int]:
        if self._data is not None:
            return self._data.shape
        return (0, 0)


class ProjectionData2D(Data2D):
    """Sinogram of shape (angle_count, detector_count)."""

    geometry: Optional[ProjectionGeometry2D]

    def _expected_shape(self, geometry: ProjectionGeometry2D) -> Tuple[int, int]:
        return geometry.sinogram_shape

    @property
    def angle_count(self) -> int:
        return self.geometry.angle_count if self.geometry is not None else 0

    @property
    def detector_count(self) -> int:
        return self.geometry.detector_count if self.geometry is not None else 0


class VolumeData2D(Data2D):
    """Reconstruction slice of shape (rows, cols)."""

    geometry: Optional[VolumeGeometry2D]

    def _expected_shape(self, geometry: VolumeGeometry2D) -> Tuple[int, int]:
        return geometry.shape


class BaseLoader(ABC):
    """Abstract base class for sinogram acquisition strategies."""

    @abstractmethod
    def load(self, source: Any, callback: Optional[Callable[[int, str], None]] = None) -> ProjectionData2D:
        """
        Load a sinogram.

        Args:
            source: Path or description of the data source.
            callback: Optional progress callback (percent, message).

        Returns:
            ProjectionData2D: Loaded sinogram bound to its geometry.
        """
        pass
