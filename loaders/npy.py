"""
NumPy ``.npy`` sinogram loader.
"""

import os
import numpy as np
from typing import Callable, Optional

from core import BaseLoader, ProjectionData2D, ProjectionGeometry2D


class NpySinogramLoader(BaseLoader):
    """Loads a (angles, detectors) sinogram saved with ``np.save``."""

    def __init__(self, geometry: ProjectionGeometry2D) -> None:
        self.geometry = geometry

    def load(self, source: str, callback: Optional[Callable[[int, str], None]] = None) -> ProjectionData2D:
        if not os.path.exists(source):
            raise FileNotFoundError(f"Sinogram file not found: {source}")
        print(f"[Loader] Reading sinogram from {source}")
        if callback:
            callback(0, "Reading sinogram...")
        data = np.load(source, allow_pickle=False)
        if data.ndim != 2:
            raise ValueError(f"Expected a 2D sinogram, got shape={data.shape}")
        if data.shape != self.geometry.sinogram_shape:
            raise ValueError(
                f"Sinogram shape {data.shape} does not match geometry "
                f"{self.geometry.sinogram_shape} (angles, detectors)"
            )
        if callback:
            callback(100, "Sinogram loaded.")
        return ProjectionData2D(self.geometry, data, metadata={"Type": "Measured", "Source": source})
