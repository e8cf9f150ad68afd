"""
NumPy format exporter for reconstructed slices.
"""

import numpy as np

from core import VolumeData2D


class NpyExporter:
    """Saves the raw (rows, cols) float32 slice with ``np.save``."""

    @staticmethod
    def export(data: VolumeData2D, filepath: str) -> bool:
        if data is None or not data.is_initialized:
            raise ValueError("No reconstruction to export.")
        np.save(filepath, data.data)
        print(f"[Exporter] Slice saved to {filepath}")
        return True
