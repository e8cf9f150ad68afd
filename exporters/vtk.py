"""
VTK format exporter for reconstructed slices.
"""

import numpy as np
import pyvista as pv

from core import VolumeData2D


class VTKExporter:
    """
    Exports a reconstructed slice to VTK ImageData (.vti), one cell per pixel.
    """

    @staticmethod
    def export(data: VolumeData2D, filepath: str) -> bool:
        """
        Args:
            data: Initialized reconstruction slice.
            filepath: target path.

        Returns:
            bool: return True once success.
        """
        if data is None or not data.is_initialized:
            raise ValueError("No reconstruction to export.")

        geom = data.geometry
        # Row 0 is max_y; VTK grids grow along +y
        raw_xy = np.flipud(data.data).T[:, :, None]
        raw_xy = np.asfortranarray(raw_xy)

        grid = pv.ImageData()
        grid.dimensions = np.array(raw_xy.shape) + 1
        grid.origin = (geom.min_x, geom.min_y, 0.0)
        grid.spacing = (geom.pixel_width, geom.pixel_height, 1.0)

        values = raw_xy.ravel(order="F")
        if not values.flags.c_contiguous:
            values = np.ascontiguousarray(values)
        grid.cell_data["values"] = values

        grid.save(filepath)
        print(f"[Exporter] Slice saved to {filepath}")
        return True
