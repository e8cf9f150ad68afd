"""
Reconstruction exporters package.
"""

from exporters.npy import NpyExporter
from exporters.vtk import VTKExporter

__all__ = ['NpyExporter', 'VTKExporter']
