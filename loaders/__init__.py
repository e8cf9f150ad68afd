"""
Sinogram loaders package.
"""

from loaders.phantom import DiskPhantomLoader, project_disks, rasterize_disks, field_of_view_radius
from loaders.npy import NpySinogramLoader

__all__ = [
    'DiskPhantomLoader',
    'project_disks',
    'rasterize_disks',
    'field_of_view_radius',
    'NpySinogramLoader',
]
