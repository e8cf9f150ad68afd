"""
Core module containing data structures, geometries and shared services.
"""

from core.base import Data2D, ProjectionData2D, VolumeData2D, BaseLoader
from core.geometry import (
    ProjectionGeometry2D,
    ParallelProjectionGeometry2D,
    FanFlatProjectionGeometry2D,
    VolumeGeometry2D,
    create_proj_geom,
    create_vol_geom,
    proj_geom_from_dict,
    vol_geom_from_dict,
)
from core.errors import ReconError, ConfigurationError, EngineError
from core.config_node import ConfigNode, ConfigAudit
from core.gpu_backend import get_gpu_backend, is_gpu_available
from core.dto import FBPRunDTO
from core.progress import (
    ProgressEvent,
    ProgressObserver,
    ProgressBus,
    TerminalProgressObserver,
)

__all__ = [
    'Data2D', 'ProjectionData2D', 'VolumeData2D', 'BaseLoader',
    'ProjectionGeometry2D', 'ParallelProjectionGeometry2D', 'FanFlatProjectionGeometry2D',
    'VolumeGeometry2D', 'create_proj_geom', 'create_vol_geom',
    'proj_geom_from_dict', 'vol_geom_from_dict',
    'ReconError', 'ConfigurationError', 'EngineError',
    'ConfigNode', 'ConfigAudit',
    'get_gpu_backend', 'is_gpu_available',
    'FBPRunDTO',
    'ProgressEvent', 'ProgressObserver', 'ProgressBus', 'TerminalProgressObserver',
]
