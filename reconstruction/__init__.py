"""
Reconstruction package.

Modules:
- filters: Filter catalog and filter coefficient ownership
- windows: Analytic filter frequency responses
- engine: Engine contract and the reference NumPy/CuPy engine
- base: Shared 2-D reconstruction lifecycle
- fbp: Filtered back-projection algorithm
- registry: Algorithm lookup by configuration type
"""

from reconstruction.filters import FilterBuffer, FilterKind, as_filter_kind, filter_names, resolve_filter
from reconstruction.engine import FBPEngine, ReferenceFBPEngine, create_fbp_engine, parker_weights
from reconstruction.base import AlgorithmState, ReconstructionAlgorithm2D
from reconstruction.fbp import FilteredBackProjectionAlgorithm
from reconstruction.registry import algorithm_types, create_algorithm, get_algorithm_class, register_algorithm

__all__ = [
    'FilterBuffer', 'FilterKind', 'as_filter_kind', 'filter_names', 'resolve_filter',
    'FBPEngine', 'ReferenceFBPEngine', 'create_fbp_engine', 'parker_weights',
    'AlgorithmState', 'ReconstructionAlgorithm2D',
    'FilteredBackProjectionAlgorithm',
    'algorithm_types', 'create_algorithm', 'get_algorithm_class', 'register_algorithm',
]
