"""
Id-based registries for datasets and algorithm instances.

Responsibilities:
- Hands out integer ids for stored objects (ids start at 1, never reused)
- Resolves ids referenced from configuration trees (ProjectionDataId, ...)
- Releases algorithm instances when they are removed
"""

import logging
from typing import Dict, Generic, List, Optional, TypeVar

import numpy as np

from core.base import Data2D, ProjectionData2D, VolumeData2D
from core.geometry import ProjectionGeometry2D, VolumeGeometry2D

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ObjectManager(Generic[T]):
    """
    Registry mapping integer ids to objects of one family.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._objects: Dict[int, T] = {}
        self._next_id = 1

    def store(self, obj: T) -> int:
        object_id = self._next_id
        self._next_id += 1
        self._objects[object_id] = obj
        return object_id

    def get(self, object_id: int) -> Optional[T]:
        return self._objects.get(int(object_id))

    def has(self, object_id: int) -> bool:
        return int(object_id) in self._objects

    def ids(self) -> List[int]:
        return sorted(self._objects)

    def remove(self, object_id: int) -> None:
        obj = self._objects.pop(int(object_id), None)
        if obj is None:
            logger.warning("%s manager: no object with id %s", self.kind, object_id)
            return
        close = getattr(obj, "close", None)
        if callable(close):
            close()

    def clear(self) -> None:
        for object_id in list(self._objects):
            self.remove(object_id)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: int) -> bool:
        return self.has(object_id)


class DataManager2D(ObjectManager[Data2D]):
    """
    Central store for 2-D sinograms and reconstruction slices.
    """

    def __init__(self) -> None:
        super().__init__("data2d")

    def create_projection(self, geometry: ProjectionGeometry2D,
                          data: Optional[np.ndarray] = None) -> int:
        return self.store(ProjectionData2D(geometry, data))

    def create_volume(self, geometry: VolumeGeometry2D,
                      data: Optional[np.ndarray] = None) -> int:
        return self.store(VolumeData2D(geometry, data))

    def get_projection(self, object_id: int) -> Optional[ProjectionData2D]:
        """Resolve an id to a sinogram; None if missing or of another type."""
        obj = self.get(object_id)
        return obj if isinstance(obj, ProjectionData2D) else None

    def get_volume(self, object_id: int) -> Optional[VolumeData2D]:
        obj = self.get(object_id)
        return obj if isinstance(obj, VolumeData2D) else None


# Global registries
_data_manager: Optional[DataManager2D] = None
_algorithm_manager: Optional[ObjectManager] = None


def get_data_manager() -> DataManager2D:
    """Get the global dataset registry."""
    global _data_manager
    if _data_manager is None:
        _data_manager = DataManager2D()
    return _data_manager


def get_algorithm_manager() -> ObjectManager:
    """Get the global algorithm registry."""
    global _algorithm_manager
    if _algorithm_manager is None:
        _algorithm_manager = ObjectManager("algorithm")
    return _algorithm_manager


def clear_all() -> None:
    """Release every registered algorithm and dataset."""
    get_algorithm_manager().clear()
    get_data_manager().clear()
