"""
2-D acquisition and volume geometries.

Convention:
- Sinograms use index order (angle, detector)
- Volumes use index order (row, col) with row 0 at max_y
- A point (x, y) projects onto parallel detector coordinate t = x cos(a) + y sin(a)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import numpy as np


def _as_angles(angles: Sequence[float]) -> np.ndarray:
    arr = np.asarray(angles, dtype=np.float32).ravel()
    if arr.size == 0:
        raise ValueError("Projection geometry needs at least one angle.")
    return arr


@dataclass(eq=False)
class ProjectionGeometry2D(ABC):
    """
    Detector layout plus the list of projection angles (radians).
    """
    detector_count: int
    detector_width: float
    angles: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if int(self.detector_count) <= 0:
            raise ValueError(f"detector_count must be positive, got {self.detector_count}")
        if float(self.detector_width) <= 0.0:
            raise ValueError(f"detector_width must be positive, got {self.detector_width}")
        self.detector_count = int(self.detector_count)
        self.detector_width = float(self.detector_width)
        self.angles = _as_angles(self.angles)

    @property
    def angle_count(self) -> int:
        return int(self.angles.size)

    @property
    def sinogram_shape(self) -> tuple:
        return (self.angle_count, self.detector_count)

    @property
    def is_fan_flat(self) -> bool:
        """True for fan-beam geometries with a flat detector."""
        return False

    @property
    @abstractmethod
    def kind(self) -> str:
        """Geometry tag used in serialized descriptions."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "detector_count": self.detector_count,
            "detector_width": self.detector_width,
            "angles": self.angles.tolist(),
        }


@dataclass(eq=False)
class ParallelProjectionGeometry2D(ProjectionGeometry2D):
    """Parallel-beam geometry, detector centred on the rotation axis."""

    @property
    def kind(self) -> str:
        return "parallel"


@dataclass(eq=False)
class FanFlatProjectionGeometry2D(ProjectionGeometry2D):
    """
    Fan-beam geometry with a flat detector.

    Attributes:
        source_origin: Distance from the source to the rotation centre.
        origin_detector: Distance from the rotation centre to the detector.
    """
    source_origin: float = 1000.0
    origin_detector: float = 0.0

    def __post_init__(self) -> None:
        super().__post_init__()
        if float(self.source_origin) <= 0.0:
            raise ValueError(f"source_origin must be positive, got {self.source_origin}")
        if float(self.origin_detector) < 0.0:
            raise ValueError(f"origin_detector must be non-negative, got {self.origin_detector}")
        self.source_origin = float(self.source_origin)
        self.origin_detector = float(self.origin_detector)

    @property
    def kind(self) -> str:
        return "fanflat"

    @property
    def is_fan_flat(self) -> bool:
        return True

    @property
    def magnification(self) -> float:
        return (self.source_origin + self.origin_detector) / self.source_origin

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["source_origin"] = self.source_origin
        d["origin_detector"] = self.origin_detector
        return d


@dataclass(eq=False)
class VolumeGeometry2D:
    """
    Reconstruction grid. The window defaults to unit pixels centred on the origin.
    """
    rows: int
    cols: int
    min_x: Optional[float] = None
    max_x: Optional[float] = None
    min_y: Optional[float] = None
    max_y: Optional[float] = None

    def __post_init__(self) -> None:
        if int(self.rows) <= 0 or int(self.cols) <= 0:
            raise ValueError(f"Volume geometry must be non-empty, got {self.rows}x{self.cols}")
        self.rows = int(self.rows)
        self.cols = int(self.cols)
        if self.min_x is None:
            self.min_x = -self.cols / 2.0
        if self.max_x is None:
            self.max_x = self.cols / 2.0
        if self.min_y is None:
            self.min_y = -self.rows / 2.0
        if self.max_y is None:
            self.max_y = self.rows / 2.0
        if self.max_x <= self.min_x or self.max_y <= self.min_y:
            raise ValueError("Volume window must have positive extent.")

    @property
    def shape(self) -> tuple:
        return (self.rows, self.cols)

    @property
    def pixel_width(self) -> float:
        return (self.max_x - self.min_x) / self.cols

    @property
    def pixel_height(self) -> float:
        return (self.max_y - self.min_y) / self.rows

    def pixel_centers(self, super_sampling: int = 1) -> tuple:
        """
        World (x, y) coordinates of pixel centres, shape (rows*ss, cols*ss).
        """
        ss = max(1, int(super_sampling))
        dx = self.pixel_width / ss
        dy = self.pixel_height / ss
        xs = self.min_x + (np.arange(self.cols * ss) + 0.5) * dx
        ys = self.max_y - (np.arange(self.rows * ss) + 0.5) * dy
        return np.meshgrid(xs, ys)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": self.rows,
            "cols": self.cols,
            "min_x": self.min_x,
            "max_x": self.max_x,
            "min_y": self.min_y,
            "max_y": self.max_y,
        }


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def create_proj_geom(kind: str, detector_width: float, detector_count: int,
                     angles: Sequence[float], source_origin: float = 1000.0,
                     origin_detector: float = 0.0) -> ProjectionGeometry2D:
    """
    Build a projection geometry by tag: 'parallel' or 'fanflat'.
    """
    tag = (kind or "").strip().lower()
    if tag == "parallel":
        return ParallelProjectionGeometry2D(detector_count, detector_width, angles)
    if tag in ("fanflat", "fan_flat", "fan-flat"):
        return FanFlatProjectionGeometry2D(
            detector_count, detector_width, angles,
            source_origin=source_origin, origin_detector=origin_detector,
        )
    raise ValueError(f"Unknown projection geometry type: {kind!r}. Supported: 'parallel', 'fanflat'.")


def create_vol_geom(rows: int, cols: Optional[int] = None, **window: float) -> VolumeGeometry2D:
    """Build a volume geometry; cols defaults to rows."""
    return VolumeGeometry2D(rows=rows, cols=rows if cols is None else cols, **window)


def proj_geom_from_dict(d: Dict[str, Any]) -> ProjectionGeometry2D:
    """
    Build a projection geometry from a plain dictionary.

    ``angles`` may be an explicit list or ``{"start", "stop", "count"}``
    (stop excluded), which is how YAML run files usually describe them.
    """
    angles = d.get("angles")
    if isinstance(angles, dict):
        angles = np.linspace(
            float(angles.get("start", 0.0)),
            float(angles["stop"]),
            int(angles["count"]),
            endpoint=False,
        )
    if angles is None:
        raise ValueError("Projection geometry description is missing 'angles'.")
    return create_proj_geom(
        kind=str(d.get("type", "parallel")),
        detector_width=float(d.get("detector_width", 1.0)),
        detector_count=int(d["detector_count"]),
        angles=angles,
        source_origin=float(d.get("source_origin", 1000.0)),
        origin_detector=float(d.get("origin_detector", 0.0)),
    )


def vol_geom_from_dict(d: Dict[str, Any]) -> VolumeGeometry2D:
    window = {k: float(d[k]) for k in ("min_x", "max_x", "min_y", "max_y") if d.get(k) is not None}
    return create_vol_geom(int(d["rows"]), d.get("cols"), **window)
