"""
Data Transfer Objects (DTOs) for headless reconstruction runs.

Design rules
------------
* All DTOs are immutable (frozen=True).  The CLI builds a DTO once and
  hands it to the algorithm registry.
* ``from_dict`` / ``from_yaml`` / ``from_json`` keep serialisation in one place.
* ``to_config`` is the only place a DTO is turned into an algorithm
  configuration tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from config import (
    DEFAULT_FILTER_D,
    DEFAULT_FILTER_TYPE,
    DEFAULT_GPU_INDEX,
    DEFAULT_PIXEL_SUPERSAMPLING,
    DEFAULT_SHORT_SCAN,
    EXPORT_FORMATS,
    FBP_ALGORITHM_TYPE,
    FILTER_PARAMETER_UNSET,
)


def _default_projection_geometry() -> Dict[str, Any]:
    return {
        "type": "parallel",
        "detector_count": 128,
        "detector_width": 1.0,
        "angles": {"start": 0.0, "stop": 3.141592653589793, "count": 180},
    }


def _default_volume_geometry() -> Dict[str, Any]:
    return {"rows": 96, "cols": 96}


@dataclass(frozen=True)
class FBPRunDTO:
    """
    Immutable configuration for one headless FBP reconstruction.
    """

    # Input
    input_path:           str                 = ""
    loader_type:          str                 = "phantom"   # "phantom" | "npy"
    projection_geometry:  Dict[str, Any]      = field(default_factory=_default_projection_geometry)
    volume_geometry:      Dict[str, Any]      = field(default_factory=_default_volume_geometry)

    # Filter
    filter_type:          str                 = DEFAULT_FILTER_TYPE
    filter_parameter:     float               = FILTER_PARAMETER_UNSET
    filter_d:             float               = DEFAULT_FILTER_D
    filter_path:          Optional[str]       = None        # .npy coefficients for custom kinds

    # Execution
    short_scan:           bool                = DEFAULT_SHORT_SCAN
    gpu_index:            int                 = DEFAULT_GPU_INDEX
    pixel_super_sampling: int                 = DEFAULT_PIXEL_SUPERSAMPLING

    # Output
    output_dir:           Optional[str]       = None
    export_formats:       Tuple[str, ...]     = EXPORT_FORMATS

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "FBPRunDTO":
        return FBPRunDTO(
            input_path           = str(d.get("input_path",  "")),
            loader_type          = str(d.get("loader_type", "phantom")),
            projection_geometry  = dict(d.get("projection_geometry") or _default_projection_geometry()),
            volume_geometry      = dict(d.get("volume_geometry") or _default_volume_geometry()),
            filter_type          = str(d.get("filter_type", DEFAULT_FILTER_TYPE)),
            filter_parameter     = float(d.get("filter_parameter", FILTER_PARAMETER_UNSET)),
            filter_d             = float(d.get("filter_d", DEFAULT_FILTER_D)),
            filter_path          = d.get("filter_path"),
            short_scan           = bool(d.get("short_scan", DEFAULT_SHORT_SCAN)),
            gpu_index            = int(d.get("gpu_index", DEFAULT_GPU_INDEX)),
            pixel_super_sampling = int(d.get("pixel_super_sampling", DEFAULT_PIXEL_SUPERSAMPLING)),
            output_dir           = d.get("output_dir"),
            export_formats       = tuple(d.get("export_formats", EXPORT_FORMATS)),
        )

    @staticmethod
    def from_yaml(path: str) -> "FBPRunDTO":
        """Load a run description from a YAML file."""
        import yaml
        with open(path, encoding="utf-8") as fh:
            d = yaml.safe_load(fh)
        return FBPRunDTO.from_dict(d or {})

    @staticmethod
    def from_json(path: str) -> "FBPRunDTO":
        """Load a run description from a JSON file."""
        import json
        with open(path, encoding="utf-8") as fh:
            d = json.load(fh)
        return FBPRunDTO.from_dict(d)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_path":           self.input_path,
            "loader_type":          self.loader_type,
            "projection_geometry":  dict(self.projection_geometry),
            "volume_geometry":      dict(self.volume_geometry),
            "filter_type":          self.filter_type,
            "filter_parameter":     self.filter_parameter,
            "filter_d":             self.filter_d,
            "filter_path":          self.filter_path,
            "short_scan":           self.short_scan,
            "gpu_index":            self.gpu_index,
            "pixel_super_sampling": self.pixel_super_sampling,
            "output_dir":           self.output_dir,
            "export_formats":       list(self.export_formats),
        }

    def to_config(self, projection_id: int, reconstruction_id: int,
                  filter_id: Optional[int] = None) -> Dict[str, Any]:
        """Algorithm configuration tree for registered dataset ids."""
        cfg: Dict[str, Any] = {
            "type": FBP_ALGORITHM_TYPE,
            "ProjectionDataId": projection_id,
            "ReconstructionDataId": reconstruction_id,
            "FilterType": self.filter_type,
            "FilterParameter": self.filter_parameter,
            "FilterD": self.filter_d,
            "option": {
                "GPUindex": self.gpu_index,
                "PixelSuperSampling": self.pixel_super_sampling,
            },
        }
        if filter_id is not None:
            cfg["FilterSinogramId"] = filter_id
        if str(self.projection_geometry.get("type", "parallel")).lower() in ("fanflat", "fan_flat", "fan-flat"):
            cfg["option"]["ShortScan"] = self.short_scan
        return cfg
