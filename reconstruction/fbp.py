"""
Filtered back-projection algorithm.

Two ways to configure an instance:
- ``initialize(cfg)`` reads a configuration node tree (datasets by id)
- ``initialize_direct(...)`` takes datasets and filter settings as arguments

Either way the filter coefficients are copied into a buffer owned by the
instance, the configuration is validated, and the engine is only configured
on the first ``run``.
"""

import logging
from typing import Optional, Union

import numpy as np

from config import (
    DEFAULT_FILTER_D,
    DEFAULT_FILTER_TYPE,
    DEFAULT_GPU_INDEX,
    DEFAULT_SHORT_SCAN,
    FBP_ALGORITHM_ALIASES,
    FBP_ALGORITHM_TYPE,
    FILTER_PARAMETER_UNSET,
)
from core.base import ProjectionData2D, VolumeData2D
from core.config_node import ConfigAudit, ConfigNode
from core.errors import ConfigurationError, EngineError
from reconstruction.base import AlgorithmState, ReconstructionAlgorithm2D
from reconstruction.engine import FBPEngine, create_fbp_engine
from reconstruction.filters import FilterBuffer, FilterKind, as_filter_kind, resolve_filter
from reconstruction.registry import register_algorithm

logger = logging.getLogger(__name__)


@register_algorithm(FBP_ALGORITHM_TYPE, *FBP_ALGORITHM_ALIASES)
class FilteredBackProjectionAlgorithm(ReconstructionAlgorithm2D):
    """
    FBP reconstruction of a parallel or fan-flat sinogram.

    Attributes:
        filter_kind: Selected filter kind.
        filter_buffer: Owned copy of the custom filter coefficients.
        filter_width: Width argument handed to the engine with the buffer.
        filter_parameter: Kind specific parameter, -1.0 when unset.
        filter_d: Frequency cutoff scale.
        short_scan: Parker weighting for fan-flat short scans.
    """

    type = FBP_ALGORITHM_TYPE

    def __init__(self, *args, **kwargs) -> None:
        self.filter_buffer = FilterBuffer()
        super().__init__(*args, **kwargs)

    def _reset(self) -> None:
        super()._reset()
        self.filter_buffer.release()
        self.filter_kind = FilterKind.NONE
        self.filter_width = 0
        self.filter_parameter = FILTER_PARAMETER_UNSET
        self.filter_d = DEFAULT_FILTER_D
        self.short_scan = DEFAULT_SHORT_SCAN

    def _default_engine_factory(self) -> FBPEngine:
        return create_fbp_engine()

    # ------------------------------------------------------------------
    # Declarative initialization
    # ------------------------------------------------------------------

    def _initialize_specific(self, cfg: ConfigNode, audit: ConfigAudit) -> None:
        filter_type = cfg.get_str("FilterType")
        self.filter_kind = resolve_filter(filter_type if filter_type is not None else DEFAULT_FILTER_TYPE)
        audit.mark_node_parsed("FilterType")

        filter_id = cfg.get_int("FilterSinogramId")
        if filter_id is not None:
            if self.filter_kind.is_custom:
                self._copy_filter_dataset(filter_id)
            else:
                logger.warning("%s: FilterSinogramId ignored for analytic filter '%s'",
                               self.type, self.filter_kind.value)
        audit.mark_node_parsed("FilterSinogramId")

        self.filter_parameter = cfg.get_float("FilterParameter", FILTER_PARAMETER_UNSET)
        audit.mark_node_parsed("FilterParameter")

        self.filter_d = cfg.get_float("FilterD", DEFAULT_FILTER_D)
        audit.mark_node_parsed("FilterD")

        geometry = self.projection.geometry if self.projection is not None else None
        if geometry is not None and geometry.is_fan_flat:
            self.short_scan = cfg.get_option_bool("ShortScan", DEFAULT_SHORT_SCAN)
            audit.mark_option_parsed("ShortScan")

    def _copy_filter_dataset(self, data_id: int) -> None:
        source = self.data_manager.get_projection(data_id)
        if source is None or not source.is_initialized:
            raise ConfigurationError("FilterSinogramId",
                                     f"No initialized projection dataset with id {data_id}.")
        self.filter_width = source.detector_count
        self.filter_buffer.assign(source.data, source.detector_count * source.angle_count)

    # ------------------------------------------------------------------
    # Programmatic initialization
    # ------------------------------------------------------------------

    def initialize_direct(self, projection: Optional[ProjectionData2D],
                          reconstruction: Optional[VolumeData2D],
                          filter_kind: Union[FilterKind, str],
                          filter: Optional[np.ndarray] = None,
                          filter_width: int = 0,
                          gpu_index: int = DEFAULT_GPU_INDEX,
                          filter_parameter: float = FILTER_PARAMETER_UNSET,
                          *, filter_d: float = DEFAULT_FILTER_D) -> bool:
        """
        Configure from explicit arguments; the geometry is never inspected,
        so short-scan weighting stays off.

        For SINOGRAM/RSINOGRAM one coefficient per projection angle is copied
        and ``filter_width`` plays no part in sizing; for the other custom
        kinds ``filter_width`` coefficients are copied.

        Returns:
            bool: True once the configuration passed ``check()``.
        """
        self.clear()
        self._closed = False
        self.state = AlgorithmState.CONFIGURING

        self.projection = projection
        self.reconstruction = reconstruction
        self.gpu_index = int(gpu_index)
        self.filter_kind = as_filter_kind(filter_kind)
        self.filter_width = int(filter_width)
        self.filter_parameter = float(filter_parameter)
        self.filter_d = float(filter_d)
        self.short_scan = False

        if filter is not None:
            if not self.filter_kind.is_custom:
                logger.warning("%s: filter coefficients ignored for analytic filter '%s'",
                               self.type, self.filter_kind.value)
            else:
                if self.filter_kind.is_angle_indexed:
                    count = projection.angle_count if projection is not None else 0
                else:
                    count = self.filter_width
                try:
                    self.filter_buffer.assign(filter, count)
                except ValueError as exc:
                    return self._reject(ConfigurationError("Filter", str(exc)))

        self.engine = self._create_engine()
        return self.check()

    # ------------------------------------------------------------------
    # Validation and engine hand-off
    # ------------------------------------------------------------------

    def _validate_specific(self) -> None:
        if self.filter_kind.is_custom:
            self._require(not self.filter_buffer.is_empty, "Filter", "Invalid filter pointer.")

    def _configure_engine(self, engine: FBPEngine) -> None:
        ok = engine.set_filter(self.filter_kind, self.filter_buffer.data, self.filter_width,
                               self.filter_d, self.filter_parameter)
        if not ok:
            logger.error("%s: Failed to set filter", self.type)
            raise EngineError(f"{self.type}: failed to set filter '{self.filter_kind.value}'")

        # Non-fatal: the run continues without short-scan weighting
        if not engine.set_short_scan(self.short_scan):
            logger.error("%s: Failed to set short-scan mode", self.type)
