"""
Shared lifecycle for 2-D reconstruction algorithms.

State machine:

    UNCONFIGURED -> CONFIGURING -> VALIDATED -> ENGINE_BOUND -> READY
          ^                                      (first run)
          +-- CLEARING <-- any re-initialization

Subclasses provide the algorithm specific configuration
(``_initialize_specific``), extra validation (``_validate_specific``) and
the engine hand-off (``_configure_engine``).
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from config import (
    DEFAULT_DETECTOR_SUPERSAMPLING,
    DEFAULT_GPU_INDEX,
    DEFAULT_PIXEL_SUPERSAMPLING,
)
from core.base import ProjectionData2D, VolumeData2D
from core.config_node import ConfigAudit, ConfigNode
from core.errors import ConfigurationError, EngineError
from data.manager import DataManager2D, get_data_manager
from reconstruction.engine import FBPEngine

logger = logging.getLogger(__name__)


class AlgorithmState(Enum):
    """Lifecycle state of a reconstruction algorithm instance."""
    UNCONFIGURED = "unconfigured"
    CLEARING = "clearing"
    CONFIGURING = "configuring"
    VALIDATED = "validated"         # check() passed, engine not yet configured
    ENGINE_BOUND = "engine-bound"   # engine configured on first run
    READY = "ready"                 # at least one run completed


class ReconstructionAlgorithm2D(ABC):
    """
    Base class for algorithms that reconstruct one sinogram into one slice.

    Attributes:
        projection: Input sinogram (not owned).
        reconstruction: Output slice written by ``run`` (not owned).
        engine: Engine handle owned by this instance, created at
            initialization and configured lazily on the first run.
        last_error: The most recent configuration error, if any.
    """

    type = "RECONSTRUCTION_2D"

    def __init__(self, engine_factory: Optional[Callable[[], FBPEngine]] = None,
                 data_manager: Optional[DataManager2D] = None) -> None:
        self._engine_factory = engine_factory
        self._data_manager = data_manager
        self.engine: Optional[FBPEngine] = None
        self._closed = False
        self._reset()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        """Restore every scalar to its default and drop dataset references."""
        self.projection: Optional[ProjectionData2D] = None
        self.reconstruction: Optional[VolumeData2D] = None
        self.gpu_index = DEFAULT_GPU_INDEX
        self.pixel_super_sampling = DEFAULT_PIXEL_SUPERSAMPLING
        self.detector_super_sampling = DEFAULT_DETECTOR_SUPERSAMPLING
        self.is_initialized = False
        self.engine_bound = False
        self.last_error: Optional[ConfigurationError] = None
        self.state = AlgorithmState.UNCONFIGURED

    @property
    def data_manager(self) -> DataManager2D:
        return self._data_manager if self._data_manager is not None else get_data_manager()

    def _release_engine(self) -> None:
        engine, self.engine = self.engine, None
        if engine is not None:
            engine.release()

    def clear(self) -> None:
        """Release the engine handle and return to UNCONFIGURED."""
        self.state = AlgorithmState.CLEARING
        self._release_engine()
        self._reset()

    @abstractmethod
    def _default_engine_factory(self) -> FBPEngine:
        """Build the engine used when no factory was injected."""

    def _create_engine(self) -> FBPEngine:
        if self._engine_factory is not None:
            return self._engine_factory()
        return self._default_engine_factory()

    # ------------------------------------------------------------------
    # Declarative initialization
    # ------------------------------------------------------------------

    def initialize(self, cfg: ConfigNode) -> bool:
        """
        Configure from a configuration node tree.

        Returns:
            bool: True once the configuration passed ``check()``.
        """
        if isinstance(cfg, dict):
            cfg = ConfigNode(cfg)
        self.clear()
        self._closed = False
        self.state = AlgorithmState.CONFIGURING
        try:
            with ConfigAudit(self.type, cfg) as audit:
                self._initialize_common(cfg, audit)
                self._initialize_specific(cfg, audit)
        except ConfigurationError as err:
            return self._reject(err)

        self.engine = self._create_engine()
        return self.check()

    def _initialize_common(self, cfg: ConfigNode, audit: ConfigAudit) -> None:
        """Datasets, device index and supersampling shared by all 2-D algorithms."""
        proj_id = cfg.get_int("ProjectionDataId")
        audit.mark_node_parsed("ProjectionDataId")
        if proj_id is None:
            raise ConfigurationError("ProjectionDataId", "No ProjectionDataId specified.")
        self.projection = self.data_manager.get_projection(proj_id)
        if self.projection is None:
            raise ConfigurationError("ProjectionDataId", f"No projection dataset with id {proj_id}.")

        rec_id = cfg.get_int("ReconstructionDataId")
        audit.mark_node_parsed("ReconstructionDataId")
        if rec_id is None:
            raise ConfigurationError("ReconstructionDataId", "No ReconstructionDataId specified.")
        self.reconstruction = self.data_manager.get_volume(rec_id)
        if self.reconstruction is None:
            raise ConfigurationError("ReconstructionDataId", f"No volume dataset with id {rec_id}.")

        # Both spellings are found in the wild
        if cfg.has_option("GPUIndex"):
            self.gpu_index = cfg.get_option_int("GPUIndex", DEFAULT_GPU_INDEX)
        else:
            self.gpu_index = cfg.get_option_int("GPUindex", DEFAULT_GPU_INDEX)
        audit.mark_option_parsed("GPUindex")
        audit.mark_option_parsed("GPUIndex")

        self.pixel_super_sampling = cfg.get_option_int("PixelSuperSampling", DEFAULT_PIXEL_SUPERSAMPLING)
        audit.mark_option_parsed("PixelSuperSampling")
        self.detector_super_sampling = cfg.get_option_int("DetectorSuperSampling", DEFAULT_DETECTOR_SUPERSAMPLING)
        audit.mark_option_parsed("DetectorSuperSampling")

    @abstractmethod
    def _initialize_specific(self, cfg: ConfigNode, audit: ConfigAudit) -> None:
        """Read the fields owned by the concrete algorithm."""

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _reject(self, err: ConfigurationError) -> bool:
        logger.error("%s: %s", self.type, err.message)
        self.last_error = err
        self.is_initialized = False
        self.engine_bound = False
        self.state = AlgorithmState.UNCONFIGURED
        return False

    @staticmethod
    def _require(condition: bool, field: str, message: str) -> None:
        if not condition:
            raise ConfigurationError(field, message)

    def _validate_specific(self) -> None:
        """Hook for algorithm specific preconditions."""

    def _validate(self) -> None:
        self._require(self.projection is not None, "ProjectionDataId", "Invalid Projection Data Object.")
        self._require(self.reconstruction is not None, "ReconstructionDataId", "Invalid Reconstruction Data Object.")
        self._validate_specific()
        self._require(self.projection.is_initialized, "ProjectionDataId",
                      "Projection Data Object Not Initialized.")
        self._require(self.reconstruction.is_initialized, "ReconstructionDataId",
                      "Reconstruction Data Object Not Initialized.")
        self._require(self.gpu_index >= -1, "GPUindex", "GPUIndex must be a non-negative integer or -1.")
        self._require(self.pixel_super_sampling >= 0, "PixelSuperSampling",
                      "PixelSuperSampling must be a non-negative integer.")
        self._require(self.detector_super_sampling >= 0, "DetectorSuperSampling",
                      "DetectorSuperSampling must be a non-negative integer.")

    def check(self) -> bool:
        """
        Validate the current configuration.

        Each violated precondition is reported as a ``ConfigurationError``
        naming the offending field (logged and kept in ``last_error``).
        """
        try:
            self._validate()
        except ConfigurationError as err:
            return self._reject(err)
        self.last_error = None
        self.is_initialized = True
        self.state = AlgorithmState.VALIDATED
        return True

    # ------------------------------------------------------------------
    # Engine binding and execution
    # ------------------------------------------------------------------

    @abstractmethod
    def _configure_engine(self, engine: FBPEngine) -> None:
        """Push algorithm specific settings into an initialized engine."""

    def _bind_engine(self) -> None:
        engine = self.engine
        try:
            if engine is None:
                raise EngineError(f"{self.type}: no engine handle")
            if not engine.set_gpu_index(self.gpu_index):
                raise EngineError(f"{self.type}: failed to select GPU {self.gpu_index}")
            if not engine.set_geometry(self.reconstruction.geometry, self.projection.geometry):
                raise EngineError(f"{self.type}: engine rejected the geometry")
            if not engine.set_super_sampling(self.detector_super_sampling, self.pixel_super_sampling):
                raise EngineError(f"{self.type}: engine rejected the supersampling factors")
            if not engine.init():
                raise EngineError(f"{self.type}: engine initialization failed")
            self._configure_engine(engine)
        except EngineError:
            self.is_initialized = False
            self.engine_bound = False
            self.state = AlgorithmState.UNCONFIGURED
            raise
        self.engine_bound = True
        self.state = AlgorithmState.ENGINE_BOUND

    def run(self, iterations: int = 0, callback: Optional[Callable[[int, str], None]] = None) -> None:
        """
        Reconstruct ``projection`` into ``reconstruction``.

        The engine is configured on the first call only.

        Raises:
            ConfigurationError: If the instance has not passed ``check()``.
            EngineError: If the engine rejects a mandatory step.
        """
        if not self.is_initialized:
            raise ConfigurationError(None, f"{self.type}: algorithm is not initialized")

        if callback:
            callback(0, "Preparing reconstruction engine...")
        if not self.engine_bound:
            self._bind_engine()

        if callback:
            callback(20, "Uploading sinogram...")
        if not self.engine.set_sinogram(self.projection.data):
            raise EngineError(f"{self.type}: failed to upload sinogram")

        if callback:
            callback(40, "Filtering and back-projecting...")
        if not self.engine.iterate(iterations):
            raise EngineError(f"{self.type}: reconstruction failed")

        result = self.engine.get_reconstruction()
        if result is None:
            raise EngineError(f"{self.type}: engine returned no reconstruction")
        self.reconstruction.set_data(result)
        self.state = AlgorithmState.READY

        if callback:
            callback(100, "Reconstruction complete")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release owned resources; further calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def __del__(self) -> None:
        try:
            self.close()
        except Exception as exc:
            logger.debug("%s cleanup during destruction failed: %s", type(self).__name__, exc)
