"""
Configuration constants for the FBP reconstruction toolkit.
All defaults and configurable parameters are centralized here.
"""

# ==========================================
# Algorithm Registration
# ==========================================
FBP_ALGORITHM_TYPE = "FBP_CUDA"
FBP_ALGORITHM_ALIASES = ("FBP",)

# ==========================================
# Filter Defaults
# ==========================================
DEFAULT_FILTER_TYPE = "ram-lak"
FILTER_PARAMETER_UNSET = -1.0     # "unset" sentinel, engine substitutes a per-kind default
DEFAULT_FILTER_D = 1.0            # Frequency cutoff scale (1.0 = Nyquist)

# Per-kind defaults used when FilterParameter is left unset
FILTER_PARAMETER_DEFAULTS = {
    "tukey": 0.5,       # taper fraction
    "gaussian": 0.3,    # sigma relative to Nyquist
    "kaiser": 3.0,      # alpha
}

# ==========================================
# Base Lifecycle Defaults
# ==========================================
DEFAULT_GPU_INDEX = -1            # -1 = let the backend pick its current device
DEFAULT_PIXEL_SUPERSAMPLING = 1
DEFAULT_DETECTOR_SUPERSAMPLING = 1
DEFAULT_SHORT_SCAN = False

# ==========================================
# GPU Acceleration Settings
# ==========================================
GPU_ENABLED = True    # Set False to force the NumPy engine path

# ==========================================
# Logging
# ==========================================
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# ==========================================
# CLI / Export
# ==========================================
CLI_OUTPUT_DIR = "fbp_output"
EXPORT_FORMATS = ("npy", "vti")
