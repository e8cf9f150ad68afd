"""
Filter catalog and filter coefficient ownership for FBP.

Filter kinds fall into two families:
- analytic kinds, a ramp filter shaped by a closed-form window
- custom kinds, whose coefficients come from the caller or a dataset
"""

import logging
from enum import Enum
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class FilterKind(Enum):
    """FBP filter kinds; values are the canonical catalog names."""
    RAM_LAK = "ram-lak"
    SHEPP_LOGAN = "shepp-logan"
    COSINE = "cosine"
    HAMMING = "hamming"
    HANN = "hann"
    NONE = "none"
    TUKEY = "tukey"
    LANCZOS = "lanczos"
    TRIANGULAR = "triangular"
    GAUSSIAN = "gaussian"
    BARTLETT_HANN = "bartlett-hann"
    BLACKMAN = "blackman"
    NUTTALL = "nuttall"
    BLACKMAN_HARRIS = "blackman-harris"
    BLACKMAN_NUTTALL = "blackman-nuttall"
    FLAT_TOP = "flat-top"
    KAISER = "kaiser"
    PARZEN = "parzen"
    PROJECTION = "projection"       # one kernel for every angle
    SINOGRAM = "sinogram"           # coefficients indexed per angle
    RPROJECTION = "rprojection"     # real-space variant of PROJECTION
    RSINOGRAM = "rsinogram"         # real-space variant of SINOGRAM

    @property
    def is_custom(self) -> bool:
        """True when the kind needs an external coefficient buffer."""
        return self in _CUSTOM_KINDS

    @property
    def is_angle_indexed(self) -> bool:
        """True when coefficients vary per projection angle."""
        return self in (FilterKind.SINOGRAM, FilterKind.RSINOGRAM)

    @property
    def is_real_space(self) -> bool:
        return self in (FilterKind.RPROJECTION, FilterKind.RSINOGRAM)


_CUSTOM_KINDS = frozenset({
    FilterKind.PROJECTION,
    FilterKind.SINOGRAM,
    FilterKind.RPROJECTION,
    FilterKind.RSINOGRAM,
})

_CATALOG = {kind.value: kind for kind in FilterKind}
# Older configurations spell it this way
_CATALOG["barlett-hann"] = FilterKind.BARTLETT_HANN


def filter_names() -> List[str]:
    """Canonical catalog names in declaration order."""
    return [kind.value for kind in FilterKind]


def resolve_filter(name: str) -> FilterKind:
    """
    Look up a filter kind by name, ignoring case.

    Unknown names are logged and resolve to ``FilterKind.NONE``; whether an
    unfiltered reconstruction is acceptable is left to the caller.
    """
    kind = _CATALOG.get(str(name).strip().lower())
    if kind is None:
        logger.error('Failed to convert "%s" into a filter.', name)
        return FilterKind.NONE
    return kind


def as_filter_kind(value) -> FilterKind:
    """Accept a FilterKind or a catalog name."""
    if isinstance(value, FilterKind):
        return value
    return resolve_filter(value)


class FilterBuffer:
    """
    Sole owner of a float32 filter coefficient array.

    ``assign`` always copies, so the buffer never aliases caller memory, and
    drops the previous array before taking the new one.
    """

    def __init__(self) -> None:
        self._data: Optional[np.ndarray] = None

    @property
    def data(self) -> Optional[np.ndarray]:
        return self._data

    @property
    def is_empty(self) -> bool:
        return self._data is None or self._data.size == 0

    def __len__(self) -> int:
        return 0 if self._data is None else int(self._data.size)

    def assign(self, source, count: Optional[int] = None) -> np.ndarray:
        """
        Copy the first ``count`` elements of ``source`` (all when None).

        Raises:
            ValueError: If the source holds fewer than ``count`` elements.
        """
        self.release()
        flat = np.asarray(source, dtype=np.float32).ravel()
        if count is None:
            count = flat.size
        count = int(count)
        if count < 0 or flat.size < count:
            raise ValueError(f"Filter source holds {flat.size} element(s), {count} required")
        self._data = flat[:count].copy()
        return self._data

    def release(self) -> None:
        self._data = None
