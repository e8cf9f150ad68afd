"""
Frequency responses for the analytic FBP filter kinds.

Responses are sampled on the ``rfft`` bins of a zero-padded projection row.
``w`` below is the bin frequency relative to Nyquist divided by the cutoff
scale D, so every window is evaluated on [0, 1] and is zero beyond.
"""

import numpy as np
import scipy.fft as sp_fft

from config import FILTER_PARAMETER_DEFAULTS, FILTER_PARAMETER_UNSET
from reconstruction.filters import FilterKind

# Cosine-sum coefficients a0, a1, a2, ... for w(x) = sum_k (-1)^k a_k cos(2 pi k x)
_COSINE_SUMS = {
    FilterKind.BLACKMAN: (0.42, 0.5, 0.08),
    FilterKind.NUTTALL: (0.355768, 0.487396, 0.144232, 0.012604),
    FilterKind.BLACKMAN_HARRIS: (0.35875, 0.48829, 0.14128, 0.01168),
    FilterKind.BLACKMAN_NUTTALL: (0.3635819, 0.4891775, 0.1365995, 0.0106411),
    FilterKind.FLAT_TOP: (1.0, 1.93, 1.29, 0.388, 0.028),
}


def resolve_parameter(kind: FilterKind, parameter: float) -> float:
    """Replace the unset sentinel by the kind's default parameter."""
    if parameter == FILTER_PARAMETER_UNSET:
        return float(FILTER_PARAMETER_DEFAULTS.get(kind.value, 0.0))
    return float(parameter)


def window(kind: FilterKind, w: np.ndarray, parameter: float = FILTER_PARAMETER_UNSET) -> np.ndarray:
    """
    Evaluate the window of an analytic kind on normalized frequencies ``w``.
    """
    w = np.abs(np.asarray(w, dtype=np.float64))
    inside = w <= 1.0
    wc = np.clip(w, 0.0, 1.0)
    p = resolve_parameter(kind, parameter)

    if kind in (FilterKind.RAM_LAK, FilterKind.NONE):
        values = np.ones_like(wc)
    elif kind == FilterKind.SHEPP_LOGAN:
        values = np.sinc(wc / 2.0)
    elif kind == FilterKind.COSINE:
        values = np.cos(np.pi * wc / 2.0)
    elif kind == FilterKind.HAMMING:
        values = 0.54 + 0.46 * np.cos(np.pi * wc)
    elif kind == FilterKind.HANN:
        values = 0.5 + 0.5 * np.cos(np.pi * wc)
    elif kind == FilterKind.TUKEY:
        alpha = min(max(p, 0.0), 1.0)
        values = np.ones_like(wc)
        if alpha > 0.0:
            taper = wc > 1.0 - alpha
            values[taper] = 0.5 * (1.0 + np.cos(np.pi * (wc[taper] - 1.0 + alpha) / alpha))
    elif kind == FilterKind.LANCZOS:
        values = np.sinc(wc)
    elif kind == FilterKind.TRIANGULAR:
        values = 1.0 - wc
    elif kind == FilterKind.GAUSSIAN:
        sigma = p if p > 0.0 else FILTER_PARAMETER_DEFAULTS["gaussian"]
        values = np.exp(-0.5 * (wc / sigma) ** 2)
    elif kind == FilterKind.BARTLETT_HANN:
        x = 0.5 + wc / 2.0
        values = 0.62 - 0.48 * np.abs(x - 0.5) - 0.38 * np.cos(2.0 * np.pi * x)
    elif kind in _COSINE_SUMS:
        coeffs = _COSINE_SUMS[kind]
        x = 0.5 + wc / 2.0
        values = sum(((-1) ** k) * a * np.cos(2.0 * np.pi * k * x) for k, a in enumerate(coeffs))
        values = values / sum(coeffs)
    elif kind == FilterKind.KAISER:
        alpha = p
        values = np.i0(np.pi * alpha * np.sqrt(1.0 - wc ** 2)) / np.i0(np.pi * alpha)
    elif kind == FilterKind.PARZEN:
        values = np.where(wc <= 0.5, 1.0 - 6.0 * wc ** 2 * (1.0 - wc), 2.0 * (1.0 - wc) ** 3)
    else:
        raise ValueError(f"{kind.value!r} is not an analytic filter kind")

    return np.where(inside, values, 0.0)


def ramp_response(padded_length: int, spacing: float) -> np.ndarray:
    """
    Ram-Lak response on the rfft bins, built from the band-limited spatial
    kernel so the DC term is exact for the discrete convolution.
    """
    m = int(padded_length)
    k = sp_fft.fftfreq(m, d=1.0 / m).astype(np.int64)  # 0, 1, ..., -2, -1
    h = np.zeros(m, dtype=np.float64)
    h[0] = 0.25
    odd = (k % 2) != 0
    h[odd] = -1.0 / (np.pi * k[odd]) ** 2
    return np.real(sp_fft.rfft(h)) / spacing


def analytic_response(kind: FilterKind, padded_length: int, spacing: float,
                      d: float = 1.0, parameter: float = FILTER_PARAMETER_UNSET) -> np.ndarray:
    """Ramp times window for one padded row length; all ones for NONE."""
    n_bins = padded_length // 2 + 1
    if kind == FilterKind.NONE:
        return np.ones(n_bins)
    fn = np.arange(n_bins) / (padded_length / 2.0)
    scale = d if d > 0 else 1.0
    return ramp_response(padded_length, spacing) * window(kind, fn / scale, parameter)
