"""Lomb-Scargle periodogram evaluation.

Implements the classical time-shift form of the Lomb-Scargle statistic for
unevenly sampled data. For angular frequency w = 2*pi*f:

    tau      = atan2(sum sin(2wt), sum cos(2wt)) / (2w)
    cos_part = (sum y cos w(t - tau))^2 / sum cos^2 w(t - tau)
    sin_part = (sum y sin w(t - tau))^2 / sum sin^2 w(t - tau)
    power    = (cos_part + sin_part) / 2

Flux must already be mean-subtracted; nothing here normalizes the input.

Degenerate sampling (a basis whose squared sum vanishes, or f <= 0) contributes
zero power instead of a non-finite value.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

# Upper bound on frequency x sample elements materialized per chunk.
MAX_CHUNK_ELEMENTS = 1 << 20

# Relative floor for the cos^2 / sin^2 denominators (they sum to n).
_DENOMINATOR_RTOL = 1e-10


def frequency_grid(
    frequency_min: float,
    frequency_max: float,
    samples: int,
    start: int = 0,
    end: int | None = None,
) -> NDArray[np.float64]:
    """Return grid frequencies ``f_i = f_min + (f_max - f_min) * i / samples`` for i in [start, end).

    The full grid is half-open at ``frequency_max``. Sub-ranges of the grid are
    bit-identical to the corresponding slice of the full grid.
    """
    if samples < 1:
        raise ValueError(f"samples must be >= 1, got {samples}")
    stop = samples if end is None else end
    if not 0 <= start <= stop <= samples:
        raise ValueError(f"invalid grid slice [{start}, {stop}) for {samples} samples")
    indices = np.arange(start, stop, dtype=np.float64)
    return frequency_min + (frequency_max - frequency_min) * indices / samples


def _powers_chunk(
    frequencies: NDArray[np.float64],
    time: NDArray[np.float64],
    flux: NDArray[np.float64],
) -> NDArray[np.float64]:
    n = len(time)
    power = np.zeros(len(frequencies), dtype=np.float64)
    valid = frequencies > 0
    if not np.any(valid):
        return power

    f = frequencies[valid][:, None]
    double_arg = 4.0 * np.pi * f * time[None, :]
    tau = np.arctan2(np.sin(double_arg).sum(axis=1), np.cos(double_arg).sum(axis=1)) / (
        4.0 * np.pi * f[:, 0]
    )

    arg = 2.0 * np.pi * f * (time[None, :] - tau[:, None])
    cos_arg = np.cos(arg)
    sin_arg = np.sin(arg)

    cos_num = (cos_arg @ flux) ** 2
    sin_num = (sin_arg @ flux) ** 2
    cos_den = np.einsum("ij,ij->i", cos_arg, cos_arg)
    sin_den = np.einsum("ij,ij->i", sin_arg, sin_arg)

    floor = _DENOMINATOR_RTOL * n
    with np.errstate(divide="ignore", invalid="ignore"):
        cos_part = np.where(cos_den > floor, cos_num / cos_den, 0.0)
        sin_part = np.where(sin_den > floor, sin_num / sin_den, 0.0)

    chunk_power = (cos_part + sin_part) / 2.0
    power[valid] = np.nan_to_num(chunk_power, nan=0.0, posinf=0.0, neginf=0.0)
    return power


def lomb_scargle_powers(
    frequencies: NDArray[np.float64],
    time: NDArray[np.float64],
    flux: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Compute Lomb-Scargle power at each frequency.

    Args:
        frequencies: Cyclic frequencies, in 1/day
        time: Sample times, in days
        flux: Mean-subtracted flux

    Returns:
        Non-negative power at each frequency (float64)
    """
    freqs = np.asarray(frequencies, dtype=np.float64)
    t = np.asarray(time, dtype=np.float64)
    y = np.asarray(flux, dtype=np.float64)
    if t.shape != y.shape:
        raise ValueError(f"time shape {t.shape} != flux shape {y.shape}")

    out = np.zeros(len(freqs), dtype=np.float64)
    if len(freqs) == 0 or len(t) == 0:
        return out

    rows = max(1, MAX_CHUNK_ELEMENTS // len(t))
    for lo in range(0, len(freqs), rows):
        hi = min(lo + rows, len(freqs))
        out[lo:hi] = _powers_chunk(freqs[lo:hi], t, y)
    return np.maximum(out, 0.0)


def lomb_scargle_power(
    frequency: float,
    time: NDArray[np.float64],
    flux: NDArray[np.float64],
) -> float:
    """Lomb-Scargle power at a single frequency (>= 0, never NaN)."""
    if not math.isfinite(frequency) or frequency <= 0:
        return 0.0
    return float(lomb_scargle_powers(np.array([frequency], dtype=np.float64), time, flux)[0])


def amplitude_spectrum(powers: NDArray[np.float64], n_samples: int) -> NDArray[np.float64]:
    """Convert Lomb-Scargle power to semi-amplitude, ``2 * sqrt(power / n)``."""
    if n_samples < 1:
        raise ValueError(f"n_samples must be >= 1, got {n_samples}")
    return 2.0 * np.sqrt(np.asarray(powers, dtype=np.float64) / n_samples)
