"""Noise estimates used by the prewhitening stopping rule."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from tess_prewhiten.domain.components import Periodogram


def detect_gaps(
    time: NDArray[np.float64],
    gap_threshold: float,
) -> NDArray[np.intp]:
    """Find indices where gaps > threshold split the series.

    Args:
        time: Time array, in days
        gap_threshold: Minimum gap size to split on, in days

    Returns:
        Array of indices where gaps occur (i.e., gap is between index i and i+1)
    """
    if len(time) < 2:
        return np.array([], dtype=np.intp)
    return np.where(np.diff(time) > gap_threshold)[0]


def segment_bounds(time: NDArray[np.float64], gap_threshold: float) -> list[tuple[int, int]]:
    """Half-open ``[start, end)`` index ranges of the contiguous segments of ``time``."""
    edges = [0, *(int(i) + 1 for i in detect_gaps(time, gap_threshold)), len(time)]
    return [(edges[k], edges[k + 1]) for k in range(len(edges) - 1) if edges[k + 1] > edges[k]]


def middle_line(
    time: NDArray[np.float64],
    values: NDArray[np.float64],
    bin_size: int,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Anchor points of the local trend of one contiguous segment.

    Consecutive runs of ``bin_size`` samples are averaged (the last partial bin
    is kept); the segment's first and last samples bracket the bin means.

    Returns:
        Tuple of (anchor_times, anchor_values)
    """
    if bin_size < 1:
        raise ValueError(f"bin_size must be >= 1, got {bin_size}")
    n = len(time)
    if n == 0:
        raise ValueError("cannot bin an empty segment")
    starts = np.arange(0, n, bin_size)
    counts = np.minimum(bin_size, n - starts)
    bin_x = np.add.reduceat(time, starts) / counts
    bin_y = np.add.reduceat(values, starts) / counts
    anchor_x = np.concatenate([[time[0]], bin_x, [time[-1]]])
    anchor_y = np.concatenate([[values[0]], bin_y, [values[-1]]])
    return anchor_x, anchor_y


def binned_noise(
    time: NDArray[np.float64],
    residuals: NDArray[np.float64],
    bin_size: int,
    gap_threshold: float,
) -> NDArray[np.float64]:
    """Residuals minus their piecewise-linear local trend.

    The trend is interpolated between bin centers within each gap-free segment,
    so no bin ever straddles an observing gap.
    """
    noise = np.empty_like(residuals, dtype=np.float64)
    for start, end in segment_bounds(time, gap_threshold):
        seg_t = time[start:end]
        seg_y = residuals[start:end]
        anchor_x, anchor_y = middle_line(seg_t, seg_y, bin_size)
        noise[start:end] = seg_y - np.interp(seg_t, anchor_x, anchor_y)
    return noise


def noise_power(noise: NDArray[np.float64]) -> float:
    """Mean squared noise; NaN samples are ignored."""
    finite = noise[np.isfinite(noise)]
    if len(finite) == 0:
        return 0.0
    return float(np.mean(finite**2))


def spectrum_noise(
    periodogram: Periodogram,
    statistic: Literal["std", "median"] = "std",
) -> float:
    """Noise level of an amplitude spectrum: its standard deviation or median."""
    amplitudes = periodogram.amplitudes
    if statistic == "std":
        return float(np.std(amplitudes))
    if statistic == "median":
        return float(np.median(amplitudes))
    raise ValueError(f"unknown spectrum noise statistic: {statistic!r}")
