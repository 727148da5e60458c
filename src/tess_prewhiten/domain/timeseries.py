"""Time-series domain model.

This module provides:
- TimeSeries: immutable (time, flux) photometry with read-only numpy buffers
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from tess_prewhiten.errors import InvalidTimeSeriesError

if TYPE_CHECKING:
    from numpy.typing import NDArray


def _freeze(arr: NDArray[np.float64]) -> NDArray[np.float64]:
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class TimeSeries:
    """Photometric time series shared read-only by every periodogram worker.

    Attributes:
        time: Sample timestamps, in days (float64, non-decreasing)
        flux: Flux values (float64), same length as ``time``
        mean_flux: Mean of ``flux`` at construction
    """

    time: NDArray[np.float64]
    flux: NDArray[np.float64]
    mean_flux: float = field(init=False)

    def __post_init__(self) -> None:
        """Validate shapes and values, then make both buffers read-only."""
        arrays: dict[str, Any] = {"time": self.time, "flux": self.flux}
        for name, arr in arrays.items():
            if not isinstance(arr, np.ndarray):
                raise InvalidTimeSeriesError(
                    f"{name} must be a numpy array, got {type(arr).__name__}"
                )
            if arr.dtype != np.float64:
                raise InvalidTimeSeriesError(f"{name} must be float64, got {arr.dtype}")
            if arr.ndim != 1:
                raise InvalidTimeSeriesError(f"{name} must be 1-D, got shape {arr.shape}")

        n = len(self.time)
        if len(self.flux) != n:
            raise InvalidTimeSeriesError(f"flux length {len(self.flux)} != time length {n}")
        if n < 2:
            raise InvalidTimeSeriesError(f"time series needs at least 2 samples, got {n}")
        if not (np.all(np.isfinite(self.time)) and np.all(np.isfinite(self.flux))):
            raise InvalidTimeSeriesError("time series contains NaN or infinite values")
        if np.any(np.diff(self.time) < 0):
            raise InvalidTimeSeriesError("time must be sorted in non-decreasing order")

        _freeze(self.time)
        _freeze(self.flux)
        object.__setattr__(self, "mean_flux", float(np.mean(self.flux)))

    @classmethod
    def from_arrays(
        cls,
        time: Sequence[float] | NDArray[Any],
        flux: Sequence[float] | NDArray[Any],
        *,
        sort: bool = True,
    ) -> TimeSeries:
        """Build a series from arbitrary numeric sequences.

        Copies the inputs to float64 so the caller's buffers are never frozen.
        """
        t = np.array(time, dtype=np.float64, copy=True)
        y = np.array(flux, dtype=np.float64, copy=True)
        if sort and t.ndim == 1 and t.shape == y.shape:
            order = np.argsort(t, kind="stable")
            t = t[order]
            y = y[order]
        return cls(time=t, flux=y)

    @property
    def n(self) -> int:
        """Number of samples."""
        return len(self.time)

    @property
    def time_span(self) -> float:
        """Last minus first timestamp, in days."""
        return float(self.time[-1] - self.time[0])

    @property
    def data_range(self) -> float:
        """Peak-to-peak flux range."""
        return float(np.max(self.flux) - np.min(self.flux))

    def with_flux(self, flux: NDArray[np.float64]) -> TimeSeries:
        """Return a new series on the same (read-only) time buffer."""
        return TimeSeries(time=self.time, flux=np.array(flux, dtype=np.float64, copy=True))

    def centered(self) -> TimeSeries:
        """Return the mean-subtracted series."""
        return self.with_flux(self.flux - self.mean_flux)
