"""Parallel periodogram scan.

``PeriodogramScanner`` splits the frequency grid into one contiguous index
range per worker, dispatches all ranges at once, waits for every worker
(full barrier) and stitches the power spectrum back together in grid order.
The chunked result equals a single-worker scan over the same grid.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from tess_prewhiten.compute.workers import ScanRequest, WorkerPool, read_only_view
from tess_prewhiten.domain.components import Periodogram
from tess_prewhiten.errors import ConfigurationError, WorkerProtocolError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def partition(samples: int, workers: int) -> list[tuple[int, int]]:
    """Split ``[0, samples)`` into ``workers`` contiguous ranges whose sizes differ by at most one.

    Example:
        >>> partition(10, 3)
        [(0, 3), (3, 6), (6, 10)]
    """
    if samples < 0:
        raise ValueError(f"samples must be >= 0, got {samples}")
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    return [(w * samples // workers, (w + 1) * samples // workers) for w in range(workers)]


class PeriodogramScanner:
    """Scan the configured frequency range (or an override) on a ``WorkerPool``."""

    def __init__(self, pool: WorkerPool) -> None:
        self.pool = pool
        self._chunks = partition(pool.samples, pool.size)
        self._default_frequencies: NDArray[np.float64] | None = None
        self._iteration = 0

    @property
    def default_range(self) -> tuple[float, float]:
        return self.pool.frequency_range

    @property
    def scans(self) -> int:
        """Number of scans issued so far."""
        return self._iteration

    def scan(
        self,
        flux: NDArray[np.float64],
        frequency_range: tuple[float, float] | None = None,
    ) -> Periodogram:
        """Compute the Lomb-Scargle periodogram of ``flux`` on the pool's time buffer.

        Args:
            flux: Mean-subtracted flux (or residuals), same length as the pool's time buffer
            frequency_range: Optional ``(f_min, f_max)`` override for this call only

        Returns:
            Periodogram over the grid, with the first-occurrence peak
        """
        if len(flux) != self.pool.n_points:
            raise ConfigurationError(
                f"flux length {len(flux)} != time buffer length {self.pool.n_points}"
            )
        override = None
        if frequency_range is not None:
            f_min, f_max = float(frequency_range[0]), float(frequency_range[1])
            if not 0 < f_min < f_max:
                raise ConfigurationError(f"invalid frequency range override ({f_min}, {f_max})")
            if (f_min, f_max) != self.default_range:
                override = (f_min, f_max)

        need_frequencies = override is not None or self._default_frequencies is None
        snapshot = read_only_view(np.array(flux, dtype=np.float64, copy=True))
        iteration = self._iteration
        self._iteration += 1

        requests = [
            ScanRequest(
                iteration=iteration,
                start_index=start,
                end_index=end,
                flux=snapshot,
                include_frequencies=need_frequencies,
                frequency_range=override,
            )
            for start, end in self._chunks
        ]
        logger.debug(
            f"Scan {iteration}: dispatching {len(requests)} chunks of "
            f"{self.pool.samples} frequencies"
        )
        responses = self.pool.dispatch(requests)

        powers = np.concatenate([r.powers for r in responses])
        if need_frequencies:
            chunks = []
            for r in responses:
                if r.frequencies is None:
                    raise WorkerProtocolError(
                        "frequencies were requested but not returned", worker_id=r.worker_id
                    )
                chunks.append(r.frequencies)
            frequencies = np.concatenate(chunks)
            if override is None:
                frequencies.flags.writeable = False
                self._default_frequencies = frequencies
        else:
            frequencies = self._default_frequencies

        return Periodogram.from_powers(frequencies, powers, n_samples=self.pool.n_points)
