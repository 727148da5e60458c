"""tess-prewhiten: Lomb-Scargle prewhitening of photometric time series.

Typical use::

    from tess_prewhiten import PrewhitenConfig, run_prewhiten

    result = run_prewhiten(time=t, flux=f, config=PrewhitenConfig.full(seed=7))
    for row in result.to_table():
        print(row.frequency, row.amplitude, row.signal_to_noise_ratio)
"""

from __future__ import annotations

__version__ = "0.1.0"

from tess_prewhiten.api.prewhiten import run_prewhiten, scan_periodogram
from tess_prewhiten.config import PrewhitenConfig
from tess_prewhiten.domain import (
    FitMode,
    FrequencyTableRow,
    Periodogram,
    PrewhitenResult,
    SineComponent,
    StopReason,
    TimeSeries,
)
from tess_prewhiten.errors import (
    ConfigurationError,
    DegenerateFitError,
    InvalidTimeSeriesError,
    PrewhitenError,
    WorkerProtocolError,
    WorkerTimeoutError,
)
from tess_prewhiten.io.frequency_table import format_frequency_table, write_frequency_table

__all__ = [
    "__version__",
    "run_prewhiten",
    "scan_periodogram",
    "PrewhitenConfig",
    "TimeSeries",
    "Periodogram",
    "SineComponent",
    "PrewhitenResult",
    "FrequencyTableRow",
    "FitMode",
    "StopReason",
    "PrewhitenError",
    "ConfigurationError",
    "InvalidTimeSeriesError",
    "DegenerateFitError",
    "WorkerProtocolError",
    "WorkerTimeoutError",
    "format_frequency_table",
    "write_frequency_table",
]
