"""Public API for tess-prewhiten.

Main entry points:
- run_prewhiten: extract sinusoidal components until the residual is noise
- scan_periodogram: one parallel Lomb-Scargle scan

Types:
- PrewhitenConfig: validated, frozen options with ``fast``/``full`` presets
- TimeSeries: read-only (time, flux) container
- PrewhitenResult: ordered components, stop reason, retained spectra
- FrequencyTableRow: flat row of the result table
"""

from __future__ import annotations

from tess_prewhiten.api.prewhiten import resolve_config, run_prewhiten, scan_periodogram
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

__all__ = [
    "run_prewhiten",
    "scan_periodogram",
    "resolve_config",
    "PrewhitenConfig",
    "TimeSeries",
    "Periodogram",
    "SineComponent",
    "PrewhitenResult",
    "FrequencyTableRow",
    "FitMode",
    "StopReason",
]
