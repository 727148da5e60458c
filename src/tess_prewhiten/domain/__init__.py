"""Domain models for tess-prewhiten.

This package is domain-only: plain data containers with validation, no
compute or worker concepts.
"""

from tess_prewhiten.domain.components import (
    DegenerateIteration,
    ExtractedComponent,
    FitMode,
    FrequencyTableRow,
    Periodogram,
    PrewhitenResult,
    SineComponent,
    StopReason,
)
from tess_prewhiten.domain.timeseries import TimeSeries

__all__ = [
    "TimeSeries",
    "SineComponent",
    "Periodogram",
    "ExtractedComponent",
    "FrequencyTableRow",
    "PrewhitenResult",
    "DegenerateIteration",
    "FitMode",
    "StopReason",
]
