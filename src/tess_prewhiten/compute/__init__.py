"""Compute operations for prewhitening.

This module provides numerical primitives for:
- Lomb-Scargle evaluation over frequency grids
- Parallel periodogram scans on a fixed worker pool
- Sinusoid refinement and uncertainty estimates
- The iterative prewhitening engine
"""

from __future__ import annotations

from tess_prewhiten.compute.lomb_scargle import (
    amplitude_spectrum,
    frequency_grid,
    lomb_scargle_power,
    lomb_scargle_powers,
)
from tess_prewhiten.compute.noise import binned_noise, detect_gaps, noise_power, spectrum_noise
from tess_prewhiten.compute.prewhiten import EngineState, PrewhitenEngine
from tess_prewhiten.compute.scanner import PeriodogramScanner, partition
from tess_prewhiten.compute.sine_fit import (
    FitUncertainties,
    RandomSource,
    SeededRandom,
    SineFit,
    SineFitRefiner,
    fit_uncertainties,
)
from tess_prewhiten.compute.workers import (
    PeriodogramWorker,
    ScanRequest,
    ScanResponse,
    WorkerPool,
    WorkerState,
)

__all__ = [
    # Lomb-Scargle
    "frequency_grid",
    "lomb_scargle_power",
    "lomb_scargle_powers",
    "amplitude_spectrum",
    # Workers
    "WorkerPool",
    "PeriodogramWorker",
    "WorkerState",
    "ScanRequest",
    "ScanResponse",
    "PeriodogramScanner",
    "partition",
    # Fitting
    "SineFitRefiner",
    "SineFit",
    "RandomSource",
    "SeededRandom",
    "FitUncertainties",
    "fit_uncertainties",
    # Noise
    "detect_gaps",
    "binned_noise",
    "noise_power",
    "spectrum_noise",
    # Engine
    "PrewhitenEngine",
    "EngineState",
]
