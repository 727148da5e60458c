"""Prewhitening API surface (host-facing).

This module provides a stable facade so host applications don't need to
import from internal ``compute.*`` modules. Both entry points accept raw
numeric sequences and own the worker pool for the duration of the call.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Literal

import numpy as np

from tess_prewhiten.compute.prewhiten import PrewhitenEngine
from tess_prewhiten.compute.scanner import PeriodogramScanner
from tess_prewhiten.compute.sine_fit import RandomSource
from tess_prewhiten.compute.workers import WorkerPool
from tess_prewhiten.config import PrewhitenConfig
from tess_prewhiten.domain.components import Periodogram, PrewhitenResult
from tess_prewhiten.domain.timeseries import TimeSeries
from tess_prewhiten.errors import ConfigurationError

Preset = Literal["fast", "full"]


def resolve_config(
    config: PrewhitenConfig | None = None,
    preset: Preset | str | None = None,
    **overrides: Any,
) -> PrewhitenConfig:
    """Combine an explicit config, a named preset and keyword overrides.

    ``config`` and ``preset`` are mutually exclusive; overrides are applied last.
    """
    if config is not None and preset is not None:
        raise ConfigurationError("pass either config or preset, not both")
    if config is not None:
        return config.replace(**overrides) if overrides else config
    if preset is None:
        return PrewhitenConfig.create(**overrides)
    preset_name = str(preset).lower()
    if preset_name == "fast":
        return PrewhitenConfig.fast(**overrides)
    if preset_name == "full":
        return PrewhitenConfig.full(**overrides)
    raise ConfigurationError(f"unknown preset {preset!r}; expected 'fast' or 'full'")


def run_prewhiten(
    *,
    time: Sequence[float] | np.ndarray,
    flux: Sequence[float] | np.ndarray,
    config: PrewhitenConfig | None = None,
    preset: Preset | str | None = None,
    random_source: RandomSource | None = None,
    **overrides: Any,
) -> PrewhitenResult:
    """Host-facing wrapper for iterative prewhitening.

    Args:
        time: Sample timestamps, in days (sorted internally)
        flux: Raw flux values; the mean is removed before analysis
        config: Explicit configuration
        preset: ``"fast"`` or ``"full"`` when no config is given
        random_source: Optional injected random source (FULL mode)
        **overrides: Individual ``PrewhitenConfig`` fields

    Returns:
        PrewhitenResult with components in extraction order
    """
    resolved = resolve_config(config, preset, **overrides)
    series = TimeSeries.from_arrays(time, flux)
    return PrewhitenEngine(resolved, random_source=random_source).run(series)


def scan_periodogram(
    *,
    time: Sequence[float] | np.ndarray,
    flux: Sequence[float] | np.ndarray,
    frequency_range: tuple[float, float] = (0.1, 10.0),
    samples: int = 10_000,
    workers: int = 1,
    timeout_seconds: float = 600.0,
) -> Periodogram:
    """Single Lomb-Scargle scan of the mean-subtracted ``flux``."""
    f_min, f_max = float(frequency_range[0]), float(frequency_range[1])
    if not 0 < f_min < f_max:
        raise ConfigurationError(f"invalid frequency range ({f_min}, {f_max})")
    series = TimeSeries.from_arrays(time, flux).centered()
    with WorkerPool(
        series.time,
        workers=int(workers),
        frequency_range=(f_min, f_max),
        samples=int(samples),
        timeout_seconds=float(timeout_seconds),
    ) as pool:
        return PeriodogramScanner(pool).scan(series.flux)


__all__ = ["Preset", "resolve_config", "run_prewhiten", "scan_periodogram"]
