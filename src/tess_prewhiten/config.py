"""Prewhitening configuration.

``PrewhitenConfig`` is the single place every tunable lives. It is validated
and frozen; invalid options surface as ``ConfigurationError`` before any worker
is created.

Two presets mirror the two ways the analysis is usually run:

- ``PrewhitenConfig.fast()``: the periodogram decides amplitude and frequency,
  only phase is searched. Stops on the amplitude-spectrum SNR.
- ``PrewhitenConfig.full()``: periodogram seed, seeded random guesses, then
  coordinate descent on amplitude, frequency and phase. Stops on a binned
  noise-power SNR.
"""

from __future__ import annotations

import logging
import os
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from tess_prewhiten.domain.components import FitMode
from tess_prewhiten.errors import ConfigurationError

logger = logging.getLogger(__name__)

Seed = Annotated[int, Field(ge=0, description="Random source seed")]


class PrewhitenConfig(BaseModel):
    """Options recognized by the prewhitening engine.

    Frequencies are cyclic, in 1/day.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Periodogram
    frequency_min: float = Field(default=0.1, gt=0)
    frequency_max: float = Field(default=10.0, gt=0)
    periodogram_samples: int = Field(default=10_000, ge=1)
    workers: int = Field(default=4, ge=1)
    worker_timeout_seconds: float = Field(default=600.0, gt=0)

    # Sine refinement
    mode: FitMode = FitMode.FAST
    phase_trials: int = Field(default=10_000, ge=1)
    tune_trials: int = Field(default=20_000, ge=1)
    tune_iterations: int = Field(default=7, ge=0)
    random_guesses: int = Field(default=0, ge=0)
    seed: Seed | None = None

    # Stopping rule and statistics
    snr_threshold: float = Field(default=4.0, ge=0)
    spectrum_noise: Literal["std", "median"] = "std"
    min_extractions: int = Field(default=0, ge=0)
    max_extractions: int = Field(default=100, ge=1)
    noise_bin_size: int = Field(default=10, ge=2)  # size 1 makes the trend equal the data
    gap_threshold: float = Field(default=1.0, gt=0)
    reference_epoch: float = 0.0
    retained_spectra: int = Field(default=3, ge=0)

    @model_validator(mode="after")
    def _check_ranges(self) -> PrewhitenConfig:
        if self.frequency_max <= self.frequency_min:
            raise ValueError(
                f"frequency_max ({self.frequency_max}) must exceed "
                f"frequency_min ({self.frequency_min})"
            )
        if self.max_extractions < self.min_extractions:
            raise ValueError(
                f"max_extractions ({self.max_extractions}) must be >= "
                f"min_extractions ({self.min_extractions})"
            )
        return self

    @classmethod
    def create(cls, **options: Any) -> PrewhitenConfig:
        """Validate ``options`` into a config, raising ``ConfigurationError`` on failure."""
        try:
            return cls(**options)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid prewhiten configuration: {exc}") from exc

    @classmethod
    def fast(cls, **overrides: Any) -> PrewhitenConfig:
        """Periodogram-driven preset (phase-only refinement)."""
        options: dict[str, Any] = {
            "frequency_min": 0.1,
            "frequency_max": 10.0,
            "periodogram_samples": 10_394,  # ~20x oversampling for a TESS sector
            "phase_trials": 10_000,
            "mode": FitMode.FAST,
            "spectrum_noise": "median",
            "snr_threshold": 5.124,
            "max_extractions": 9_999,
        }
        options.update(overrides)
        return cls.create(**options)

    @classmethod
    def full(cls, **overrides: Any) -> PrewhitenConfig:
        """Coordinate-descent preset with binned noise-power SNR."""
        options: dict[str, Any] = {
            "frequency_min": 1.0 / 60.0,
            "frequency_max": 1.0 / 0.11111,
            "periodogram_samples": 10_394,
            "phase_trials": 10_000,
            "mode": FitMode.FULL,
            "random_guesses": 100_000,
            "tune_trials": 400_000 // 7,
            "tune_iterations": 7,
            "snr_threshold": 3.0,
            "min_extractions": 0,
            "max_extractions": 10,
            "noise_bin_size": 10,
        }
        options.update(overrides)
        return cls.create(**options)

    def replace(self, **overrides: Any) -> PrewhitenConfig:
        """Return a validated copy with ``overrides`` applied."""
        return type(self).create(**{**self.model_dump(), **overrides})

    @property
    def frequency_range(self) -> tuple[float, float]:
        return (self.frequency_min, self.frequency_max)

    def warn_if_oversubscribed(self) -> bool:
        """Log a warning when more workers than CPU cores are requested."""
        cpu_count = os.cpu_count() or 1
        if self.workers > cpu_count:
            logger.warning(
                f"Using {self.workers} workers on {cpu_count} CPU cores; "
                "several workers will share a core"
            )
            return True
        return False
