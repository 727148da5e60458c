"""Prewhitening domain models.

This module provides:
- SineComponent: one fitted sinusoid A*sin(w*t + phi) + c
- Periodogram: frequency grid with Lomb-Scargle power and its peak
- ExtractedComponent: accepted component with statistics and residual series
- FrequencyTableRow: flat, serializable result row
- PrewhitenResult: ordered extraction output of a prewhitening run
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Annotated

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from tess_prewhiten.domain.timeseries import TimeSeries

if TYPE_CHECKING:
    from numpy.typing import NDArray

TWO_PI = 2.0 * math.pi


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class FitMode(str, Enum):
    """Sine refinement strategy."""

    FAST = "fast"  # phase grid only at the periodogram amplitude/frequency
    FULL = "full"  # phase grid + seeded guesses + coordinate descent


class StopReason(str, Enum):
    """Why a prewhitening run terminated."""

    SNR_BELOW_THRESHOLD = "snr_below_threshold"
    MAX_EXTRACTIONS = "max_extractions"
    DEGENERATE_FIT = "degenerate_fit"


# Type aliases with validation
Amplitude = Annotated[float, Field(ge=0, description="Semi-amplitude, in flux units")]
AngularFrequency = Annotated[float, Field(gt=0, description="Angular frequency, in rad/day")]
Phase = Annotated[float, Field(ge=0, lt=TWO_PI, description="Phase, in radians")]


class SineComponent(FrozenModel):
    """Single periodic signal ``amplitude * sin(angular_frequency * t + phase) + vertical_shift``."""

    amplitude: Amplitude
    angular_frequency: AngularFrequency
    phase: Phase
    vertical_shift: float = 0.0

    @classmethod
    def from_frequency(
        cls,
        *,
        amplitude: float,
        frequency: float,
        phase: float,
        vertical_shift: float = 0.0,
    ) -> SineComponent:
        """Build a component from a cyclic frequency (1/day); wraps phase into [0, 2pi)."""
        return cls(
            amplitude=float(amplitude),
            angular_frequency=TWO_PI * float(frequency),
            phase=float(np.mod(phase, TWO_PI)) % TWO_PI,
            vertical_shift=float(vertical_shift),
        )

    @property
    def frequency(self) -> float:
        """Cyclic frequency, in 1/day."""
        return self.angular_frequency / TWO_PI

    def predict(self, time: NDArray[np.float64]) -> NDArray[np.float64]:
        """Evaluate the sinusoid at ``time``."""
        return (
            self.amplitude * np.sin(self.angular_frequency * np.asarray(time) + self.phase)
            + self.vertical_shift
        )


@dataclass(frozen=True, eq=False)
class Periodogram:
    """Lomb-Scargle power over a frequency grid.

    Attributes:
        frequencies: Frequency grid, in 1/day (increasing)
        powers: Normalized Lomb-Scargle power at each frequency (>= 0)
        n_samples: Number of time-series samples the powers were computed from
        peak_index: Index of the first maximum of ``powers``
    """

    frequencies: NDArray[np.float64]
    powers: NDArray[np.float64]
    n_samples: int
    peak_index: int

    @classmethod
    def from_powers(
        cls,
        frequencies: NDArray[np.float64],
        powers: NDArray[np.float64],
        n_samples: int,
    ) -> Periodogram:
        freqs = np.asarray(frequencies, dtype=np.float64)
        pows = np.asarray(powers, dtype=np.float64)
        if freqs.shape != pows.shape:
            raise ValueError(f"frequencies shape {freqs.shape} != powers shape {pows.shape}")
        if len(freqs) == 0:
            raise ValueError("periodogram must contain at least one frequency")
        # np.argmax returns the first occurrence, i.e. the lowest frequency on ties.
        peak_index = int(np.argmax(pows))
        freqs.flags.writeable = False
        pows.flags.writeable = False
        return cls(frequencies=freqs, powers=pows, n_samples=int(n_samples), peak_index=peak_index)

    @property
    def peak_frequency(self) -> float:
        return float(self.frequencies[self.peak_index])

    @property
    def peak_power(self) -> float:
        return float(self.powers[self.peak_index])

    @property
    def amplitudes(self) -> NDArray[np.float64]:
        """Amplitude spectrum ``2 * sqrt(power / n)``, in flux units."""
        return 2.0 * np.sqrt(self.powers / self.n_samples)

    @property
    def peak_amplitude(self) -> float:
        return float(2.0 * math.sqrt(self.peak_power / self.n_samples))

    @property
    def resolution(self) -> float:
        """Grid step, in 1/day (0 for a single-frequency grid)."""
        if len(self.frequencies) < 2:
            return 0.0
        return float(self.frequencies[1] - self.frequencies[0])


class FrequencyTableRow(FrozenModel):
    """One row of the flat result table, in extraction order."""

    index: int = Field(ge=1, description="Extraction order (1 = most dominant)")
    frequency: float = Field(gt=0, description="Frequency, in 1/day")
    frequency_uncertainty: float = Field(ge=0)
    signal_to_noise_ratio: float = Field(ge=0)
    amplitude: float = Field(ge=0, description="Semi-amplitude, in flux units")
    amplitude_uncertainty: float = Field(ge=0)
    magnitude_amplitude: float | None = Field(
        default=None, description="Amplitude in mmag; None when undefined"
    )
    phase_at_epoch: float | None = Field(default=None, ge=0, lt=TWO_PI)
    phase_uncertainty: float | None = Field(default=None, ge=0)


@dataclass(frozen=True, eq=False)
class ExtractedComponent:
    """An accepted component with its derived statistics.

    ``residual`` is the series left after subtracting this component (and all
    earlier ones) from the input.
    """

    index: int
    component: SineComponent
    snr: float
    amplitude_uncertainty: float
    phase_uncertainty: float
    frequency_uncertainty: float
    phase_at_epoch: float
    magnitude_amplitude: float | None
    peak_frequency: float
    residual: TimeSeries

    @property
    def frequency(self) -> float:
        return self.component.frequency

    @property
    def amplitude(self) -> float:
        return self.component.amplitude

    def to_row(self) -> FrequencyTableRow:
        return FrequencyTableRow(
            index=self.index,
            frequency=self.component.frequency,
            frequency_uncertainty=self.frequency_uncertainty,
            signal_to_noise_ratio=max(0.0, self.snr),
            amplitude=self.component.amplitude,
            amplitude_uncertainty=self.amplitude_uncertainty,
            magnitude_amplitude=self.magnitude_amplitude,
            phase_at_epoch=self.phase_at_epoch,
            phase_uncertainty=self.phase_uncertainty,
        )


class DegenerateIteration(FrozenModel):
    """Record of an iteration whose fit was numerically degenerate."""

    iteration: int = Field(ge=0)
    reason: str
    peak_frequency: float | None = None


@dataclass(frozen=True, eq=False)
class PrewhitenResult:
    """Terminal output of a prewhitening run. Never mutated after construction.

    Attributes:
        components: Accepted components, in extraction order
        stop_reason: Why the loop terminated
        mode: Refinement strategy used
        seed: Seed of the random source (None when the mode draws no randoms)
        iterations: Number of scan/fit iterations performed
        spectra: Periodograms retained from the first iterations
        final_spectrum: Periodogram of the final residual series
        degenerate: Record of the degenerate iteration that stopped the run, if any
    """

    components: tuple[ExtractedComponent, ...]
    stop_reason: StopReason
    mode: FitMode
    seed: int | None
    iterations: int
    spectra: tuple[Periodogram, ...] = ()
    final_spectrum: Periodogram | None = None
    degenerate: DegenerateIteration | None = None

    @property
    def n_components(self) -> int:
        return len(self.components)

    @property
    def frequencies(self) -> list[float]:
        return [c.frequency for c in self.components]

    @property
    def final_residual(self) -> TimeSeries | None:
        """Residual after the last accepted component (None when nothing was accepted)."""
        if not self.components:
            return None
        return self.components[-1].residual

    def to_table(self) -> list[FrequencyTableRow]:
        return [c.to_row() for c in self.components]
