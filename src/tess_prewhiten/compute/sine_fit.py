"""Least-squares sine refinement.

Fits ``A * sin(w * t + phi) + c`` to a (residual) series by minimizing the sum
of squared residuals with derivative-free bounded grid searches. Phase and
frequency make the problem non-convex, so every stage evaluates an explicit
grid of trial values and keeps the best one:

1. Phase grid at fixed amplitude and frequency (both modes).
2. FULL mode only: seeded random (A, f, phi) guesses compete with the phase-grid
   start, then coordinate descent re-grids amplitude, frequency and phase in
   turn, accepting strict improvements, until a pass changes nothing or the
   pass budget runs out.

All randomness enters through a single ``RandomSource`` so runs replay
bit-for-bit from a recorded seed.

The vertical shift ``c`` is held at 0: callers fit mean-subtracted flux.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np

from tess_prewhiten.domain.components import TWO_PI, FitMode, SineComponent
from tess_prewhiten.errors import ConfigurationError, DegenerateFitError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from tess_prewhiten.config import PrewhitenConfig
    from tess_prewhiten.domain.timeseries import TimeSeries

logger = logging.getLogger(__name__)

# Amplitude search bounds, as fractions of the peak-to-peak flux range.
AMPLITUDE_RANGE_FRACTION = (0.01, 0.7)

# Upper bound on trial x sample elements materialized per chunk.
MAX_CHUNK_ELEMENTS = 1 << 20


class RandomSource(Protocol):
    """Source of uniform variates in [0, 1)."""

    seed: int | None

    def uniform(self, size: int) -> NDArray[np.float64]: ...


class SeededRandom:
    """``RandomSource`` backed by ``numpy.random.default_rng``.

    When no seed is given one is drawn from OS entropy and recorded on
    ``self.seed`` so the run can be replayed.
    """

    def __init__(self, seed: int | None = None) -> None:
        if seed is None:
            seed = int(np.random.SeedSequence().generate_state(1)[0])
        self.seed: int | None = int(seed)
        self._rng = np.random.default_rng(self.seed)

    def uniform(self, size: int) -> NDArray[np.float64]:
        return self._rng.random(size)


@dataclass(frozen=True)
class SineParams:
    """Raw search-space point ``(amplitude, angular_frequency, phase)``."""

    amplitude: float
    angular_frequency: float
    phase: float

    @property
    def frequency(self) -> float:
        return self.angular_frequency / TWO_PI


def sine_prediction(
    time: ArrayLike,
    amplitude: float,
    angular_frequency: float,
    phase: float,
    vertical_shift: float = 0.0,
) -> NDArray[np.float64]:
    return amplitude * np.sin(angular_frequency * np.asarray(time) + phase) + vertical_shift


def residual_sum_of_squares(
    time: NDArray[np.float64],
    flux: NDArray[np.float64],
    amplitude: float,
    angular_frequency: float,
    phase: float,
    vertical_shift: float = 0.0,
) -> float:
    resid = flux - sine_prediction(time, amplitude, angular_frequency, phase, vertical_shift)
    return float(np.dot(resid, resid))


def rss_grid(
    time: NDArray[np.float64],
    flux: NDArray[np.float64],
    amplitude: ArrayLike,
    angular_frequency: ArrayLike,
    phase: ArrayLike,
) -> NDArray[np.float64]:
    """Sum of squared residuals for every trial point.

    Scalar arguments are broadcast against the array ones; all trial arrays must
    share one length.
    """
    a, w, p = np.broadcast_arrays(
        np.atleast_1d(np.asarray(amplitude, dtype=np.float64)),
        np.atleast_1d(np.asarray(angular_frequency, dtype=np.float64)),
        np.atleast_1d(np.asarray(phase, dtype=np.float64)),
    )
    m = len(a)
    out = np.empty(m, dtype=np.float64)
    rows = max(1, MAX_CHUNK_ELEMENTS // max(1, len(time)))
    for lo in range(0, m, rows):
        hi = min(lo + rows, m)
        pred = a[lo:hi, None] * np.sin(w[lo:hi, None] * time[None, :] + p[lo:hi, None])
        resid = flux[None, :] - pred
        out[lo:hi] = np.einsum("ij,ij->i", resid, resid)
    return out


def _grid_fractions(trials: int) -> NDArray[np.float64]:
    return np.arange(trials, dtype=np.float64) / trials


def amplitude_bounds(data_range: float) -> tuple[float, float]:
    lo, hi = AMPLITUDE_RANGE_FRACTION
    return lo * data_range, hi * data_range


def phase_search(
    time: NDArray[np.float64],
    flux: NDArray[np.float64],
    amplitude: float,
    frequency: float,
    trials: int,
) -> tuple[float, float]:
    """Grid-search phase over ``2*pi*i/trials`` at fixed amplitude and frequency.

    Returns:
        Tuple of (best_phase, best_rss); the lowest phase wins ties.
    """
    if trials < 1:
        raise ConfigurationError(f"phase trials must be >= 1, got {trials}")
    phases = TWO_PI * _grid_fractions(trials)
    rss = rss_grid(time, flux, amplitude, TWO_PI * frequency, phases)
    best = int(np.argmin(rss))
    return float(phases[best]), float(rss[best])


def random_guess(
    time: NDArray[np.float64],
    flux: NDArray[np.float64],
    rng: RandomSource,
    count: int,
    frequency_range: tuple[float, float],
    data_range: float,
) -> tuple[SineParams, float]:
    """Best of ``count`` uniformly drawn (amplitude, frequency, phase) triples."""
    if count < 1:
        raise ConfigurationError(f"random guess count must be >= 1, got {count}")
    u = np.asarray(rng.uniform(3 * count), dtype=np.float64).reshape(count, 3)
    a_lo, a_hi = amplitude_bounds(data_range)
    f_lo, f_hi = frequency_range
    amplitudes = a_lo + (a_hi - a_lo) * u[:, 0]
    angular = TWO_PI * (f_lo + (f_hi - f_lo) * u[:, 1])
    phases = TWO_PI * u[:, 2]
    rss = rss_grid(time, flux, amplitudes, angular, phases)
    best = int(np.argmin(rss))
    params = SineParams(float(amplitudes[best]), float(angular[best]), float(phases[best]))
    return params, float(rss[best])


def coordinate_descent(
    time: NDArray[np.float64],
    flux: NDArray[np.float64],
    start: SineParams,
    start_rss: float,
    frequency_range: tuple[float, float],
    data_range: float,
    trials: int,
    iterations: int,
) -> tuple[SineParams, float, int]:
    """Tune amplitude, frequency, then phase on fixed grids, one coordinate at a time.

    Each coordinate is gridded over its whole valid range with ``trials`` points
    and only changes on a strict RSS improvement. The outer loop exits early on
    the first pass that improves nothing.

    Returns:
        Tuple of (params, rss, passes_run)
    """
    if trials < 1:
        raise ConfigurationError(f"tune trials must be >= 1, got {trials}")
    fractions = _grid_fractions(trials)
    a_lo, a_hi = amplitude_bounds(data_range)
    f_lo, f_hi = frequency_range
    amplitude_grid = a_lo + (a_hi - a_lo) * fractions
    angular_grid = TWO_PI * (f_lo + (f_hi - f_lo) * fractions)
    phase_grid = TWO_PI * fractions

    best = start
    best_rss = start_rss
    passes = 0
    for _ in range(iterations):
        passes += 1
        improved = False

        rss = rss_grid(time, flux, amplitude_grid, best.angular_frequency, best.phase)
        i = int(np.argmin(rss))
        if rss[i] < best_rss:
            best = SineParams(float(amplitude_grid[i]), best.angular_frequency, best.phase)
            best_rss = float(rss[i])
            improved = True

        rss = rss_grid(time, flux, best.amplitude, angular_grid, best.phase)
        i = int(np.argmin(rss))
        if rss[i] < best_rss:
            best = SineParams(best.amplitude, float(angular_grid[i]), best.phase)
            best_rss = float(rss[i])
            improved = True

        rss = rss_grid(time, flux, best.amplitude, best.angular_frequency, phase_grid)
        i = int(np.argmin(rss))
        if rss[i] < best_rss:
            best = SineParams(best.amplitude, best.angular_frequency, float(phase_grid[i]))
            best_rss = float(rss[i])
            improved = True

        if not improved:
            break
    return best, best_rss, passes


@dataclass(frozen=True)
class FitUncertainties:
    """Least-squares uncertainties of a fitted sinusoid."""

    rmsd: float
    amplitude: float
    phase: float
    frequency: float


def fit_uncertainties(rss: float, n: int, amplitude: float, time_span: float) -> FitUncertainties:
    """Propagate the residual scatter into amplitude, phase and frequency uncertainties.

    rmsd = sqrt(rss / n); sigma_A = sqrt(2 / n) * rmsd; sigma_phi = sigma_A / A;
    sigma_f = sigma_phi * sqrt(3) / (pi * T) with T the time span of the series.

    Raises:
        DegenerateFitError: When amplitude or time span is not positive, or a
            value would be non-finite.
    """
    if n < 1:
        raise DegenerateFitError("no samples to derive uncertainties from")
    if not math.isfinite(amplitude) or amplitude <= 0:
        raise DegenerateFitError("amplitude is zero; phase uncertainty undefined")
    if not math.isfinite(time_span) or time_span <= 0:
        raise DegenerateFitError("time span is zero; frequency uncertainty undefined")
    if not math.isfinite(rss) or rss < 0:
        raise DegenerateFitError(f"residual sum of squares is not usable ({rss})")
    rmsd = math.sqrt(rss / n)
    sigma_a = math.sqrt(2.0 / n) * rmsd
    sigma_phi = sigma_a / amplitude
    sigma_f = sigma_phi * math.sqrt(3.0) / (math.pi * time_span)
    return FitUncertainties(rmsd=rmsd, amplitude=sigma_a, phase=sigma_phi, frequency=sigma_f)


def phase_at_epoch(angular_frequency: float, phase: float, epoch: float) -> float:
    """Phase of the sinusoid at ``epoch``, wrapped into [0, 2*pi)."""
    return float(np.mod(angular_frequency * epoch + phase, TWO_PI)) % TWO_PI


def magnitude_amplitude(mean_flux: float, amplitude: float) -> float | None:
    """Peak-to-peak flux amplitude in millimagnitudes.

    ``1250 * log10((mean + A) / (mean - A))``; None when the ratio is not
    positive and finite (mean flux at or below the amplitude).
    """
    lower = mean_flux - amplitude
    upper = mean_flux + amplitude
    if lower <= 0 or upper <= 0:
        return None
    value = 1250.0 * math.log10(upper / lower)
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class SineFit:
    """Outcome of ``SineFitRefiner.fit``."""

    component: SineComponent
    rss: float
    mode: FitMode
    tune_passes: int = 0
    used_random_start: bool = False


class SineFitRefiner:
    """Fit a sinusoid near a candidate frequency by bounded grid search."""

    def __init__(
        self,
        *,
        frequency_range: tuple[float, float],
        mode: FitMode = FitMode.FAST,
        phase_trials: int = 10_000,
        tune_trials: int = 20_000,
        tune_iterations: int = 7,
        random_guesses: int = 0,
        random_source: RandomSource | None = None,
    ) -> None:
        if phase_trials < 1 or tune_trials < 1:
            raise ConfigurationError("phase_trials and tune_trials must be >= 1")
        if tune_iterations < 0 or random_guesses < 0:
            raise ConfigurationError("tune_iterations and random_guesses must be >= 0")
        self.frequency_range = (float(frequency_range[0]), float(frequency_range[1]))
        self.mode = FitMode(mode)
        self.phase_trials = phase_trials
        self.tune_trials = tune_trials
        self.tune_iterations = tune_iterations
        self.random_guesses = random_guesses
        if random_source is None and self.mode is FitMode.FULL and random_guesses > 0:
            random_source = SeededRandom()
        self.random_source = random_source

    @classmethod
    def from_config(
        cls, config: PrewhitenConfig, random_source: RandomSource | None = None
    ) -> SineFitRefiner:
        return cls(
            frequency_range=config.frequency_range,
            mode=config.mode,
            phase_trials=config.phase_trials,
            tune_trials=config.tune_trials,
            tune_iterations=config.tune_iterations,
            random_guesses=config.random_guesses,
            random_source=random_source,
        )

    @property
    def seed(self) -> int | None:
        return self.random_source.seed if self.random_source is not None else None

    def fit(
        self,
        series: TimeSeries,
        candidate_frequency: float,
        *,
        peak_power: float | None = None,
        amplitude: float | None = None,
    ) -> SineFit:
        """Fit ``series`` starting from ``candidate_frequency``.

        The starting amplitude is ``amplitude`` when given, otherwise
        ``2 * sqrt(peak_power / n)`` from the periodogram peak.

        Raises:
            DegenerateFitError: When the start amplitude or frequency is not
                positive, or the search drives the amplitude to zero.
        """
        time = series.time
        flux = series.flux
        n = series.n
        if amplitude is None:
            if peak_power is None:
                raise ConfigurationError("fit() needs either peak_power or amplitude")
            amplitude = 2.0 * math.sqrt(max(peak_power, 0.0) / n)
        if not math.isfinite(amplitude) or amplitude <= 0:
            raise DegenerateFitError("periodogram peak has zero amplitude")
        if not math.isfinite(candidate_frequency) or candidate_frequency <= 0:
            raise DegenerateFitError(f"candidate frequency {candidate_frequency} is not positive")

        phase, rss = phase_search(time, flux, amplitude, candidate_frequency, self.phase_trials)
        params = SineParams(float(amplitude), TWO_PI * float(candidate_frequency), phase)
        passes = 0
        used_random = False

        if self.mode is FitMode.FULL:
            data_range = series.data_range
            if self.random_guesses > 0 and self.random_source is not None:
                guess, guess_rss = random_guess(
                    time, flux, self.random_source, self.random_guesses,
                    self.frequency_range, data_range,
                )
                if guess_rss < rss:
                    params, rss = guess, guess_rss
                    used_random = True
            params, rss, passes = coordinate_descent(
                time, flux, params, rss, self.frequency_range, data_range,
                self.tune_trials, self.tune_iterations,
            )
            logger.debug(
                f"Coordinate descent: {passes} passes, f={params.frequency:.6f}, "
                f"A={params.amplitude:.6g}, rss={rss:.6g}"
            )

        if params.amplitude <= 0:
            raise DegenerateFitError("fitted amplitude is zero")

        component = SineComponent(
            amplitude=params.amplitude,
            angular_frequency=params.angular_frequency,
            phase=phase_at_epoch(params.angular_frequency, params.phase, 0.0),
        )
        exact_rss = residual_sum_of_squares(
            time, flux, component.amplitude, component.angular_frequency, component.phase
        )
        return SineFit(
            component=component,
            rss=exact_rss,
            mode=self.mode,
            tune_passes=passes,
            used_random_start=used_random,
        )
