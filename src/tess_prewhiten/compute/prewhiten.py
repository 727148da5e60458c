"""Iterative prewhitening.

``PrewhitenEngine`` repeatedly finds the dominant periodogram peak, fits a
sinusoid there, subtracts it and decides whether to continue::

    SCANNING -> FITTING -> SUBTRACTING -> EVALUATING -> CONTINUE -> SCANNING
                                                     \\-> STOP

The loop stops when the component's SNR drops below ``snr_threshold`` once at
least ``min_extractions`` components were accepted, when ``max_extractions`` is
reached, or when a fit is numerically degenerate. Residuals live only in the
engine; workers only ever see read-only snapshots.

SNR definitions:
- FAST: fitted amplitude over the std (or median) of the amplitude spectrum
  of the current iteration.
- FULL: signal power ``A**2 / 2`` over the mean squared residual noise after
  removing a binned local trend.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import TYPE_CHECKING

from tess_prewhiten.compute.noise import binned_noise, noise_power, spectrum_noise
from tess_prewhiten.compute.scanner import PeriodogramScanner
from tess_prewhiten.compute.sine_fit import (
    SeededRandom,
    SineFitRefiner,
    fit_uncertainties,
    magnitude_amplitude,
    phase_at_epoch,
)
from tess_prewhiten.compute.workers import WorkerPool
from tess_prewhiten.domain.components import (
    DegenerateIteration,
    ExtractedComponent,
    FitMode,
    PrewhitenResult,
    StopReason,
)
from tess_prewhiten.errors import ConfigurationError, DegenerateFitError

if TYPE_CHECKING:
    from tess_prewhiten.compute.sine_fit import RandomSource, SineFit
    from tess_prewhiten.config import PrewhitenConfig
    from tess_prewhiten.domain.components import Periodogram
    from tess_prewhiten.domain.timeseries import TimeSeries

logger = logging.getLogger(__name__)

# SNR values are clamped to [0, MAX_SNR] so a noiseless residual never reports infinity.
MAX_SNR = 999.0


class EngineState(str, Enum):
    SCANNING = "scanning"
    FITTING = "fitting"
    SUBTRACTING = "subtracting"
    EVALUATING = "evaluating"
    CONTINUE = "continue"
    STOP = "stop"


def _clamp_snr(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(MAX_SNR, max(0.0, value))


class PrewhitenEngine:
    """Drive the scan/fit/subtract loop over a worker pool."""

    def __init__(
        self,
        config: PrewhitenConfig,
        *,
        random_source: RandomSource | None = None,
    ) -> None:
        self.config = config
        # An injected source is used as-is; otherwise every run reseeds from self.seed.
        self.random_source = random_source
        self.seed: int | None = None
        if random_source is None and config.mode is FitMode.FULL and config.random_guesses > 0:
            self.seed = config.seed if config.seed is not None else SeededRandom().seed
        self.state = EngineState.SCANNING
        self.state_history: list[EngineState] = []

    def _random_source_for_run(self) -> RandomSource | None:
        if self.random_source is not None:
            return self.random_source
        if self.seed is None:
            return None
        return SeededRandom(self.seed)

    def _enter(self, state: EngineState) -> None:
        logger.debug(f"Prewhiten state {self.state.value} -> {state.value}")
        self.state = state
        self.state_history.append(state)

    def create_pool(self, series: TimeSeries) -> WorkerPool:
        config = self.config
        config.warn_if_oversubscribed()
        return WorkerPool(
            series.time,
            workers=config.workers,
            frequency_range=config.frequency_range,
            samples=config.periodogram_samples,
            timeout_seconds=config.worker_timeout_seconds,
        )

    def run(self, series: TimeSeries, *, pool: WorkerPool | None = None) -> PrewhitenResult:
        """Prewhiten ``series`` (raw flux; it is mean-subtracted here).

        When ``pool`` is omitted the engine creates one and stops its workers
        exactly once before returning, however the loop ends. A caller-owned
        pool is left running and must match the series length and the
        configured frequency grid.
        """
        centered = series.centered()
        if pool is not None:
            self._check_pool(pool, centered)
        own_pool = pool is None
        active = self.create_pool(centered) if pool is None else pool
        try:
            return self._run(centered, series.mean_flux, active)
        finally:
            if own_pool:
                active.shutdown()

    def _check_pool(self, pool: WorkerPool, centered: TimeSeries) -> None:
        config = self.config
        if pool.n_points != centered.n:
            raise ConfigurationError(
                f"pool time buffer has {pool.n_points} samples, series has {centered.n}"
            )
        if pool.samples != config.periodogram_samples:
            raise ConfigurationError(
                f"pool grid has {pool.samples} samples, "
                f"config expects periodogram_samples={config.periodogram_samples}"
            )
        if pool.frequency_range != config.frequency_range:
            raise ConfigurationError(
                f"pool frequency range {pool.frequency_range} does not match "
                f"config range {config.frequency_range}"
            )

    def _snr(self, periodogram: Periodogram, fit: SineFit, residual: TimeSeries) -> float:
        config = self.config
        amplitude = fit.component.amplitude
        if config.mode is FitMode.FAST:
            level = spectrum_noise(periodogram, config.spectrum_noise)
            if level <= 0:
                return MAX_SNR
            return _clamp_snr(amplitude / level)
        noise = binned_noise(
            residual.time, residual.flux, config.noise_bin_size, config.gap_threshold
        )
        power = noise_power(noise)
        if power <= 0:
            return MAX_SNR
        return _clamp_snr((amplitude**2 / 2.0) / power)

    def _run(self, centered: TimeSeries, mean_flux: float, pool: WorkerPool) -> PrewhitenResult:
        config = self.config
        scanner = PeriodogramScanner(pool)
        refiner = SineFitRefiner.from_config(config, random_source=self._random_source_for_run())

        residual = centered
        components: list[ExtractedComponent] = []
        spectra: list[Periodogram] = []
        final_spectrum: Periodogram | None = None
        degenerate: DegenerateIteration | None = None
        iteration = 0

        logger.info(
            f"Prewhitening {centered.n} samples over "
            f"[{config.frequency_min:g}, {config.frequency_max:g}] 1/d "
            f"({config.mode.value} mode, seed={refiner.seed})"
        )

        while True:
            if len(components) >= config.max_extractions:
                logger.info(f"Stopping: reached max_extractions={config.max_extractions}")
                self._enter(EngineState.SCANNING)
                final_spectrum = scanner.scan(residual.flux)
                stop_reason = StopReason.MAX_EXTRACTIONS
                break

            self._enter(EngineState.SCANNING)
            periodogram = scanner.scan(residual.flux)

            try:
                self._enter(EngineState.FITTING)
                fit = refiner.fit(
                    residual, periodogram.peak_frequency, peak_power=periodogram.peak_power
                )

                self._enter(EngineState.SUBTRACTING)
                candidate = residual.with_flux(
                    residual.flux - fit.component.predict(residual.time)
                )

                self._enter(EngineState.EVALUATING)
                uncertainties = fit_uncertainties(
                    fit.rss, residual.n, fit.component.amplitude, residual.time_span
                )
                snr = self._snr(periodogram, fit, candidate)
            except DegenerateFitError as exc:
                exc.iteration = iteration
                degenerate = DegenerateIteration(
                    iteration=iteration,
                    reason=exc.reason,
                    peak_frequency=periodogram.peak_frequency,
                )
                logger.warning(f"Stopping at iteration {iteration + 1}: {exc}")
                final_spectrum = periodogram
                stop_reason = StopReason.DEGENERATE_FIT
                iteration += 1
                break

            iteration += 1
            if snr < config.snr_threshold and len(components) >= config.min_extractions:
                logger.info(
                    f"Stopping at iteration {iteration}: SNR {snr:.2f} < {config.snr_threshold}"
                )
                final_spectrum = periodogram
                stop_reason = StopReason.SNR_BELOW_THRESHOLD
                break

            component = fit.component
            extracted = ExtractedComponent(
                index=len(components) + 1,
                component=component,
                snr=snr,
                amplitude_uncertainty=uncertainties.amplitude,
                phase_uncertainty=uncertainties.phase,
                frequency_uncertainty=uncertainties.frequency,
                phase_at_epoch=phase_at_epoch(
                    component.angular_frequency, component.phase, config.reference_epoch
                ),
                magnitude_amplitude=magnitude_amplitude(mean_flux, component.amplitude),
                peak_frequency=periodogram.peak_frequency,
                residual=candidate,
            )
            components.append(extracted)
            if len(spectra) < config.retained_spectra:
                spectra.append(periodogram)
            residual = candidate
            self._enter(EngineState.CONTINUE)

            logger.info(
                f"Component {extracted.index}: f={component.frequency:.5f} "
                f"+/- {uncertainties.frequency:.5f} 1/d, A={component.amplitude:.4g} "
                f"+/- {uncertainties.amplitude:.2g}, SNR={snr:.2f}"
            )

        self._enter(EngineState.STOP)
        logger.info(f"Extracted {len(components)} components ({stop_reason.value})")
        return PrewhitenResult(
            components=tuple(components),
            stop_reason=stop_reason,
            mode=config.mode,
            seed=refiner.seed,
            iterations=iteration,
            spectra=tuple(spectra),
            final_spectrum=final_spectrum,
            degenerate=degenerate,
        )
