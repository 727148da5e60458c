"""Tests for the host-facing prewhitening facade."""

from __future__ import annotations

import numpy as np
import pytest

from tess_prewhiten import run_prewhiten, scan_periodogram
from tess_prewhiten.api.prewhiten import resolve_config
from tess_prewhiten.compute.sine_fit import SeededRandom
from tess_prewhiten.config import PrewhitenConfig
from tess_prewhiten.domain.components import FitMode, StopReason
from tess_prewhiten.errors import ConfigurationError


class TestResolveConfig:
    def test_no_arguments_gives_defaults(self) -> None:
        assert resolve_config() == PrewhitenConfig()

    def test_preset_with_overrides(self) -> None:
        config = resolve_config(preset="FULL", seed=3)
        assert config.mode is FitMode.FULL
        assert config.seed == 3

    def test_explicit_config_with_overrides(self) -> None:
        base = PrewhitenConfig.create(workers=2)
        assert resolve_config(base) is base
        assert resolve_config(base, workers=1).workers == 1

    def test_config_and_preset_are_exclusive(self) -> None:
        with pytest.raises(ConfigurationError):
            resolve_config(PrewhitenConfig(), "fast")

    def test_unknown_preset(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown preset"):
            resolve_config(preset="slow")


class TestRunPrewhiten:
    def test_fast_preset_on_lists(self, two_sine_lc: dict) -> None:
        f_min, f_max, samples = two_sine_lc["grid"]
        result = run_prewhiten(
            time=two_sine_lc["time"].tolist(),
            flux=two_sine_lc["flux"].tolist(),
            preset="fast",
            frequency_min=f_min,
            frequency_max=f_max,
            periodogram_samples=samples,
            workers=2,
            snr_threshold=0.0,
            max_extractions=2,
        )
        assert result.stop_reason is StopReason.MAX_EXTRACTIONS
        assert result.frequencies == pytest.approx(
            [two_sine_lc["f1"], two_sine_lc["f2"]], abs=2e-3
        )

    def test_injected_random_source_seed_is_reported(self, ten_point_lc: dict) -> None:
        result = run_prewhiten(
            time=ten_point_lc["time"],
            flux=ten_point_lc["flux"],
            preset="full",
            frequency_min=0.05,
            frequency_max=2.0,
            periodogram_samples=200,
            workers=1,
            random_guesses=20,
            tune_trials=200,
            tune_iterations=1,
            max_extractions=1,
            random_source=SeededRandom(123),
        )
        assert result.mode is FitMode.FULL
        assert result.seed == 123

    def test_invalid_input_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            run_prewhiten(time=[0.0], flux=[1.0])


class TestScanPeriodogram:
    def test_peak_at_dominant_signal(self, two_sine_lc: dict) -> None:
        f_min, f_max, samples = two_sine_lc["grid"]
        periodogram = scan_periodogram(
            time=two_sine_lc["time"],
            flux=two_sine_lc["flux"],
            frequency_range=(f_min, f_max),
            samples=samples,
            workers=2,
        )
        assert len(periodogram.frequencies) == samples
        assert periodogram.peak_frequency == pytest.approx(two_sine_lc["f1"], abs=2e-3)
        assert periodogram.peak_amplitude == pytest.approx(two_sine_lc["a1"], rel=0.05)

    def test_offset_is_removed(self) -> None:
        time = np.linspace(0.0, 20.0, 200)
        flux = 1000.0 + np.sin(2 * np.pi * 1.0 * time)
        periodogram = scan_periodogram(
            time=time, flux=flux, frequency_range=(0.5, 1.5), samples=100
        )
        assert abs(periodogram.peak_frequency - 1.0) <= 0.01

    @pytest.mark.parametrize("frequency_range", [(0.0, 1.0), (2.0, 1.0), (-1.0, 1.0)])
    def test_invalid_range(self, frequency_range: tuple[float, float]) -> None:
        with pytest.raises(ConfigurationError):
            scan_periodogram(time=[0.0, 1.0, 2.0], flux=[0.0, 1.0, 0.0], frequency_range=frequency_range)
