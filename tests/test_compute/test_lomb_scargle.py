"""Tests for the Lomb-Scargle evaluator."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

import tess_prewhiten.compute.lomb_scargle as ls
from tess_prewhiten.compute.lomb_scargle import (
    amplitude_spectrum,
    frequency_grid,
    lomb_scargle_power,
    lomb_scargle_powers,
)


def _naive_power(frequency: float, time: np.ndarray, flux: np.ndarray) -> float:
    """Direct scalar transcription of the time-shift formula."""
    w = 2 * np.pi * frequency
    tau = np.arctan2(np.sum(np.sin(2 * w * time)), np.sum(np.cos(2 * w * time))) / (2 * w)
    c = np.cos(w * (time - tau))
    s = np.sin(w * (time - tau))
    return float(((flux @ c) ** 2 / (c @ c) + (flux @ s) ** 2 / (s @ s)) / 2)


class TestFrequencyGrid:
    def test_half_open_at_max(self) -> None:
        grid = frequency_grid(1.0, 2.0, 4)
        assert_allclose(grid, [1.0, 1.25, 1.5, 1.75])

    def test_slice_matches_full_grid(self) -> None:
        full = frequency_grid(0.1, 10.0, 1000)
        part = frequency_grid(0.1, 10.0, 1000, 250, 600)
        assert_array_equal(part, full[250:600])

    def test_empty_slice(self) -> None:
        assert len(frequency_grid(0.1, 10.0, 100, 40, 40)) == 0

    def test_invalid_slice_rejected(self) -> None:
        with pytest.raises(ValueError):
            frequency_grid(0.1, 10.0, 100, 50, 101)
        with pytest.raises(ValueError):
            frequency_grid(0.1, 10.0, 0)


class TestLombScarglePower:
    """Power of the time-shift Lomb-Scargle statistic."""

    def test_peak_at_injected_frequency(self) -> None:
        time = np.linspace(0.0, 20.0, 400)
        flux = np.sin(2 * np.pi * 1.3 * time)
        grid = frequency_grid(0.1, 5.0, 4900)
        powers = lomb_scargle_powers(grid, time, flux - flux.mean())
        step = grid[1] - grid[0]
        assert abs(grid[np.argmax(powers)] - 1.3) <= step

    def test_pure_sine_amplitude_recovered(self) -> None:
        time = np.linspace(0.0, 20.0, 400, endpoint=False)
        flux = 3.0 * np.sin(2 * np.pi * 1.5 * time + 0.4)
        power = lomb_scargle_power(1.5, time, flux)
        amplitude = amplitude_spectrum(np.array([power]), len(time))[0]
        assert amplitude == pytest.approx(3.0, rel=1e-3)

    def test_vectorized_matches_scalar_formula(self) -> None:
        rng = np.random.default_rng(1)
        time = np.sort(rng.uniform(0.0, 30.0, 120))
        flux = rng.normal(0.0, 1.0, 120)
        flux -= flux.mean()
        freqs = np.array([0.05, 0.33, 1.7, 4.2])
        expected = [_naive_power(f, time, flux) for f in freqs]
        assert_allclose(lomb_scargle_powers(freqs, time, flux), expected, rtol=1e-10)

    def test_chunking_does_not_change_result(self, monkeypatch: pytest.MonkeyPatch) -> None:
        rng = np.random.default_rng(2)
        time = np.sort(rng.uniform(0.0, 10.0, 64))
        flux = rng.normal(0.0, 1.0, 64)
        freqs = frequency_grid(0.2, 6.0, 300)
        reference = lomb_scargle_powers(freqs, time, flux)

        monkeypatch.setattr(ls, "MAX_CHUNK_ELEMENTS", 64 * 7)
        assert_allclose(lomb_scargle_powers(freqs, time, flux), reference, rtol=1e-12)

    def test_non_positive_frequency_has_zero_power(self) -> None:
        time = np.linspace(0.0, 5.0, 50)
        flux = np.sin(time)
        assert lomb_scargle_power(0.0, time, flux) == 0.0
        assert lomb_scargle_power(-1.0, time, flux) == 0.0
        powers = lomb_scargle_powers(np.array([-1.0, 0.0, 0.5]), time, flux)
        assert powers[0] == 0.0
        assert powers[1] == 0.0
        assert powers[2] > 0.0

    def test_two_samples_stay_finite(self) -> None:
        time = np.array([0.0, 1.0])
        flux = np.array([-1.0, 1.0])
        powers = lomb_scargle_powers(frequency_grid(0.05, 3.0, 500), time, flux)
        assert np.all(np.isfinite(powers))
        assert np.all(powers >= 0.0)
        # At f = 0.5 the sine basis vanishes on both samples; only the cosine part counts.
        assert lomb_scargle_power(0.5, time, flux) == pytest.approx(1.0, rel=1e-9)

    def test_zero_flux_has_zero_power(self) -> None:
        time = np.linspace(0.0, 5.0, 20)
        powers = lomb_scargle_powers(frequency_grid(0.1, 2.0, 50), time, np.zeros(20))
        assert_array_equal(powers, np.zeros(50))

    def test_shape_mismatch_rejected(self) -> None:
        with pytest.raises(ValueError):
            lomb_scargle_powers(np.array([1.0]), np.zeros(3), np.zeros(4))


class TestAmplitudeSpectrum:
    def test_formula(self) -> None:
        assert_allclose(amplitude_spectrum(np.array([0.0, 4.0, 25.0]), 4), [0.0, 2.0, 5.0])

    def test_rejects_zero_samples(self) -> None:
        with pytest.raises(ValueError):
            amplitude_spectrum(np.array([1.0]), 0)
