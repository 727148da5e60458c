"""Shared synthetic light curves for prewhitening tests."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.typing import NDArray

# Frequency grid shared by the multi-sine fixtures: [0.1, 5.0) with 4000 samples.
GRID_MIN = 0.1
GRID_MAX = 5.0
GRID_SAMPLES = 4000


def grid_frequency(index: int) -> float:
    """Frequency of grid point ``index``, computed the way the scanner computes it."""
    return GRID_MIN + (GRID_MAX - GRID_MIN) * index / GRID_SAMPLES


@pytest.fixture(scope="session")
def two_sine_lc() -> dict[str, NDArray[np.float64] | float]:
    """50 days at 0.1 d cadence: A=5 at ~0.7 c/d plus A=2 at ~2.3 c/d, 0.1 white noise.

    Both frequencies sit exactly on the test grid so fits are not limited by
    grid quantization. The flux carries a constant offset of 100.
    """
    rng = np.random.default_rng(42)
    time = np.arange(500, dtype=np.float64) * 0.1
    f1 = grid_frequency(490)
    f2 = grid_frequency(1800)
    clean = 5.0 * np.sin(2 * np.pi * f1 * time + 0.3) + 2.0 * np.sin(2 * np.pi * f2 * time + 1.1)
    flux = 100.0 + clean + rng.normal(0.0, 0.1, len(time))
    return {
        "time": time,
        "flux": flux,
        "f1": f1,
        "f2": f2,
        "a1": 5.0,
        "a2": 2.0,
        "grid": (GRID_MIN, GRID_MAX, GRID_SAMPLES),
    }


@pytest.fixture
def ten_point_lc() -> dict[str, NDArray[np.float64]]:
    """Ten integer-spaced samples of 5*sin(2*pi*0.2*t) plus 0.05 white noise."""
    rng = np.random.default_rng(2)
    time = np.arange(10, dtype=np.float64)
    clean = 5.0 * np.sin(2 * np.pi * 0.2 * time)
    return {"time": time, "clean": clean, "flux": clean + rng.normal(0.0, 0.05, len(time))}
