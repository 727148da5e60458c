"""Tests for the TimeSeries domain model."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from tess_prewhiten.domain.timeseries import TimeSeries
from tess_prewhiten.errors import ConfigurationError, InvalidTimeSeriesError


class TestConstruction:
    def test_from_arrays_sorts_by_time(self) -> None:
        series = TimeSeries.from_arrays([3.0, 1.0, 2.0], [30.0, 10.0, 20.0])
        assert_array_equal(series.time, [1.0, 2.0, 3.0])
        assert_array_equal(series.flux, [10.0, 20.0, 30.0])

    def test_buffers_are_read_only(self) -> None:
        series = TimeSeries.from_arrays([0.0, 1.0], [1.0, 2.0])
        with pytest.raises(ValueError):
            series.flux[0] = 5.0
        with pytest.raises(ValueError):
            series.time[0] = 5.0

    def test_caller_buffers_untouched(self) -> None:
        time = np.array([0.0, 1.0, 2.0])
        flux = np.array([1.0, 2.0, 3.0])
        TimeSeries.from_arrays(time, flux)
        assert time.flags.writeable
        assert flux.flags.writeable

    def test_integer_input_converted(self) -> None:
        series = TimeSeries.from_arrays([0, 1, 2], [4, 5, 6])
        assert series.time.dtype == np.float64
        assert series.mean_flux == pytest.approx(5.0)

    @pytest.mark.parametrize(
        "time,flux",
        [
            ([0.0], [1.0]),
            ([0.0, 1.0], [1.0]),
            ([0.0, np.nan], [1.0, 2.0]),
            ([0.0, 1.0], [1.0, np.inf]),
        ],
    )
    def test_invalid_inputs(self, time: list, flux: list) -> None:
        with pytest.raises(InvalidTimeSeriesError):
            TimeSeries.from_arrays(time, flux)

    def test_unsorted_rejected_without_sort(self) -> None:
        with pytest.raises(InvalidTimeSeriesError, match="non-decreasing"):
            TimeSeries.from_arrays([2.0, 1.0], [0.0, 0.0], sort=False)

    def test_direct_construction_checks_dtype(self) -> None:
        with pytest.raises(InvalidTimeSeriesError, match="float64"):
            TimeSeries(time=np.arange(3), flux=np.zeros(3))
        with pytest.raises(InvalidTimeSeriesError, match="numpy array"):
            TimeSeries(time=[0.0, 1.0], flux=np.zeros(2))  # type: ignore[arg-type]

    def test_invalid_series_is_a_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            TimeSeries.from_arrays([0.0], [0.0])


class TestDerived:
    def test_span_and_range(self) -> None:
        series = TimeSeries.from_arrays([1.0, 2.5, 4.0], [-1.0, 3.0, 0.0])
        assert series.n == 3
        assert series.time_span == pytest.approx(3.0)
        assert series.data_range == pytest.approx(4.0)

    def test_centered(self) -> None:
        series = TimeSeries.from_arrays([0.0, 1.0, 2.0], [10.0, 11.0, 12.0])
        centered = series.centered()
        assert_allclose(centered.flux, [-1.0, 0.0, 1.0])
        assert centered.mean_flux == pytest.approx(0.0)
        assert centered.time is series.time
        assert series.mean_flux == pytest.approx(11.0)

    def test_with_flux_copies(self) -> None:
        series = TimeSeries.from_arrays([0.0, 1.0], [1.0, 1.0])
        flux = np.array([2.0, 3.0])
        other = series.with_flux(flux)
        flux[0] = 99.0
        assert other.flux[0] == 2.0
        assert other.time is series.time
