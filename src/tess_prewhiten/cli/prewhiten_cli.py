"""`tpw prewhiten` and `tpw periodogram` commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from tess_prewhiten.api.prewhiten import resolve_config, run_prewhiten, scan_periodogram
from tess_prewhiten.cli.common_cli import (
    EXIT_RUNTIME_ERROR,
    PrewhitenCliError,
    cli_error_from,
    configure_logging,
    dump_json_output,
    load_time_series_file,
    resolve_optional_output_path,
)
from tess_prewhiten.compute.noise import spectrum_noise
from tess_prewhiten.domain.components import Periodogram, PrewhitenResult
from tess_prewhiten.errors import PrewhitenError
from tess_prewhiten.io.frequency_table import write_frequency_table

_input_option = click.option(
    "--input",
    "-i",
    "input_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Text table with time (days) and flux columns.",
)
_time_column_option = click.option("--time-column", type=int, default=0, show_default=True)
_flux_column_option = click.option("--flux-column", type=int, default=1, show_default=True)
_out_option = click.option(
    "--out",
    "output_path_arg",
    type=str,
    default="-",
    show_default=True,
    help="JSON output path; '-' writes to stdout.",
)
_verbose_option = click.option(
    "--verbose", "-v", count=True, help="Log progress to stderr (-vv for debug)."
)


def _spectrum_summary(periodogram: Periodogram | None) -> dict[str, Any] | None:
    if periodogram is None:
        return None
    return {
        "n_frequencies": int(len(periodogram.frequencies)),
        "frequency_min": float(periodogram.frequencies[0]),
        "frequency_max": float(periodogram.frequencies[-1]),
        "peak_frequency": periodogram.peak_frequency,
        "peak_power": periodogram.peak_power,
        "peak_amplitude": periodogram.peak_amplitude,
        "amplitude_std": spectrum_noise(periodogram, "std"),
        "amplitude_median": spectrum_noise(periodogram, "median"),
    }


def _result_to_jsonable(result: PrewhitenResult) -> dict[str, Any]:
    return {
        "n_components": result.n_components,
        "components": [row.model_dump(mode="json") for row in result.to_table()],
        "stop_reason": result.stop_reason.value,
        "mode": result.mode.value,
        "seed": result.seed,
        "iterations": result.iterations,
        "degenerate": (
            result.degenerate.model_dump(mode="json") if result.degenerate is not None else None
        ),
        "retained_spectra": [_spectrum_summary(p) for p in result.spectra],
        "final_spectrum": _spectrum_summary(result.final_spectrum),
    }


@click.command("prewhiten")
@_input_option
@_time_column_option
@_flux_column_option
@click.option(
    "--preset",
    type=click.Choice(["fast", "full"], case_sensitive=False),
    default="fast",
    show_default=True,
)
@click.option("--fmin", "frequency_min", type=float, default=None, help="Lowest frequency (1/day).")
@click.option("--fmax", "frequency_max", type=float, default=None, help="Highest frequency (1/day).")
@click.option("--samples", "periodogram_samples", type=int, default=None, help="Frequency grid size.")
@click.option("--workers", type=int, default=None, help="Periodogram worker count.")
@click.option("--snr-threshold", type=float, default=None)
@click.option("--min-extractions", type=int, default=None)
@click.option("--max-extractions", type=int, default=None)
@click.option("--random-guesses", type=int, default=None, help="Random starts (full preset).")
@click.option("--tune-trials", type=int, default=None, help="Grid size per tuned coordinate.")
@click.option("--seed", type=int, default=None, help="Seed for random starts.")
@click.option("--reference-epoch", type=float, default=None, help="Epoch for phase_at_epoch (days).")
@click.option(
    "--table-out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the frequency table as CSV.",
)
@_out_option
@_verbose_option
def prewhiten_command(
    input_path: Path,
    time_column: int,
    flux_column: int,
    preset: str,
    frequency_min: float | None,
    frequency_max: float | None,
    periodogram_samples: int | None,
    workers: int | None,
    snr_threshold: float | None,
    min_extractions: int | None,
    max_extractions: int | None,
    random_guesses: int | None,
    tune_trials: int | None,
    seed: int | None,
    reference_epoch: float | None,
    table_out: Path | None,
    output_path_arg: str,
    verbose: int,
) -> None:
    """Extract sinusoidal components and emit schema-stable JSON."""
    configure_logging(verbose)
    out_path = resolve_optional_output_path(output_path_arg)
    series, dropped = load_time_series_file(
        input_path, time_column=time_column, flux_column=flux_column
    )

    overrides = {
        key: value
        for key, value in {
            "frequency_min": frequency_min,
            "frequency_max": frequency_max,
            "periodogram_samples": periodogram_samples,
            "workers": workers,
            "snr_threshold": snr_threshold,
            "min_extractions": min_extractions,
            "max_extractions": max_extractions,
            "random_guesses": random_guesses,
            "tune_trials": tune_trials,
            "seed": seed,
            "reference_epoch": reference_epoch,
        }.items()
        if value is not None
    }

    try:
        config = resolve_config(preset=str(preset).lower(), **overrides)
        result = run_prewhiten(time=series.time, flux=series.flux, config=config)
        if table_out is not None:
            write_frequency_table(result, table_out)
    except PrewhitenError as exc:
        raise cli_error_from(exc) from exc
    except OSError as exc:
        raise PrewhitenCliError(str(exc), exit_code=EXIT_RUNTIME_ERROR) from exc

    payload = {
        "schema_version": "cli.prewhiten.v1",
        "result": _result_to_jsonable(result),
        "inputs_summary": {
            "input": str(input_path),
            "n_points": series.n,
            "rows_skipped": dropped,
            "time_span_days": series.time_span,
            "mean_flux": series.mean_flux,
        },
        "provenance": {
            "preset": str(preset).lower(),
            "options": config.model_dump(mode="json"),
            "table_out": str(table_out) if table_out is not None else None,
        },
    }
    dump_json_output(payload, out_path)


@click.command("periodogram")
@_input_option
@_time_column_option
@_flux_column_option
@click.option("--fmin", "frequency_min", type=float, default=0.1, show_default=True)
@click.option("--fmax", "frequency_max", type=float, default=10.0, show_default=True)
@click.option("--samples", type=int, default=10_000, show_default=True)
@click.option("--workers", type=int, default=1, show_default=True)
@click.option(
    "--include-spectrum",
    is_flag=True,
    default=False,
    help="Include the full frequency/power arrays.",
)
@_out_option
@_verbose_option
def periodogram_command(
    input_path: Path,
    time_column: int,
    flux_column: int,
    frequency_min: float,
    frequency_max: float,
    samples: int,
    workers: int,
    include_spectrum: bool,
    output_path_arg: str,
    verbose: int,
) -> None:
    """Run one Lomb-Scargle scan of the mean-subtracted flux and emit JSON."""
    configure_logging(verbose)
    out_path = resolve_optional_output_path(output_path_arg)
    series, dropped = load_time_series_file(
        input_path, time_column=time_column, flux_column=flux_column
    )

    try:
        periodogram = scan_periodogram(
            time=series.time,
            flux=series.flux,
            frequency_range=(float(frequency_min), float(frequency_max)),
            samples=int(samples),
            workers=int(workers),
        )
    except PrewhitenError as exc:
        raise cli_error_from(exc) from exc

    result: dict[str, Any] = dict(_spectrum_summary(periodogram) or {})
    if include_spectrum:
        result["frequencies"] = periodogram.frequencies.tolist()
        result["powers"] = periodogram.powers.tolist()

    payload = {
        "schema_version": "cli.periodogram.v1",
        "result": result,
        "inputs_summary": {
            "input": str(input_path),
            "n_points": series.n,
            "rows_skipped": dropped,
            "time_span_days": series.time_span,
        },
        "provenance": {
            "options": {
                "frequency_min": float(frequency_min),
                "frequency_max": float(frequency_max),
                "samples": int(samples),
                "workers": int(workers),
                "include_spectrum": bool(include_spectrum),
            },
        },
    }
    dump_json_output(payload, out_path)


__all__ = ["prewhiten_command", "periodogram_command"]
