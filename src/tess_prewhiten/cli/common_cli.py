"""Shared helpers for click-based `tpw` commands."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import numpy as np

from tess_prewhiten.domain.timeseries import TimeSeries
from tess_prewhiten.errors import ConfigurationError, PrewhitenError, WorkerTimeoutError

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_RUNTIME_ERROR = 2
EXIT_WORKER_TIMEOUT = 3


class PrewhitenCliError(click.ClickException):
    """Click exception with explicit exit-code control."""

    def __init__(self, message: str, *, exit_code: int = EXIT_INPUT_ERROR) -> None:
        super().__init__(message)
        self.exit_code = int(exit_code)


def cli_error_from(exc: PrewhitenError) -> PrewhitenCliError:
    """Map a library error onto the CLI exit-code contract."""
    if isinstance(exc, ConfigurationError):
        return PrewhitenCliError(str(exc), exit_code=EXIT_INPUT_ERROR)
    if isinstance(exc, WorkerTimeoutError):
        return PrewhitenCliError(str(exc), exit_code=EXIT_WORKER_TIMEOUT)
    return PrewhitenCliError(str(exc), exit_code=EXIT_RUNTIME_ERROR)


def configure_logging(verbosity: int) -> None:
    """Route library logs to stderr: WARNING by default, INFO with -v, DEBUG with -vv."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("tess_prewhiten").setLevel(level)


def dump_json_output(payload: dict[str, Any], out_path: Path | None) -> None:
    """Write JSON payload to file or stdout."""
    text = json.dumps(payload, sort_keys=True, indent=2)
    if out_path is None:
        click.echo(text)
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text + "\n", encoding="utf-8")


def resolve_optional_output_path(output_arg: str | None) -> Path | None:
    """Map '-', empty, or None to stdout; otherwise return filesystem path."""
    if output_arg is None:
        return None
    value = str(output_arg).strip()
    if value in {"", "-"}:
        return None
    return Path(value)


def load_time_series_file(
    path: Path,
    *,
    time_column: int = 0,
    flux_column: int = 1,
    delimiter: str | None = None,
) -> tuple[TimeSeries, int]:
    """Read two numeric columns from a text table.

    Comma-separated when the file ends in ``.csv`` (unless ``delimiter`` is
    given), whitespace-separated otherwise. Header lines and rows with
    non-finite values are dropped.

    Returns:
        Tuple of (series, number of dropped rows)
    """
    if delimiter is None and path.suffix.lower() == ".csv":
        delimiter = ","
    try:
        table = np.genfromtxt(
            path,
            delimiter=delimiter,
            usecols=(time_column, flux_column),
            comments="#",
            dtype=np.float64,
            invalid_raise=False,
        )
    except FileNotFoundError as exc:
        raise PrewhitenCliError(f"Input file not found: {path}") from exc
    except (OSError, ValueError, IndexError) as exc:
        raise PrewhitenCliError(f"Cannot read time series from {path}: {exc}") from exc

    table = np.atleast_2d(table)
    if table.size == 0 or table.shape[1] != 2:
        raise PrewhitenCliError(f"{path} does not contain two numeric columns")

    finite = np.all(np.isfinite(table), axis=1)
    dropped = int(np.count_nonzero(~finite))
    table = table[finite]
    try:
        series = TimeSeries.from_arrays(table[:, 0], table[:, 1])
    except ConfigurationError as exc:
        raise PrewhitenCliError(f"Invalid time series in {path}: {exc}") from exc
    return series, dropped


__all__ = [
    "EXIT_OK",
    "EXIT_INPUT_ERROR",
    "EXIT_RUNTIME_ERROR",
    "EXIT_WORKER_TIMEOUT",
    "PrewhitenCliError",
    "cli_error_from",
    "configure_logging",
    "dump_json_output",
    "resolve_optional_output_path",
    "load_time_series_file",
]
