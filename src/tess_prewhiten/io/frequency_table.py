"""Flat frequency table export.

One row per extracted component, in extraction order. Undefined values (for
example a magnitude amplitude when the mean flux does not exceed the
amplitude) are written as empty cells.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from io import StringIO
from pathlib import Path
from typing import IO, Any

from tess_prewhiten.domain.components import FrequencyTableRow, PrewhitenResult

FREQUENCY_TABLE_COLUMNS: tuple[str, ...] = (
    "index",
    "frequency",
    "frequency_uncertainty",
    "signal_to_noise_ratio",
    "amplitude",
    "amplitude_uncertainty",
    "magnitude_amplitude",
    "phase_at_epoch",
    "phase_uncertainty",
)


def _rows_of(rows: Iterable[FrequencyTableRow] | PrewhitenResult) -> list[FrequencyTableRow]:
    if isinstance(rows, PrewhitenResult):
        return rows.to_table()
    return list(rows)


def _cell(value: Any, decimals: int | None) -> Any:
    if value is None:
        return ""
    if decimals is not None and isinstance(value, float):
        return f"{value:.{decimals}f}"
    return value


def _write(
    handle: IO[str],
    rows: list[FrequencyTableRow],
    delimiter: str,
    decimals: int | None,
) -> None:
    w = csv.DictWriter(
        handle, fieldnames=list(FREQUENCY_TABLE_COLUMNS), delimiter=delimiter, lineterminator="\n"
    )
    w.writeheader()
    for row in rows:
        data = row.model_dump()
        w.writerow({col: _cell(data[col], decimals) for col in FREQUENCY_TABLE_COLUMNS})


def format_frequency_table(
    rows: Iterable[FrequencyTableRow] | PrewhitenResult,
    *,
    delimiter: str = ",",
    decimals: int | None = None,
) -> str:
    """Render ``rows`` (or a whole result) as delimited text with a header line.

    Args:
        rows: Table rows, or a PrewhitenResult whose table is rendered
        delimiter: Single-character field separator
        decimals: Fixed number of decimals for float cells; full precision when None
    """
    if decimals is not None and decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    buf = StringIO()
    _write(buf, _rows_of(rows), delimiter, decimals)
    return buf.getvalue()


def write_frequency_table(
    rows: Iterable[FrequencyTableRow] | PrewhitenResult,
    path: str | Path,
    *,
    delimiter: str = ",",
    decimals: int | None = None,
) -> Path:
    """Write the table to ``path`` (parent directories are created). Returns the path."""
    out_path = Path(path).expanduser()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    text = format_frequency_table(rows, delimiter=delimiter, decimals=decimals)
    out_path.write_text(text, encoding="utf-8")
    return out_path


__all__ = ["FREQUENCY_TABLE_COLUMNS", "format_frequency_table", "write_frequency_table"]
