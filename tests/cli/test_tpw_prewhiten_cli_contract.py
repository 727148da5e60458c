from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import pytest
from click.testing import CliRunner

import tess_prewhiten.cli.prewhiten_cli as prewhiten_cli
from tess_prewhiten.cli.common_cli import (
    EXIT_INPUT_ERROR,
    EXIT_RUNTIME_ERROR,
    EXIT_WORKER_TIMEOUT,
    load_time_series_file,
    resolve_optional_output_path,
)
from tess_prewhiten.cli.main_cli import cli
from tess_prewhiten.cli.prewhiten_cli import periodogram_command, prewhiten_command
from tess_prewhiten.errors import DegenerateFitError, WorkerTimeoutError

# Grid used by every invocation below: --fmin 0.1 --fmax 5 --samples 1000.
_GRID_ARGS = ["--fmin", "0.1", "--fmax", "5", "--samples", "1000"]
_F1 = 0.1 + 4.9 * 120 / 1000
_F2 = 0.1 + 4.9 * 450 / 1000


def _write_light_curve(path: Path) -> Path:
    rng = np.random.default_rng(8)
    time = np.arange(500) * 0.1
    flux = (
        50.0
        + 4.0 * np.sin(2 * np.pi * _F1 * time + 0.4)
        + 1.5 * np.sin(2 * np.pi * _F2 * time + 2.0)
        + rng.normal(0.0, 0.05, len(time))
    )
    np.savetxt(path, np.column_stack([time, flux]), delimiter=",", header="time,flux", comments="")
    return path


def test_tpw_prewhiten_fast_payload(tmp_path: Path) -> None:
    input_path = _write_light_curve(tmp_path / "lc.csv")
    out_path = tmp_path / "run.json"
    table_path = tmp_path / "tables" / "freqs.csv"

    runner = CliRunner()
    result = runner.invoke(
        prewhiten_command,
        [
            "--input",
            str(input_path),
            *_GRID_ARGS,
            "--workers",
            "1",
            "--snr-threshold",
            "0",
            "--max-extractions",
            "2",
            "--table-out",
            str(table_path),
            "--out",
            str(out_path),
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert payload["schema_version"] == "cli.prewhiten.v1"
    assert payload["result"]["n_components"] == 2
    assert payload["result"]["stop_reason"] == "max_extractions"
    assert payload["result"]["mode"] == "fast"
    assert payload["result"]["seed"] is None
    frequencies = [c["frequency"] for c in payload["result"]["components"]]
    assert frequencies == pytest.approx([_F1, _F2], abs=5e-3)
    assert payload["result"]["final_spectrum"]["n_frequencies"] == 1000
    assert payload["inputs_summary"]["n_points"] == 500
    assert payload["inputs_summary"]["rows_skipped"] == 1
    assert payload["inputs_summary"]["mean_flux"] == pytest.approx(50.0, abs=0.1)
    assert payload["provenance"]["preset"] == "fast"
    assert payload["provenance"]["options"]["periodogram_samples"] == 1000
    assert payload["provenance"]["options"]["max_extractions"] == 2
    assert payload["provenance"]["table_out"] == str(table_path)

    table_lines = table_path.read_text(encoding="utf-8").splitlines()
    assert table_lines[0].startswith("index,frequency,")
    assert len(table_lines) == 3


def test_tpw_prewhiten_passes_options_to_config(monkeypatch, tmp_path: Path) -> None:
    input_path = _write_light_curve(tmp_path / "lc.csv")
    seen: dict[str, Any] = {}

    real_run = prewhiten_cli.run_prewhiten

    def _spy_run_prewhiten(**kwargs: Any) -> Any:
        seen.update(kwargs)
        return real_run(**kwargs)

    monkeypatch.setattr("tess_prewhiten.cli.prewhiten_cli.run_prewhiten", _spy_run_prewhiten)

    runner = CliRunner()
    result = runner.invoke(
        prewhiten_command,
        [
            "-i",
            str(input_path),
            *_GRID_ARGS,
            "--workers",
            "1",
            "--snr-threshold",
            "0",
            "--max-extractions",
            "1",
            "--reference-epoch",
            "2.5",
            "--out",
            str(tmp_path / "run.json"),
        ],
    )

    assert result.exit_code == 0, result.output
    config = seen["config"]
    assert config.reference_epoch == 2.5
    assert config.frequency_range == (0.1, 5.0)
    assert config.workers == 1
    assert len(seen["time"]) == 500


def test_tpw_prewhiten_invalid_range_is_input_error(tmp_path: Path) -> None:
    input_path = _write_light_curve(tmp_path / "lc.csv")
    runner = CliRunner()
    result = runner.invoke(
        prewhiten_command, ["-i", str(input_path), "--fmin", "5", "--fmax", "1"]
    )
    assert result.exit_code == EXIT_INPUT_ERROR
    assert "frequency_max" in result.output


def test_tpw_prewhiten_too_few_rows_is_input_error(tmp_path: Path) -> None:
    input_path = tmp_path / "short.csv"
    input_path.write_text("time,flux\n0.0,1.0\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(prewhiten_command, ["-i", str(input_path)])
    assert result.exit_code == EXIT_INPUT_ERROR
    assert "Invalid time series" in result.output


@pytest.mark.parametrize(
    "exc,exit_code",
    [
        (WorkerTimeoutError([1], 0.5), EXIT_WORKER_TIMEOUT),
        (DegenerateFitError("flat"), EXIT_RUNTIME_ERROR),
    ],
)
def test_tpw_prewhiten_runtime_errors_map_to_exit_codes(
    monkeypatch, tmp_path: Path, exc: Exception, exit_code: int
) -> None:
    input_path = _write_light_curve(tmp_path / "lc.csv")

    def _raise(**_kwargs: Any) -> Any:
        raise exc

    monkeypatch.setattr("tess_prewhiten.cli.prewhiten_cli.run_prewhiten", _raise)
    runner = CliRunner()
    result = runner.invoke(prewhiten_command, ["-i", str(input_path)])
    assert result.exit_code == exit_code
    assert str(exc) in result.output


def test_tpw_periodogram_summary_to_stdout(tmp_path: Path) -> None:
    input_path = _write_light_curve(tmp_path / "lc.csv")
    runner = CliRunner()
    result = runner.invoke(periodogram_command, ["-i", str(input_path), *_GRID_ARGS])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["schema_version"] == "cli.periodogram.v1"
    assert payload["result"]["n_frequencies"] == 1000
    assert payload["result"]["peak_frequency"] == pytest.approx(_F1, abs=5e-3)
    assert "frequencies" not in payload["result"]
    assert payload["provenance"]["options"]["include_spectrum"] is False


def test_tpw_periodogram_include_spectrum(tmp_path: Path) -> None:
    input_path = _write_light_curve(tmp_path / "lc.csv")
    out_path = tmp_path / "pgram.json"
    runner = CliRunner()
    result = runner.invoke(
        periodogram_command,
        ["-i", str(input_path), *_GRID_ARGS, "--workers", "2", "--include-spectrum", "--out", str(out_path)],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert len(payload["result"]["frequencies"]) == 1000
    assert len(payload["result"]["powers"]) == 1000
    assert payload["result"]["frequencies"][0] == pytest.approx(0.1)


def test_tpw_group_lists_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "prewhiten" in result.output
    assert "periodogram" in result.output


def test_load_time_series_file_whitespace_columns(tmp_path: Path) -> None:
    path = tmp_path / "lc.dat"
    path.write_text("# t flux err\n2.0 5.0 0.1\n1.0 4.0 0.1\n3.0 nan 0.1\n", encoding="utf-8")
    series, dropped = load_time_series_file(path)
    assert dropped == 1
    assert series.time.tolist() == [1.0, 2.0]
    assert series.flux.tolist() == [4.0, 5.0]

    series, _ = load_time_series_file(path, flux_column=2)
    assert series.flux.tolist() == [0.1, 0.1, 0.1]


def test_resolve_optional_output_path() -> None:
    assert resolve_optional_output_path(None) is None
    assert resolve_optional_output_path("-") is None
    assert resolve_optional_output_path("  ") is None
    assert resolve_optional_output_path("out.json") == Path("out.json")
