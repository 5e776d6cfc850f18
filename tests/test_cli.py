"""Tests for the wave-compute command-line tool."""

import json

import pytest
from click.testing import CliRunner

from implicit_wave.cli.compute import main
from implicit_wave.io import HDF5ResultReader, read_matlab_snapshot

SMALL_RUN = [
    "--shape", "9", "9", "9",
    "--extent", "360", "360", "360",
    "--tmax", "0.5",
    "--interval", "10",
]


@pytest.fixture
def runner():
    return CliRunner()


class TestDryRun:
    def test_reference_configuration(self, runner):
        result = runner.invoke(main, ["--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert "45 steps" in result.output

    def test_config_file_with_override(self, runner, tmp_path):
        config = tmp_path / "run.json"
        config.write_text(json.dumps({"shape": [9, 9, 9], "extent": [360, 360, 360], "tmax": 0.5}))

        result = runner.invoke(main, ["--config", str(config), "--tmax", "0.25", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "11 steps" in result.output

    def test_cfl_reported_from_stepper(self, runner):
        result = runner.invoke(
            main, ["--shape", "9", "9", "9", "--extent", "360", "180", "360", "--dry-run"]
        )

        assert result.exit_code == 0, result.output
        assert "1.0000" in result.output
        assert "exceeds" not in result.output

    def test_invalid_grid(self, runner):
        result = runner.invoke(main, ["--shape", "2", "9", "9", "--dry-run"])

        assert result.exit_code == 1
        assert "Configuration Error" in result.output

    def test_unknown_key_in_config(self, runner, tmp_path):
        config = tmp_path / "run.json"
        config.write_text(json.dumps({"resolution": 1.0}))

        result = runner.invoke(main, ["--config", str(config), "--dry-run"])

        assert result.exit_code == 1

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(main, ["--config", str(tmp_path / "nope.json")])
        assert result.exit_code == 2

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestRun:
    def test_no_output(self, runner):
        result = runner.invoke(main, SMALL_RUN + ["--format", "none"])

        assert result.exit_code == 0, result.output
        assert "Simulation complete" in result.output
        assert "Steps: 22 of 22" in result.output

    def test_matlab_snapshots(self, runner, tmp_path):
        out = tmp_path / "snapshots"
        result = runner.invoke(main, SMALL_RUN + ["--format", "matlab", "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in out.iterdir()) == ["tmp_Bvec_10.m", "tmp_Bvec_20.m"]
        assert read_matlab_snapshot(out / "tmp_Bvec_20.m").shape == (9, 9, 9)

    def test_hdf5_output(self, runner, tmp_path):
        filename = tmp_path / "run.h5"
        result = runner.invoke(
            main, SMALL_RUN + ["--format", "hdf5", "-o", str(filename), "--solver", "direct"]
        )

        assert result.exit_code == 0, result.output
        with HDF5ResultReader(filename) as reader:
            assert reader.get_iterations() == [10, 20]
            assert reader.get_metadata()["metadata"]["state"] == "completed"
            assert list(reader.load_diagnostics()["iteration"]) == [10, 20]

    def test_decomposed_run(self, runner):
        result = runner.invoke(main, SMALL_RUN + ["--parts", "2", "2", "1", "--format", "none"])

        assert result.exit_code == 0, result.output
        assert "Simulation complete" in result.output
