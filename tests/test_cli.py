"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from termfractal import __version__
from termfractal.cli.main import main
from termfractal.io.config import CONFIG_ENV_VAR


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    return CliRunner()


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_render_prints_frame(runner):
    result = runner.invoke(main, ["-q", "render", "z^3 + c", "-w", "30", "-h", "10",
                                  "--ascii", "--no-color"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert len(lines) >= 10
    assert all(len(line) == 30 for line in lines[:10])


def test_render_stats(runner):
    result = runner.invoke(main, ["-q", "render", "julia:rabbit", "-w", "20", "-h", "8",
                                  "--no-color", "--supersample", "--stats"])
    assert result.exit_code == 0, result.output
    assert "Iterations:" in result.output
    assert "Supersample: 2x" in result.output
    assert "Cache: 1 entries, 0 hits, 1 misses" in result.output


def test_render_rejects_bad_equation(runner):
    result = runner.invoke(main, ["-q", "render", "sin(z) + c"])
    assert result.exit_code == 1
    assert "Cannot parse equation" in result.output


def test_render_rejects_degenerate_viewport(runner):
    result = runner.invoke(main, ["-q", "render", "--zoom", "0", "-w", "10", "-h", "5"])
    assert result.exit_code == 1
    assert "zoom" in result.output


def test_config_commands(runner, tmp_path):
    path = tmp_path / "termfractal.json"
    result = runner.invoke(main, ["init-config", str(path)])
    assert result.exit_code == 0
    assert json.loads(path.read_text())["fractal"]["default_max_iterations"] == 100

    assert runner.invoke(main, ["init-config", str(path)]).exit_code == 1
    assert runner.invoke(main, ["init-config", str(path), "--force"]).exit_code == 0

    result = runner.invoke(main, ["validate-config", str(path)])
    assert result.exit_code == 0
    assert "valid" in result.output

    result = runner.invoke(main, ["-q", "--config", str(path), "render", "tricorn",
                                  "-w", "12", "-h", "6", "--ascii", "--no-color"])
    assert result.exit_code == 0, result.output


def test_validate_config_reports_errors(runner, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"performance": {"max_cache_size": 0}}))
    result = runner.invoke(main, ["validate-config", str(path)])
    assert result.exit_code == 1
    assert "errors" in result.output


def test_list_fractals(runner):
    result = runner.invoke(main, ["list-fractals"])
    assert result.exit_code == 0
    for name in ("mandelbrot", "julia", "burning_ship", "tricorn", "multibrot", "rabbit"):
        assert name in result.output


def test_benchmark(runner):
    result = runner.invoke(main, ["-q", "benchmark", "--size", "20x10", "--iterations", "50"])
    assert result.exit_code == 0, result.output
    assert "cells/sec" in result.output


def test_benchmark_rejects_bad_size(runner):
    result = runner.invoke(main, ["-q", "benchmark", "--size", "large"])
    assert result.exit_code == 1


def test_system_info(runner):
    result = runner.invoke(main, ["system-info"])
    assert result.exit_code == 0
    assert "CPU cores" in result.output


@pytest.mark.parametrize("size_args", [["-w", "0", "-h", "3"], ["-w", "10", "-h", "0"]])
def test_render_rejects_zero_size(runner, size_args):
    result = runner.invoke(main, ["-q", "render", "mandelbrot", "--no-color"] + size_args)
    assert result.exit_code == 1
    assert "must be positive" in result.output


def test_render_rejects_zero_iterations(runner):
    result = runner.invoke(main, ["-q", "render", "--max-iter", "0", "-w", "10", "-h", "5"])
    assert result.exit_code == 1
    assert "max_iterations" in result.output


def test_render_falls_back_on_wrong_typed_env_config(runner, monkeypatch, tmp_path):
    path = tmp_path / "typed.json"
    path.write_text(json.dumps({"display": {"default_width": "wide"}}))
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    result = runner.invoke(main, ["-q", "render", "-w", "10", "-h", "4", "--ascii", "--no-color"])
    assert result.exit_code == 0, result.output


def test_explore_renders_requested_frames(runner):
    args = ["-q", "explore", "julia:dragon", "-n", "3", "-w", "16", "-h", "5",
            "--interval-ms", "0", "--seed", "4", "--ascii", "--no-color"]
    result = runner.invoke(main, args)
    assert result.exit_code == 0, result.output
    status = [line for line in result.output.splitlines() if line.startswith("Frame ")]
    assert [line.split()[1] for line in status] == ["1/3", "2/3", "3/3"]
    assert "Zoom: 1.00x" in status[0]
    assert "Zoom: 1.21x" in status[2]

    assert runner.invoke(main, args).output == result.output


def test_explore_rejects_zero_frames(runner):
    result = runner.invoke(main, ["explore", "-n", "0"])
    assert result.exit_code != 0
