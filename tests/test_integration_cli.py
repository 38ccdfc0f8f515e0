"""Integration tests for CLI functionality."""

import json
import os
import subprocess
import sys

import pytest

from stemlab_pkg.cli import main_entry


def run_cli(*args, timeout=30):
    return subprocess.run(
        [sys.executable, "-m", "stemlab_pkg.cli", *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        timeout=timeout,
        env={**os.environ, "PYTHONIOENCODING": "utf-8"},
    )


def test_cli_version():
    """Test --version flag."""
    result = run_cli("--version")
    assert result.returncode == 0
    assert result.stdout.strip() != ""


def test_cli_health_check():
    """Test --health-check command."""
    result = run_cli("--health-check", timeout=60)
    assert result.returncode in [0, 1]
    assert "health check" in result.stdout.lower()
    assert "[OK] SymPy" in result.stdout
    assert "agrees with SymPy" in result.stdout


def test_cli_eval_human():
    result = run_cli("-e", "voltage/resistance", "-P", "voltage=6", "-P", "resistance=20")
    assert result.returncode == 0
    assert result.stdout.strip() == "0.30"


def test_cli_eval_precision():
    result = run_cli("-e", "2*pi*sqrt(length/gravity)", "-P", "length=1", "-P", "gravity=9.8", "-p", "3")
    assert result.returncode == 0
    assert result.stdout.strip() == "2.007"


def test_cli_eval_json():
    result = run_cli("--eval", "(v0^2 * sin(2*theta)) / g", "-P", "v0=20", "-P", "theta=45",
                     "-P", "g=9.81", "--format", "json")
    assert result.returncode == 0
    data = json.loads(result.stdout)
    assert data["ok"] is True
    assert data["value"] == pytest.approx(40.77, abs=0.005)
    assert data["display"] == "40.77"


def test_cli_failure_prints_zero():
    result = run_cli("-e", "1/0")
    assert result.returncode == 0
    assert result.stdout.strip() == "0.00"


def test_cli_diagnostics_failure():
    result = run_cli("-e", "mass*g", "--diagnostics")
    assert result.returncode == 1
    assert "unknown_identifier" in result.stdout
    assert "mass" in result.stdout
    assert "Missing parameters: mass" in result.stdout


def test_cli_diagnostics_json():
    result = run_cli("-e", "sqrt(-1)", "--diagnostics", "--format", "json")
    assert result.returncode == 1
    data = json.loads(result.stdout)
    assert data["ok"] is False
    assert data["error_code"] == "DOMAIN_ERROR"
    assert data["kind"] == "numeric_domain"
    assert "missing" not in data


def test_cli_bad_param():
    result = run_cli("-e", "x", "-P", "x")
    assert result.returncode == 2
    assert "NAME=VALUE" in result.stderr


def test_cli_list_simulations():
    result = run_cli("--list-simulations")
    assert result.returncode == 0
    assert "projectile" in result.stdout
    assert "ohm_law" in result.stdout


def test_cli_simulation_json():
    result = run_cli("--simulation", "ohm_law", "-P", "voltage=12", "--format", "json")
    assert result.returncode == 0
    data = json.loads(result.stdout)
    values = {item["id"]: item["value"] for item in data["results"]}
    assert values["current"] == pytest.approx(0.6)


def test_cli_simulation_human():
    result = run_cli("--simulation", "pendulum")
    assert result.returncode == 0
    assert "Period: 2.01 s" in result.stdout


def test_cli_unknown_simulation():
    result = run_cli("--simulation", "nope")
    assert result.returncode == 1
    assert "Unknown simulation" in result.stdout


def test_cli_definition_file(tmp_path):
    path = tmp_path / "density.json"
    path.write_text(
        json.dumps(
            {
                "title": "Density",
                "parameters": [{"id": "m", "min": 1, "max": 10, "defaultValue": 6}],
                "formulas": [{"outputId": "d", "outputName": "Density", "outputUnit": "kg/L",
                              "formula": "m/2"}],
            }
        ),
        encoding="utf-8",
    )
    result = run_cli("--definition", str(path))
    assert result.returncode == 0
    assert "Density: 3.00 kg/L" in result.stdout


def test_cli_invalid_definition_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("not json", encoding="utf-8")
    result = run_cli("--definition", str(path))
    assert result.returncode == 1
    assert "Error" in result.stdout


def test_cli_ascii_plot():
    result = run_cli("-e", "y = x^2", "--plot", "--ascii", "--x-min", "-3", "--x-max", "3")
    assert result.returncode == 0
    assert "*" in result.stdout


def test_cli_simulation_trajectory_plot():
    result = run_cli("--simulation", "Projectile", "--plot", "--ascii")
    assert result.returncode == 0
    assert "*" in result.stdout


def test_main_entry_no_arguments(capsys):
    assert main_entry([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_main_entry_in_process(capsys):
    assert main_entry(["-e", "2^3^2"]) == 0
    assert capsys.readouterr().out.strip() == "512.00"
