"""Tests for the built-in simulation catalog."""

import pytest

from stemlab_pkg.simulations import (
    get_simulation,
    list_simulations,
    run_simulation,
    sample_trajectory,
    simulation_key,
)


def outputs(name, overrides=None):
    return {r.id: r.value for r in run_simulation(name, overrides)}


class TestCatalog:
    def test_names(self):
        assert list_simulations() == [
            "electrolysis",
            "linear",
            "ohm_law",
            "parabola",
            "pendulum",
            "plant_cell",
            "projectile",
        ]

    @pytest.mark.parametrize("name", list_simulations())
    def test_every_definition_loads(self, name):
        definition = get_simulation(name)
        assert definition.title
        assert definition.formulas
        for spec in definition.parameters:
            assert spec.min <= spec.default_value <= spec.max

    def test_lookup_is_forgiving(self):
        assert get_simulation("Ohm-Law").title == "Ohm's law"

    def test_simulation_key(self):
        assert simulation_key("  Ohm-Law ") == "ohm_law"

    def test_unknown(self):
        with pytest.raises(KeyError):
            get_simulation("fusion_reactor")

    def test_fresh_copies(self):
        first = get_simulation("pendulum")
        first.parameters.clear()
        assert get_simulation("pendulum").parameters


class TestOutputs:
    def test_ohm_law(self):
        values = outputs("ohm_law")
        assert values["current"] == pytest.approx(0.3)
        assert values["power"] == pytest.approx(1.8)

    def test_ohm_law_overrides_clamped(self):
        values = outputs("ohm_law", {"voltage": 99, "resistance": 0})
        assert values["current"] == pytest.approx(12.0)

    def test_pendulum(self):
        values = outputs("pendulum")
        assert values["period"] == pytest.approx(2.007, abs=1e-3)
        assert values["frequency"] == pytest.approx(1 / values["period"])
        assert values["omega"] == pytest.approx(3.1305, abs=1e-4)
        # Release angle is read in degrees
        assert values["max_speed"] == pytest.approx(0.8172, abs=1e-3)

    def test_electrolysis(self):
        values = outputs("electrolysis")
        assert values["massCu"] == pytest.approx(0.597, abs=1e-3)
        assert values["volumeO2"] == pytest.approx(0.1045, abs=1e-4)
        assert values["charge"] == pytest.approx(1800)

    def test_plant_cell(self):
        values = outputs("plant_cell")
        assert values["cellSize"] == pytest.approx(50)
        assert values["visibility"] == pytest.approx(40)
        capped = outputs("plant_cell", {"zoom": 400, "stain": 100})
        assert capped["cellSize"] == pytest.approx(12.5)
        assert capped["visibility"] == pytest.approx(100)

    def test_projectile(self):
        values = outputs("projectile")
        assert values["range"] == pytest.approx(40.82, abs=0.005)
        assert values["max_height"] == pytest.approx(10.20, abs=0.005)
        assert values["flight_time"] == pytest.approx(2.886, abs=1e-3)

    def test_projectile_vertical_launch(self):
        values = outputs("projectile", {"theta": 90})
        assert values["range"] == pytest.approx(0, abs=1e-9)

    def test_parabola(self):
        values = outputs("parabola", {"a": 1, "b": -4, "c": 3})
        assert values["vertex_x"] == pytest.approx(2)
        assert values["vertex_y"] == pytest.approx(-1)
        assert values["discriminant"] == pytest.approx(4)

    def test_linear(self):
        values = outputs("linear", {"a": 2, "b": -4})
        assert values["x_intercept"] == pytest.approx(2)
        assert values["y_intercept"] == pytest.approx(-4)

    def test_linear_flat_line_falls_back(self):
        assert outputs("linear", {"a": 0, "b": 2})["x_intercept"] == 0.0

    def test_display(self):
        current = run_simulation("ohm_law")[0]
        assert current.display() == "0.30 A"
        assert current.display(3) == "0.300 A"


class TestTrajectory:
    def test_projectile(self):
        path = sample_trajectory("projectile")
        assert path.ok
        assert path.points[0] == (0.0, 0.0)
        assert all(y >= 0 for _, y in path.points)

    def test_name_is_normalised(self):
        path = sample_trajectory(" Projectile ")
        assert path.ok
        assert path.points == sample_trajectory("projectile").points

    def test_flat_launch(self):
        assert not sample_trajectory("projectile", {"theta": 0}).ok

    def test_no_trajectory(self):
        assert not sample_trajectory("ohm_law").ok
