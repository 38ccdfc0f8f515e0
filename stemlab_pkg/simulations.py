"""Built-in formula-driven simulations.

Each experiment of the lab library is a ``SimulationDefinition`` whose
outputs are plain formulas, so the built-ins run through exactly the same
evaluator as generated experiments.
"""

from __future__ import annotations

from typing import Any, Mapping

from .config import DEFAULT_SAMPLE_COUNT
from .definitions import SimulationDefinition, run_definition
from .evaluator import evaluate
from .sampler import sample_parametric
from .types import CurveResult, SimulationResult

_CATALOG: dict[str, dict[str, Any]] = {
    "ohm_law": {
        "title": "Ohm's law",
        "subject": "Physics",
        "difficulty_level": "Easy",
        "short_description": "Vary voltage and resistance and watch current and power.",
        "simulation_type": "circuit",
        "simulation_config": "I = U/R",
        "estimated_time": 15,
        "parameters": [
            {"id": "voltage", "name": "Voltage", "unit": "V",
             "min": 0, "max": 12, "step": 0.5, "defaultValue": 6},
            {"id": "resistance", "name": "Resistance", "unit": "Ω",
             "min": 1, "max": 100, "step": 1, "defaultValue": 20},
        ],
        "formulas": [
            {"outputId": "current", "outputName": "Current", "outputUnit": "A",
             "formula": "voltage/resistance"},
            {"outputId": "power", "outputName": "Power", "outputUnit": "W",
             "formula": "voltage^2/resistance"},
        ],
    },
    "pendulum": {
        "title": "Simple pendulum",
        "subject": "Physics",
        "difficulty_level": "Medium",
        "short_description": "Period of a pendulum depends on its length and on gravity.",
        "simulation_type": "pendulum",
        "simulation_config": "T = 2π√(l/g)",
        "estimated_time": 20,
        "parameters": [
            {"id": "length", "name": "String length", "unit": "m",
             "min": 0.1, "max": 2, "step": 0.1, "defaultValue": 1},
            {"id": "angle", "name": "Release angle", "unit": "°",
             "min": 5, "max": 45, "step": 5, "defaultValue": 15},
            {"id": "gravity", "name": "Gravity", "unit": "m/s²",
             "min": 1, "max": 20, "step": 0.5, "defaultValue": 9.8},
        ],
        "formulas": [
            {"outputId": "period", "outputName": "Period", "outputUnit": "s",
             "formula": "2*pi*sqrt(length/gravity)"},
            {"outputId": "frequency", "outputName": "Frequency", "outputUnit": "Hz",
             "formula": "1/(2*pi*sqrt(length/gravity))"},
            {"outputId": "omega", "outputName": "Angular frequency", "outputUnit": "rad/s",
             "formula": "sqrt(gravity/length)"},
            {"outputId": "max_speed", "outputName": "Speed at the bottom", "outputUnit": "m/s",
             "formula": "sqrt(2*gravity*length*(1 - cos(angle)))"},
        ],
    },
    "electrolysis": {
        "title": "Copper sulfate electrolysis",
        "subject": "Chemistry",
        "difficulty_level": "Medium",
        "short_description": "Faraday's law: deposited copper and released oxygen.",
        "simulation_type": "chemistry",
        "simulation_config": "m = (M×I×t)/(n×F)",
        "estimated_time": 25,
        "parameters": [
            {"id": "current", "name": "Current", "unit": "A",
             "min": 0.1, "max": 5, "step": 0.1, "defaultValue": 1},
            {"id": "time", "name": "Time", "unit": "min",
             "min": 1, "max": 60, "step": 1, "defaultValue": 30},
        ],
        "formulas": [
            {"outputId": "massCu", "outputName": "Copper deposited", "outputUnit": "g",
             "formula": "(64*current*time*60)/(2*96485)"},
            {"outputId": "volumeO2", "outputName": "Oxygen released (STP)", "outputUnit": "L",
             "formula": "((32*current*time*60)/(4*96485))/32*22.4"},
            {"outputId": "charge", "outputName": "Charge", "outputUnit": "C",
             "formula": "current*time*60"},
        ],
    },
    "plant_cell": {
        "title": "Plant cell under the microscope",
        "subject": "Biology",
        "difficulty_level": "Easy",
        "short_description": "Magnification and stain decide what the cell looks like.",
        "simulation_type": "default",
        "estimated_time": 15,
        "parameters": [
            {"id": "zoom", "name": "Magnification", "unit": "x",
             "min": 100, "max": 400, "step": 50, "defaultValue": 100},
            {"id": "stain", "name": "Stain", "unit": "%",
             "min": 0, "max": 100, "step": 10, "defaultValue": 50},
        ],
        "formulas": [
            {"outputId": "cellSize", "outputName": "Image size", "outputUnit": "μm",
             "formula": "100/zoom*50"},
            # min(100, v) written as (100 + v - |100 - v|)/2
            {"outputId": "visibility", "outputName": "Sharpness", "outputUnit": "%",
             "formula": "(100 + (zoom/4 + stain*0.3) - abs(100 - (zoom/4 + stain*0.3)))/2"},
        ],
    },
    "projectile": {
        "title": "Projectile motion",
        "subject": "Physics",
        "difficulty_level": "Medium",
        "short_description": "Launch speed and angle decide range, height and flight time.",
        "simulation_type": "projectile",
        "simulation_config": "R = v0²·sin(2θ)/g",
        "estimated_time": 20,
        "parameters": [
            {"id": "v0", "name": "Launch speed", "unit": "m/s",
             "min": 1, "max": 50, "step": 1, "defaultValue": 20},
            {"id": "theta", "name": "Launch angle", "unit": "°",
             "min": 0, "max": 90, "step": 1, "defaultValue": 45},
            {"id": "g", "name": "Gravity", "unit": "m/s²",
             "min": 1, "max": 20, "step": 0.1, "defaultValue": 9.8},
        ],
        "formulas": [
            {"outputId": "range", "outputName": "Range", "outputUnit": "m",
             "formula": "(v0^2 * sin(2*theta)) / g"},
            {"outputId": "max_height", "outputName": "Maximum height", "outputUnit": "m",
             "formula": "v0^2 * sin(theta)^2 / (2*g)"},
            {"outputId": "flight_time", "outputName": "Flight time", "outputUnit": "s",
             "formula": "2*v0*sin(theta)/g"},
        ],
    },
    "parabola": {
        "title": "Quadratic function",
        "subject": "Mathematics",
        "difficulty_level": "Easy",
        "short_description": "Coefficients a, b and c shape the parabola y = ax² + bx + c.",
        "simulation_type": "parabola",
        "curve_equation": "y = a*x^2 + b*x + c",
        "estimated_time": 15,
        "parameters": [
            {"id": "a", "name": "a", "unit": "", "min": -5, "max": 5, "step": 0.5, "defaultValue": 1},
            {"id": "b", "name": "b", "unit": "", "min": -10, "max": 10, "step": 1, "defaultValue": 0},
            {"id": "c", "name": "c", "unit": "", "min": -10, "max": 10, "step": 1, "defaultValue": 0},
        ],
        "formulas": [
            {"outputId": "vertex_x", "outputName": "Vertex x", "outputUnit": "",
             "formula": "-b/(2*a)"},
            {"outputId": "vertex_y", "outputName": "Vertex y", "outputUnit": "",
             "formula": "c - b^2/(4*a)"},
            {"outputId": "discriminant", "outputName": "Discriminant", "outputUnit": "",
             "formula": "b^2 - 4*a*c"},
        ],
    },
    "linear": {
        "title": "Linear function",
        "subject": "Mathematics",
        "difficulty_level": "Easy",
        "short_description": "Slope and intercept of the line y = ax + b.",
        "simulation_type": "linear",
        "curve_equation": "y = a*x + b",
        "estimated_time": 10,
        "parameters": [
            {"id": "a", "name": "Slope", "unit": "", "min": -5, "max": 5, "step": 0.5, "defaultValue": 1},
            {"id": "b", "name": "Intercept", "unit": "", "min": -10, "max": 10, "step": 1, "defaultValue": 0},
        ],
        "formulas": [
            {"outputId": "x_intercept", "outputName": "x-intercept", "outputUnit": "",
             "formula": "-b/a"},
            {"outputId": "y_intercept", "outputName": "y-intercept", "outputUnit": "",
             "formula": "b"},
        ],
    },
}

# name -> (x(t), y(t), formula for the end of the time range)
TRAJECTORIES = {
    "projectile": (
        "v0*cos(theta)*t",
        "v0*sin(theta)*t - 0.5*g*t^2",
        "2*v0*sin(theta)/g",
    ),
}


def list_simulations() -> list[str]:
    """Names of the built-in simulations."""
    return sorted(_CATALOG)


def simulation_key(name: str) -> str:
    """Catalog key for a user-typed simulation name ("Ohm-Law" -> "ohm_law")."""
    return name.strip().lower().replace("-", "_")


def get_simulation(name: str) -> SimulationDefinition:
    """Definition of a built-in simulation (a fresh copy on every call).

    Raises:
        KeyError: Unknown simulation name
    """
    key = simulation_key(name)
    if key not in _CATALOG:
        raise KeyError(f"Unknown simulation '{name}'. Available: {', '.join(list_simulations())}")
    return SimulationDefinition.from_dict(_CATALOG[key], strict=True)


def run_simulation(
    name: str, overrides: Mapping[str, float] | None = None
) -> list[SimulationResult]:
    """Compute every output of a built-in simulation."""
    return run_definition(get_simulation(name), overrides)


def sample_trajectory(
    name: str,
    overrides: Mapping[str, float] | None = None,
    count: int = DEFAULT_SAMPLE_COUNT,
) -> CurveResult:
    """Sample the (x, y) path of a moving-body simulation above the ground.

    Example:
        >>> path = sample_trajectory("projectile")
        >>> path.points[0]
        (0.0, 0.0)
    """
    key = simulation_key(name)
    if key not in TRAJECTORIES:
        return CurveResult(ok=False, error=f"Simulation '{name}' has no trajectory")
    x_formula, y_formula, end_formula = TRAJECTORIES[key]
    definition = get_simulation(name)
    values = definition.parameter_set(overrides)
    t_max = evaluate(end_formula, values)
    if t_max <= 0:
        return CurveResult(ok=False, error="Body never leaves the ground")
    return sample_parametric(
        x_formula, y_formula, values, t_max=t_max, count=count, y_floor=0.0
    )
