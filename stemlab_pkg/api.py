"""Public API for stemlab.

The evaluation helpers (``evaluate``, ``diagnose``, ``validate_formula``,
``missing``, ``sample``, ``plot``, ``render``) return plain values or structured
objects and never raise on a formula that fails to parse or evaluate.
``run_simulation`` and ``simulate`` raise on an unknown simulation or an
invalid definition.
"""

from __future__ import annotations

from typing import Any, Mapping

from .config import DEFAULT_SAMPLE_STEP, DEFAULT_X_MAX, DEFAULT_X_MIN
from .definitions import SimulationDefinition, run_definition
from .evaluator import evaluate as _evaluate
from .evaluator import evaluate_with_diagnostics, missing_parameters
from .logging_config import get_logger
from .parser import parse_formula
from .plotting import plot_formula
from .sampler import sample_curve
from .simulations import get_simulation
from .symbolic import render_formula
from .types import (
    CurveResult,
    EvalResult,
    ParseError,
    PlotResult,
    SimulationResult,
    ValidationError,
)

logger = get_logger("api")


def evaluate(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    angle_units: Mapping[str, str] | None = None,
) -> float:
    """Evaluate a formula; 0 when it cannot be evaluated.

    Args:
        formula: Formula string (e.g. "voltage/resistance")
        parameters: Parameter name -> value
        angle_units: Optional parameter name -> "deg"/"rad" (disables the
            trig naming heuristic)

    Returns:
        Finite float result, or 0.0

    Example:
        >>> from stemlab_pkg.api import evaluate
        >>> evaluate("a+b", {"a": 2, "b": 3})
        5.0
        >>> evaluate("sqrt(-1)")
        0.0
    """
    return _evaluate(formula, parameters, angle_units)


def diagnose(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    angle_units: Mapping[str, str] | None = None,
) -> EvalResult:
    """Evaluate a formula and report why it failed, if it did.

    Example:
        >>> from stemlab_pkg.api import diagnose
        >>> result = diagnose("speed*2", {})
        >>> result.kind
        'unknown_identifier'
    """
    return evaluate_with_diagnostics(formula, parameters, angle_units)


def validate_formula(formula: str) -> tuple[bool, str | None]:
    """Check that a formula parses, without evaluating it.

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> from stemlab_pkg.api import validate_formula
        >>> validate_formula("2*pi*sqrt(length/gravity)")
        (True, None)
        >>> validate_formula("2 +")[0]
        False
    """
    try:
        parse_formula(formula)
        return True, None
    except (ValidationError, ParseError) as e:
        return False, str(e)
    except (TypeError, RecursionError) as e:
        return False, f"Validation error: {e}"


def missing(formula: str, parameters: Mapping[str, float] | None = None) -> list[str]:
    """Parameters a formula still needs, or an empty list when it does not parse.

    Example:
        >>> from stemlab_pkg.api import missing
        >>> missing("mass*g", {"g": 9.8})
        ['mass']
    """
    try:
        return missing_parameters(formula, parameters)
    except (ValidationError, ParseError, TypeError, RecursionError) as e:
        logger.debug(f"Cannot list parameters of {formula!r}: {e}")
        return []


def sample(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    x_min: float = DEFAULT_X_MIN,
    x_max: float = DEFAULT_X_MAX,
    step: float = DEFAULT_SAMPLE_STEP,
    variable: str = "x",
) -> CurveResult:
    """Sample a curve equation across a domain.

    Example:
        >>> from stemlab_pkg.api import sample
        >>> len(sample("y = x^2").points)
        101
    """
    return sample_curve(formula, parameters, x_min, x_max, step, variable)


def plot(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    x_min: float = DEFAULT_X_MIN,
    x_max: float = DEFAULT_X_MAX,
    step: float = DEFAULT_SAMPLE_STEP,
    ascii: bool = False,
    output_path: str | None = None,
) -> PlotResult:
    """Plot a curve equation.

    Args:
        formula: Curve equation, optionally starting with "y ="
        parameters: Other parameter values the curve refers to
        x_min: Minimum x value
        x_max: Maximum x value
        step: Sampling step
        ascii: Return ASCII plot text instead of writing an image
        output_path: Image path (default: temporary PNG file)

    Returns:
        PlotResult

    Example:
        >>> from stemlab_pkg.api import plot
        >>> result = plot("y = a*x^2", {"a": 1}, x_min=-5, x_max=5, ascii=True)
        >>> result.ok
        True
    """
    return plot_formula(
        formula, parameters, x_min, x_max, step, ascii=ascii, output_path=output_path
    )


def run_simulation(
    name: str, overrides: Mapping[str, float] | None = None
) -> list[SimulationResult]:
    """Compute the outputs of a built-in simulation.

    Raises:
        KeyError: Unknown simulation name

    Example:
        >>> from stemlab_pkg.api import run_simulation
        >>> [r.display() for r in run_simulation("ohm_law")]
        ['0.30 A', '1.80 W']
    """
    return run_definition(get_simulation(name), overrides)


def simulate(
    definition: SimulationDefinition | Mapping[str, Any] | str,
    overrides: Mapping[str, float] | None = None,
) -> list[SimulationResult]:
    """Compute the outputs of a definition given as an object, dict or JSON text.

    Raises:
        ValidationError: The definition is invalid
    """
    if isinstance(definition, str):
        definition = SimulationDefinition.from_text(definition)
    elif not isinstance(definition, SimulationDefinition):
        definition = SimulationDefinition.from_dict(definition)
    return run_definition(definition, overrides)


def render(formula: str, style: str = "unicode") -> str | None:
    """Formula rendered for display, or None when it does not parse."""
    try:
        return render_formula(formula, style)
    except (ValidationError, ParseError, TypeError, RecursionError) as e:
        logger.debug(f"Cannot render {formula!r}: {e}")
        return None
