"""Formula evaluation over a parameter set.

``evaluate`` is a total function: every failure (syntax error, unknown
identifier, non-finite arithmetic) collapses to the fallback value 0 so a
broken formula degrades a results panel instead of crashing a simulation.
``evaluate_with_diagnostics`` runs the same evaluation and reports why it
failed.

Arithmetic follows IEEE-754 doubles: division by zero yields an infinity or
NaN rather than raising, and only the final result is checked for
finiteness.

Trig arguments are radians unless the call was written with an angle-like
argument (its text contains ``theta``, ``angle`` or ``°``), in which case the
argument is taken as degrees. Passing ``angle_units`` replaces that naming
heuristic with explicit per-parameter units.
"""

from __future__ import annotations

import math
from typing import Mapping

from .config import ANGLE_UNITS, CONSTANTS, FALLBACK_VALUE, TRIG_FUNCTIONS
from .logging_config import get_logger
from .parser import (
    Call,
    Chain,
    Degrees,
    Name,
    Node,
    Number,
    Power,
    UnaryOp,
    formula_identifiers,
    parse_formula,
)
from .types import EvalResult, EvaluationError, ParseError, ValidationError

logger = get_logger("evaluator")

DEG_TO_RAD = math.pi / 180


def _divide(left: float, right: float) -> float:
    try:
        return left / right
    except ZeroDivisionError:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)


def _power(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        negative = base < 0 and exponent.is_integer() and exponent % 2 == 1
        return -math.inf if negative else math.inf
    except ValueError:
        if base == 0 and exponent < 0:
            return math.inf
        # Negative base with a fractional exponent
        return math.nan


def _unary_math(func):
    def apply(value: float) -> float:
        try:
            return func(value)
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf

    return apply


FUNCTIONS = {
    "sin": _unary_math(math.sin),
    "cos": _unary_math(math.cos),
    "tan": _unary_math(math.tan),
    "sqrt": _unary_math(math.sqrt),
    "abs": abs,
    "pow": _power,
}

BINARY_OPERATORS = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _divide,
}


def _check_angle_units(angle_units: Mapping[str, str] | None) -> dict[str, str] | None:
    if angle_units is None:
        return None
    checked = {}
    for name, unit in angle_units.items():
        unit_key = str(unit).lower()
        if unit_key not in ANGLE_UNITS:
            raise EvaluationError(
                f"Unknown angle unit {unit!r} for parameter '{name}'", "INVALID_PARAMETER"
            )
        checked[name] = unit_key
    return checked


class _Evaluator:
    """Walks one AST against one parameter set. Holds no state between calls."""

    def __init__(
        self,
        parameters: Mapping[str, float],
        angle_units: dict[str, str] | None = None,
    ):
        self.parameters = parameters
        self.angle_units = angle_units
        self.first_issue: str | None = None

    def note(self, issue: str) -> None:
        if self.first_issue is None:
            self.first_issue = issue

    def resolve(self, name: str, in_trig: bool) -> float:
        if name in self.parameters:
            raw = self.parameters[name]
            try:
                value = float(raw)
            except (TypeError, ValueError) as e:
                raise EvaluationError(
                    f"Parameter '{name}' has no numeric value ({raw!r})", "INVALID_PARAMETER"
                ) from e
            if (
                in_trig
                and self.angle_units is not None
                and self.angle_units.get(name) == "deg"
            ):
                value = value * DEG_TO_RAD
            return value
        if name.lower() in CONSTANTS:
            return CONSTANTS[name.lower()]
        raise EvaluationError(f"Unknown identifier '{name}'", "UNKNOWN_IDENTIFIER")

    def visit(self, node: Node, in_trig: bool = False) -> float:
        if isinstance(node, Number):
            return node.value
        if isinstance(node, Name):
            return self.resolve(node.name, in_trig)
        if isinstance(node, UnaryOp):
            value = self.visit(node.operand, in_trig)
            return -value if node.op == "-" else value
        if isinstance(node, Chain):
            acc = self.visit(node.head, in_trig)
            for op, operand in node.tail:
                right = self.visit(operand, in_trig)
                if op == "/" and right == 0:
                    self.note("Division by zero")
                acc = BINARY_OPERATORS[op](acc, right)
            return acc
        if isinstance(node, Power):
            base = self.visit(node.base, in_trig)
            exponent = self.visit(node.exponent, in_trig)
            result = _power(base, exponent)
            if not math.isfinite(result) and math.isfinite(base) and math.isfinite(exponent):
                self.note(f"{base!r} ^ {exponent!r} is not a finite number")
            return result
        if isinstance(node, Degrees):
            value = self.visit(node.operand, in_trig)
            if in_trig and self.angle_units is not None:
                value = value * DEG_TO_RAD
            return value
        if isinstance(node, Call):
            return self.call(node, in_trig)
        raise EvaluationError(f"Unsupported node {type(node).__name__}", "SYNTAX_ERROR")

    def call(self, node: Call, in_trig: bool) -> float:
        is_trig = node.name in TRIG_FUNCTIONS
        args = [self.visit(arg, in_trig or is_trig) for arg in node.args]
        if is_trig and node.degrees and self.angle_units is None:
            args[0] = args[0] * math.pi / 180
        result = FUNCTIONS[node.name](*args)
        if not math.isfinite(result) and all(math.isfinite(a) for a in args):
            self.note(f"{node.name}({node.argument_text}) is outside the function's domain")
        return result

    def evaluate(self, tree: Node) -> float:
        value = self.visit(tree)
        if not math.isfinite(value):
            raise EvaluationError(
                self.first_issue or f"Result is not a finite number ({value!r})",
                "DOMAIN_ERROR",
            )
        return value


def evaluate_with_diagnostics(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    angle_units: Mapping[str, str] | None = None,
) -> EvalResult:
    """Evaluate a formula and report the failure reason, if any.

    Args:
        formula: Formula string (e.g. "(v0^2 * sin(2*theta)) / g")
        parameters: Parameter name -> numeric value. Read only.
        angle_units: Optional parameter name -> "deg"/"rad". When given, the
            naming heuristic for trig arguments is disabled and parameters
            tagged "deg" are converted to radians inside trig arguments.

    Returns:
        EvalResult. ``value`` equals what ``evaluate`` returns.
    """
    try:
        tree = parse_formula(formula)
        value = _Evaluator(parameters or {}, _check_angle_units(angle_units)).evaluate(tree)
    except (ValidationError, ParseError, EvaluationError) as e:
        logger.debug("Formula %r fell back to %s: %s", formula, FALLBACK_VALUE, e)
        return EvalResult(ok=False, value=FALLBACK_VALUE, error=str(e), error_code=e.code)
    except RecursionError:
        logger.debug("Formula %r exceeded the interpreter recursion limit", formula)
        return EvalResult(
            ok=False,
            value=FALLBACK_VALUE,
            error="Formula too deeply nested",
            error_code="TOO_DEEP",
        )
    except (TypeError, AttributeError) as e:
        # Unhashable or non-string formula, or a parameter map without .get/.items
        return EvalResult(
            ok=False,
            value=FALLBACK_VALUE,
            error=f"Invalid input: {e}",
            error_code="SYNTAX_ERROR",
        )
    except Exception as e:
        logger.error(f"Unexpected evaluation error for {formula!r}: {e}", exc_info=True)
        return EvalResult(
            ok=False,
            value=FALLBACK_VALUE,
            error="Evaluation failed unexpectedly",
            error_code="SYNTAX_ERROR",
        )
    return EvalResult(ok=True, value=value)


def evaluate(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    angle_units: Mapping[str, str] | None = None,
) -> float:
    """Evaluate a formula to a finite float, or 0 when it cannot be evaluated.

    Never raises.

    Example:
        >>> evaluate("voltage/resistance", {"voltage": 6, "resistance": 20})
        0.3
        >>> evaluate("sin(theta)", {"theta": 90})
        1.0
        >>> evaluate("1/0")
        0.0
    """
    return evaluate_with_diagnostics(formula, parameters, angle_units).value


def missing_parameters(
    formula: str, parameters: Mapping[str, float] | None = None
) -> list[str]:
    """Names a formula reads that neither ``parameters`` nor a constant supplies.

    Raises:
        ValidationError: Input limits exceeded
        ParseError: The formula does not parse

    Example:
        >>> missing_parameters("mass*g + pi", {"g": 9.8})
        ['mass']
    """
    supplied = parameters or {}
    return [
        name
        for name in formula_identifiers(formula)
        if name not in supplied and name.lower() not in CONSTANTS
    ]
