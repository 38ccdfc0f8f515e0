"""SymPy view of parsed formulas.

Formulas are converted node by node from the parsed AST, never through
SymPy's string parser, and built unevaluated so the displayed form follows
what the author wrote. Trig calls that the evaluator treats as degrees are
rendered with the explicit ``*pi/180`` conversion.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping

import sympy as sp

from .config import CONSTANTS
from .logging_config import get_logger
from .parser import Call, Chain, Degrees, Name, Node, Number, Power, UnaryOp, parse_formula
from .types import EvaluationError, ParseError

logger = get_logger("symbolic")

SYMPY_FUNCTIONS = {
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "sqrt": sp.sqrt,
    "abs": sp.Abs,
}

SYMPY_CONSTANTS = {
    "pi": sp.pi,
    "π": sp.pi,
}


def _number(value: float) -> sp.Expr:
    if value.is_integer() and abs(value) < 1e15:
        return sp.Integer(int(value))
    return sp.Float(value)


def _negate(expr: sp.Expr) -> sp.Expr:
    return sp.Mul(sp.S.NegativeOne, expr, evaluate=False)


def _convert(node: Node, bound: frozenset = frozenset()) -> sp.Expr:
    if isinstance(node, Number):
        return _number(node.value)
    if isinstance(node, Name):
        # Supplied parameters shadow constants, as in the evaluator
        key = node.name.lower()
        if node.name not in bound and key in CONSTANTS:
            return SYMPY_CONSTANTS.get(key, sp.Float(CONSTANTS[key]))
        return sp.Symbol(node.name)
    if isinstance(node, UnaryOp):
        operand = _convert(node.operand, bound)
        return _negate(operand) if node.op == "-" else operand
    if isinstance(node, Chain):
        expr = _convert(node.head, bound)
        for op, operand in node.tail:
            right = _convert(operand, bound)
            if op == "+":
                expr = sp.Add(expr, right, evaluate=False)
            elif op == "-":
                expr = sp.Add(expr, _negate(right), evaluate=False)
            elif op == "*":
                expr = sp.Mul(expr, right, evaluate=False)
            else:
                expr = sp.Mul(expr, sp.Pow(right, -1, evaluate=False), evaluate=False)
        return expr
    if isinstance(node, Power):
        return sp.Pow(_convert(node.base, bound), _convert(node.exponent, bound), evaluate=False)
    if isinstance(node, Degrees):
        return _convert(node.operand, bound)
    if isinstance(node, Call):
        args = [_convert(arg, bound) for arg in node.args]
        if node.name == "pow":
            return sp.Pow(args[0], args[1], evaluate=False)
        arg = args[0]
        if node.degrees:
            arg = sp.Mul(arg, sp.pi, sp.Pow(180, -1, evaluate=False), evaluate=False)
        return SYMPY_FUNCTIONS[node.name](arg, evaluate=False)
    raise ParseError(f"Unsupported node {type(node).__name__}", "SYNTAX_ERROR")


def to_sympy(formula: str, parameters: Iterable[str] = ()) -> sp.Expr:
    """Convert a formula to an unevaluated SymPy expression.

    Names listed in ``parameters`` stay symbols even when they spell a
    constant such as ``pi``.

    Raises:
        ValidationError: Input limits exceeded
        ParseError: The formula does not parse
    """
    return _convert(parse_formula(formula), frozenset(parameters))


def render_formula(formula: str, style: str = "str") -> str:
    """Render a formula for display.

    Args:
        formula: Formula string
        style: "str" (plain SymPy form), "latex", or "unicode"/"pretty" (2D)

    Returns:
        Rendered formula text
    """
    expr = to_sympy(formula)
    if style == "latex":
        return sp.latex(expr)
    if style in ("unicode", "pretty"):
        return sp.pretty(expr, use_unicode=True)
    if style == "str":
        return str(expr)
    raise ValueError(f"Unknown render style {style!r}")


def free_parameters(formula: str) -> list[str]:
    """Names a formula needs values for, sorted. Constants are excluded."""
    return sorted(str(symbol) for symbol in to_sympy(formula).free_symbols)


def symbolic_value(formula: str, parameters: Mapping[str, float] | None = None) -> float:
    """Evaluate a formula through SymPy instead of the float evaluator.

    Used to cross-check the evaluator. Unlike ``evaluate`` this raises when
    the result is missing a parameter or is not a finite real number.

    Raises:
        EvaluationError: Unbound parameters or a non-finite/complex result
    """
    values = parameters or {}
    expr = to_sympy(formula, values)
    substitutions = {
        symbol: sp.Float(values[str(symbol)])
        for symbol in expr.free_symbols
        if str(symbol) in values
    }
    result = expr.xreplace(substitutions).evalf()
    if result.free_symbols:
        missing = ", ".join(sorted(str(s) for s in result.free_symbols))
        raise EvaluationError(f"Unknown identifier(s): {missing}", "UNKNOWN_IDENTIFIER")
    try:
        value = complex(result)
    except (TypeError, ValueError) as e:
        raise EvaluationError(f"Result is not a number: {result}", "DOMAIN_ERROR") from e
    if value.imag != 0 or not math.isfinite(value.real):
        raise EvaluationError(f"Result is not a finite real number: {result}", "DOMAIN_ERROR")
    logger.debug("Symbolic value of %r is %r", formula, value.real)
    return value.real
