"""Parametric curve sampling and canvas coordinate mapping.

The sampler is a thin consumer of the evaluator: it evaluates a formula at
evenly spaced values of one variable and keeps the samples that produced a
finite number. Samples the evaluator could not compute are dropped (and
counted) instead of being plotted as the fallback 0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

import numpy as np

from .config import (
    CANVAS_HEIGHT,
    CANVAS_PADDING,
    CANVAS_WIDTH,
    CURVE_PREFIX_RE,
    DEFAULT_SAMPLE_COUNT,
    DEFAULT_SAMPLE_STEP,
    DEFAULT_X_MAX,
    DEFAULT_X_MIN,
    MAX_SAMPLE_POINTS,
    SAMPLE_TOLERANCE,
    VAR_NAME_RE,
)
from .evaluator import evaluate_with_diagnostics
from .logging_config import get_logger
from .parser import parse_formula
from .types import CurveResult, ParseError, ValidationError

logger = get_logger("sampler")


def strip_curve_prefix(equation: str) -> str:
    """Drop a leading ``y =`` from a graph-mode curve equation."""
    return CURVE_PREFIX_RE.sub("", equation, count=1).strip()


def _check_bounds(start: float, stop: float) -> None:
    if not (math.isfinite(start) and math.isfinite(stop)):
        raise ValidationError("Domain bounds must be finite numbers", "INVALID_DOMAIN")
    if stop < start:
        raise ValidationError(
            f"Domain maximum {stop} is below minimum {start}", "INVALID_DOMAIN"
        )


def _check_variable(variable: str) -> None:
    if not VAR_NAME_RE.match(variable or ""):
        raise ValidationError(f"Invalid variable name {variable!r}", "INVALID_DOMAIN")


def step_grid(x_min: float, x_max: float, step: float) -> np.ndarray:
    """Grid ``x_min, x_min + step, ...`` up to and including ``x_max``.

    Grid points are computed as ``x_min + i*step`` so that rounding error does
    not accumulate across the domain.
    """
    _check_bounds(x_min, x_max)
    if not (math.isfinite(step) and step > 0):
        raise ValidationError(f"Sample step must be positive, got {step}", "INVALID_DOMAIN")
    count = int(math.floor((x_max - x_min) / step + SAMPLE_TOLERANCE)) + 1
    if count > MAX_SAMPLE_POINTS:
        raise ValidationError(
            f"Too many samples ({count} > {MAX_SAMPLE_POINTS})", "TOO_COMPLEX"
        )
    return x_min + np.arange(count, dtype=float) * step


def count_grid(start: float, stop: float, count: int) -> np.ndarray:
    """``count`` evenly spaced values over ``[start, stop]``."""
    _check_bounds(start, stop)
    if count < 1:
        raise ValidationError(f"Sample count must be at least 1, got {count}", "INVALID_DOMAIN")
    if count > MAX_SAMPLE_POINTS:
        raise ValidationError(
            f"Too many samples ({count} > {MAX_SAMPLE_POINTS})", "TOO_COMPLEX"
        )
    return np.linspace(start, stop, int(count))


def _sample(
    formula: str,
    parameters: Mapping[str, float] | None,
    grid: Iterable[float],
    variable: str,
    angle_units: Mapping[str, str] | None,
) -> CurveResult:
    # Fresh parameter set per sampling run; the caller's mapping is never touched
    values = dict(parameters or {})
    points: list[tuple[float, float]] = []
    discarded = 0
    last_error = None
    for raw in grid:
        x = float(raw)
        values[variable] = x
        result = evaluate_with_diagnostics(formula, values, angle_units)
        if result.ok:
            points.append((x, result.value))
        else:
            discarded += 1
            last_error = result.error
    if not points:
        return CurveResult(
            ok=False,
            discarded=discarded,
            error=last_error or "No samples in domain",
        )
    if discarded:
        logger.debug("Discarded %d non-finite samples of %r", discarded, formula)
    return CurveResult(ok=True, points=points, discarded=discarded)


def _precheck(formula: str, variable: str) -> None:
    _check_variable(variable)
    parse_formula(formula)


def sample_curve(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    x_min: float = DEFAULT_X_MIN,
    x_max: float = DEFAULT_X_MAX,
    step: float = DEFAULT_SAMPLE_STEP,
    variable: str = "x",
    angle_units: Mapping[str, str] | None = None,
) -> CurveResult:
    """Sample ``y = formula(x)`` every ``step`` units across ``[x_min, x_max]``.

    Args:
        formula: Curve equation; a leading "y =" is ignored
        parameters: Other parameter values the formula refers to
        x_min: Start of the domain
        x_max: End of the domain (included when it falls on the grid)
        step: Distance between samples (default 0.2)
        variable: Name bound to each sample position (default "x")
        angle_units: Optional explicit angle units, see ``evaluate``

    Returns:
        CurveResult with the finite (x, y) samples and the count of dropped ones

    Example:
        >>> curve = sample_curve("y = a*x^2", {"a": 1}, x_min=-1, x_max=1, step=0.5)
        >>> curve.points
        [(-1.0, 1.0), (-0.5, 0.25), (0.0, 0.0), (0.5, 0.25), (1.0, 1.0)]
    """
    equation = strip_curve_prefix(formula) if isinstance(formula, str) else formula
    try:
        _precheck(equation, variable)
        grid = step_grid(float(x_min), float(x_max), float(step))
    except (ValidationError, ParseError, TypeError) as e:
        return CurveResult(ok=False, error=str(e))
    return _sample(equation, parameters, grid, variable, angle_units)


def sample_count(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    start: float = 0.0,
    stop: float = 1.0,
    count: int = DEFAULT_SAMPLE_COUNT,
    variable: str = "t",
    angle_units: Mapping[str, str] | None = None,
) -> CurveResult:
    """Sample a formula at ``count`` evenly spaced values of ``variable``."""
    try:
        _precheck(formula, variable)
        grid = count_grid(float(start), float(stop), int(count))
    except (ValidationError, ParseError, TypeError) as e:
        return CurveResult(ok=False, error=str(e))
    return _sample(formula, parameters, grid, variable, angle_units)


def sample_parametric(
    x_formula: str,
    y_formula: str,
    parameters: Mapping[str, float] | None = None,
    t_max: float = 1.0,
    count: int = DEFAULT_SAMPLE_COUNT,
    variable: str = "t",
    t_min: float = 0.0,
    y_floor: float | None = None,
    angle_units: Mapping[str, str] | None = None,
) -> CurveResult:
    """Sample a time-parameterized curve ``(x(t), y(t))``.

    A sample is dropped when either coordinate cannot be evaluated, or when
    ``y_floor`` is given and y falls below it (a projectile under the ground).
    """
    try:
        _precheck(x_formula, variable)
        parse_formula(y_formula)
        grid = count_grid(float(t_min), float(t_max), int(count))
    except (ValidationError, ParseError, TypeError) as e:
        return CurveResult(ok=False, error=str(e))

    values = dict(parameters or {})
    points: list[tuple[float, float]] = []
    discarded = 0
    last_error = None
    for raw in grid:
        values[variable] = float(raw)
        x_result = evaluate_with_diagnostics(x_formula, values, angle_units)
        y_result = evaluate_with_diagnostics(y_formula, values, angle_units)
        if not (x_result.ok and y_result.ok):
            discarded += 1
            last_error = x_result.error or y_result.error
            continue
        if y_floor is not None and y_result.value < y_floor:
            discarded += 1
            continue
        points.append((x_result.value, y_result.value))
    if not points:
        return CurveResult(
            ok=False, discarded=discarded, error=last_error or "No samples in domain"
        )
    return CurveResult(ok=True, points=points, discarded=discarded)


@dataclass
class Viewport:
    """Maps data coordinates onto a padded canvas with the y axis flipped."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float
    width: float = CANVAS_WIDTH
    height: float = CANVAS_HEIGHT
    padding: float = CANVAS_PADDING

    @classmethod
    def fit(
        cls,
        points: Sequence[tuple[float, float]],
        x_range: tuple[float, float] | None = None,
        include_y: Sequence[float] = (0.0,),
        width: float = CANVAS_WIDTH,
        height: float = CANVAS_HEIGHT,
        padding: float = CANVAS_PADDING,
    ) -> "Viewport":
        """Viewport spanning the points, widened so ``include_y`` stays visible.

        Graph mode uses ``include_y=(-1, 1)``; parabolas keep the x axis with
        the default ``(0,)``.
        """
        xs = [x for x, _ in points]
        ys = [y for _, y in points]
        if x_range is not None:
            x_min, x_max = x_range
        elif xs:
            x_min, x_max = min(xs), max(xs)
        else:
            x_min, x_max = DEFAULT_X_MIN, DEFAULT_X_MAX
        y_candidates = ys + list(include_y)
        if y_candidates:
            y_min, y_max = min(y_candidates), max(y_candidates)
        else:
            y_min, y_max = -1.0, 1.0
        return cls(x_min, x_max, y_min, y_max, width, height, padding)

    @property
    def scale_x(self) -> float:
        span = self.x_max - self.x_min or 1.0
        return (self.width - 2 * self.padding) / span

    @property
    def scale_y(self) -> float:
        span = self.y_max - self.y_min or 1.0
        return (self.height - 2 * self.padding) / span

    def to_canvas_x(self, x: float) -> float:
        return self.padding + (x - self.x_min) * self.scale_x

    def to_canvas_y(self, y: float) -> float:
        return self.height - self.padding - (y - self.y_min) * self.scale_y

    def to_canvas(self, points: Iterable[tuple[float, float]]) -> list[tuple[float, float]]:
        return [(self.to_canvas_x(x), self.to_canvas_y(y)) for x, y in points]

    def svg_path(self, points: Sequence[tuple[float, float]], precision: int = 2) -> str:
        """SVG path data (``M x y L x y ...``) through the given data points."""
        if not points:
            return ""
        parts = []
        for i, (cx, cy) in enumerate(self.to_canvas(points)):
            command = "M" if i == 0 else "L"
            parts.append(f"{command} {cx:.{precision}f} {cy:.{precision}f}")
        return " ".join(parts)
