"""Optional plotting of sampled curves (ASCII or matplotlib image)."""

from __future__ import annotations

import math
import tempfile
from typing import Mapping

try:
    # Non-GUI backend: plots are always written to a file
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

from .config import DEFAULT_SAMPLE_STEP, DEFAULT_X_MAX, DEFAULT_X_MIN
from .logging_config import get_logger
from .sampler import sample_curve, strip_curve_prefix
from .types import CurveResult, PlotResult

logger = get_logger("plotting")

# ASCII plot dimensions in characters
ASCII_ROWS = 20
ASCII_COLS = 60


def ascii_plot(points: list[tuple[float, float]], rows: int = ASCII_ROWS, cols: int = ASCII_COLS) -> str:
    """Render points on a character grid with axes drawn where 0 is in range."""
    xs = [x for x, _ in points]
    ys = [y for _, y in points]
    x_min, x_max = min(xs), max(xs)
    y_min, y_max = min(ys), max(ys)
    x_span = x_max - x_min or 1.0
    y_span = y_max - y_min or 1.0

    def column(x: float) -> int:
        return max(0, min(cols - 1, int(round((x - x_min) / x_span * (cols - 1)))))

    def row(y: float) -> int:
        # Row 0 is the top line
        return max(0, min(rows - 1, int(round((y_max - y) / y_span * (rows - 1)))))

    grid = [[" "] * cols for _ in range(rows)]
    axis_row = row(0.0) if y_min <= 0 <= y_max else None
    axis_col = column(0.0) if x_min <= 0 <= x_max else None
    if axis_row is not None:
        grid[axis_row] = ["-"] * cols
    if axis_col is not None:
        for r in range(rows):
            grid[r][axis_col] = "|"
        if axis_row is not None:
            grid[axis_row][axis_col] = "+"
    for x, y in points:
        grid[row(y)][column(x)] = "*"
    return "\n".join("".join(line).rstrip() for line in grid)


def plot_curve(
    curve: CurveResult,
    title: str = "",
    x_label: str = "x",
    y_label: str = "y",
    ascii: bool = False,
    output_path: str | None = None,
) -> PlotResult:
    """Render a sampled curve.

    Args:
        curve: Samples from the sampler
        title: Plot title (usually the formula)
        x_label: Horizontal axis label
        y_label: Vertical axis label
        ascii: If True, return ASCII plot text; if False, write a PNG with matplotlib
        output_path: PNG destination (default: a new temporary file)

    Returns:
        PlotResult with ``text`` (ASCII) or ``path`` (image) set
    """
    if not curve.ok or not curve.points:
        return PlotResult(ok=False, error=curve.error or "Nothing to plot")
    finite = [(x, y) for x, y in curve.points if math.isfinite(x) and math.isfinite(y)]
    if not finite:
        return PlotResult(ok=False, error="Cannot plot: no finite samples")

    if ascii:
        return PlotResult(ok=True, text=ascii_plot(finite))

    if not HAS_MATPLOTLIB:
        return PlotResult(
            ok=False, error="matplotlib not installed. Use ascii=True for ASCII plot."
        )

    fig, ax = plt.subplots(figsize=(10, 6))
    try:
        ax.plot(
            [x for x, _ in finite],
            [y for _, y in finite],
            linewidth=2,
            color="#f59e0b",
            label=title or None,
        )
        ax.set_xlabel(x_label, fontsize=12, fontweight="bold")
        ax.set_ylabel(y_label, fontsize=12, fontweight="bold")
        if title:
            ax.set_title(title, fontsize=14, fontweight="bold")
            ax.legend(loc="best", fontsize=10)
        ax.grid(True, alpha=0.3, linestyle="--")
        ax.axhline(y=0, color="k", linewidth=0.8, linestyle="-", alpha=0.3)
        ax.axvline(x=0, color="k", linewidth=0.8, linestyle="-", alpha=0.3)
        fig.tight_layout()

        if output_path is None:
            with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as handle:
                output_path = handle.name
        fig.savefig(output_path, dpi=150, bbox_inches="tight")
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to save plot: {e}")
        return PlotResult(ok=False, error=f"Failed to save plot: {e}")
    finally:
        plt.close(fig)
    logger.info("Plot saved to %s", output_path)
    return PlotResult(ok=True, path=output_path)


def plot_formula(
    formula: str,
    parameters: Mapping[str, float] | None = None,
    x_min: float = DEFAULT_X_MIN,
    x_max: float = DEFAULT_X_MAX,
    step: float = DEFAULT_SAMPLE_STEP,
    variable: str = "x",
    ascii: bool = False,
    output_path: str | None = None,
) -> PlotResult:
    """Sample a graph-mode formula and plot it.

    Example:
        >>> result = plot_formula("y = x^2", x_min=-5, x_max=5, ascii=True)
        >>> result.ok
        True
    """
    curve = sample_curve(formula, parameters, x_min, x_max, step, variable)
    equation = strip_curve_prefix(formula)
    return plot_curve(
        curve,
        title=f"y = {equation}",
        x_label=variable,
        y_label="y",
        ascii=ascii,
        output_path=output_path,
    )
