from __future__ import annotations

import argparse
import json
import math
import sys
from typing import Any, Sequence

from .config import VAR_NAME_RE, VERSION
from .definitions import load_definition, run_definition, sample_definition_curve
from .evaluator import evaluate_with_diagnostics, missing_parameters
from .logging_config import get_logger, setup_logging
from .parser import format_number, format_result, prettify_formula
from .plotting import plot_curve, plot_formula
from .simulations import (
    TRAJECTORIES,
    get_simulation,
    list_simulations,
    sample_trajectory,
    simulation_key,
)
from .types import SimulationResult, ValidationError

logger = get_logger("cli")


def _param_pair(text: str) -> tuple[str, float]:
    """argparse type for ``-P NAME=VALUE``."""
    name, sep, raw = text.partition("=")
    name = name.strip()
    if not sep or not VAR_NAME_RE.match(name):
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"value of {name!r} is not a number: {raw!r}")
    if not math.isfinite(value):
        raise argparse.ArgumentTypeError(f"value of {name!r} must be finite")
    return name, value


def print_result_pretty(res: dict[str, Any], output_format: str = "human") -> None:
    """Print an evaluation result in the specified format.

    Args:
        res: Result dictionary
        output_format: "json" for JSON output, "human" for human-readable
    """
    if output_format == "json":
        print(json.dumps(res, indent=2, ensure_ascii=False))
        return
    if not res.get("ok") and res.get("error"):
        print(f"Error [{res.get('kind')}]: {res.get('error')}")
        if res.get("missing"):
            print(f"Missing parameters: {', '.join(res['missing'])}")
        return
    print(res.get("display", res.get("value")))


def print_simulation(
    title: str,
    results: list[SimulationResult],
    output_format: str = "human",
    precision: int | None = None,
) -> None:
    if output_format == "json":
        payload = {"title": title, "results": [r.to_dict() for r in results]}
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    print(title)
    print("-" * 50)
    for result in results:
        formula = f"  = {prettify_formula(result.formula)}" if result.formula else ""
        print(f"{result.name}: {result.display(precision)}{formula}")


def _print_plot(plot_result, output_format: str) -> int:
    if output_format == "json":
        print(json.dumps(plot_result.to_dict(), indent=2, ensure_ascii=False))
    elif not plot_result.ok:
        print(f"Error: {plot_result.error}")
    elif plot_result.text is not None:
        print(plot_result.text)
    else:
        print(f"Plot saved to {plot_result.path}")
    return 0 if plot_result.ok else 1


def _health_check() -> int:
    """Run health check to verify dependencies and basic operations.

    Returns:
        Exit code (0 for success, non-zero for failures)
    """
    checks_passed = 0
    checks_failed = 0

    print("Running stemlab health check...")
    print("-" * 50)

    try:
        import sympy as sp

        print(f"[OK] SymPy {sp.__version__} imported successfully")
        checks_passed += 1
    except ImportError as e:
        print(f"[FAIL] SymPy import failed: {e}")
        checks_failed += 1

    try:
        import numpy

        print(f"[OK] NumPy {numpy.__version__} available")
        checks_passed += 1
    except ImportError as e:
        print(f"[FAIL] NumPy import failed: {e}")
        checks_failed += 1

    try:
        import matplotlib

        print(f"[OK] Matplotlib {matplotlib.__version__} available")
        checks_passed += 1
    except ImportError:
        print("[WARN] Matplotlib not available (image plots disabled, --ascii still works)")
        print("  To install: pip install matplotlib")

    # Evaluator against known answers
    samples = [
        ("2 + 3 * 4", {}, 14.0),
        ("2^3^2", {}, 512.0),
        ("sin(theta)", {"theta": 90}, 1.0),
        ("voltage/resistance", {"voltage": 6, "resistance": 20}, 0.3),
        ("1/0", {}, 0.0),
    ]
    for formula, params, expected in samples:
        result = evaluate_with_diagnostics(formula, params)
        if math.isclose(result.value, expected, rel_tol=1e-9, abs_tol=1e-12):
            print(f"[OK] {formula} = {format_result(result.value, 4)}")
            checks_passed += 1
        else:
            print(f"[FAIL] {formula}: expected {expected}, got {result.value}")
            checks_failed += 1

    # Cross-check against SymPy
    try:
        from .symbolic import symbolic_value

        formula = "2*pi*sqrt(length/gravity)"
        params = {"length": 1, "gravity": 9.8}
        expected = symbolic_value(formula, params)
        actual = evaluate_with_diagnostics(formula, params).value
        if math.isclose(actual, expected, rel_tol=1e-12):
            print(f"[OK] Evaluator agrees with SymPy ({formula} = {format_number(actual)})")
            checks_passed += 1
        else:
            print(
                f"[FAIL] Evaluator gave {format_number(actual, 12)}, "
                f"SymPy gave {format_number(expected, 12)}"
            )
            checks_failed += 1
    except Exception as e:
        print(f"[FAIL] SymPy cross-check failed: {e}")
        checks_failed += 1

    broken = 0
    for name in list_simulations():
        try:
            get_simulation(name)
        except (KeyError, ValidationError) as e:
            print(f"[FAIL] Built-in simulation '{name}' is invalid: {e}")
            broken += 1
    if broken:
        checks_failed += broken
    else:
        print(f"[OK] {len(list_simulations())} built-in simulations load")
        checks_passed += 1

    print("-" * 50)
    print(f"Results: {checks_passed} passed, {checks_failed} failed")

    if checks_failed > 0:
        print("\n[WARN] Some health checks failed. Core functionality may be impaired.")
        return 1
    return 0


def _run_definition_command(args, overrides: dict[str, float], output_format: str) -> int:
    try:
        if args.simulation:
            definition = get_simulation(args.simulation)
        else:
            definition = load_definition(args.definition)
    except KeyError as e:
        print(f"Error: {e.args[0]}")
        return 1
    except ValidationError as e:
        print(f"Error: {e}")
        return 1

    try:
        results = run_definition(definition, overrides)
    except ValidationError as e:
        print(f"Error: {e}")
        return 1
    print_simulation(definition.title, results, output_format, args.precision)

    if args.plot:
        name = simulation_key(args.simulation) if args.simulation else None
        if name in TRAJECTORIES:
            curve = sample_trajectory(name, overrides)
            title = definition.title
        else:
            curve = sample_definition_curve(definition, overrides, args.step)
            title = definition.curve_equation or definition.title
        plot_result = plot_curve(curve, title=title, ascii=args.ascii, output_path=args.output)
        return _print_plot(plot_result, output_format)
    return 0


def main_entry(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point for the stemlab CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = argparse.ArgumentParser(
        prog="stemlab", description="Evaluate and plot virtual-lab formulas"
    )
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Evaluate one formula and exit",
        dest="eval_expr",
    )
    parser.add_argument(
        "-P",
        "--param",
        type=_param_pair,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Parameter value (repeatable)",
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Report why a formula failed instead of printing 0 (exit 1 on failure)",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "human"],
        default="human",
        help="Output format (default: human)",
    )
    parser.add_argument(
        "-p", "--precision", type=int, help="Decimals shown for results (default: 2)"
    )
    parser.add_argument("--plot", action="store_true", help="Plot the formula or simulation curve")
    parser.add_argument("--x-min", type=float, default=None, help="Plot domain start")
    parser.add_argument("--x-max", type=float, default=None, help="Plot domain end")
    parser.add_argument("--step", type=float, default=None, help="Sampling step (default: 0.2)")
    parser.add_argument("--ascii", action="store_true", help="Draw the plot as text")
    parser.add_argument("-o", "--output", type=str, help="Image path for --plot")
    parser.add_argument("--simulation", type=str, help="Run a built-in simulation")
    parser.add_argument(
        "--definition", type=str, metavar="FILE", help="Run a simulation definition JSON file"
    )
    parser.add_argument(
        "--list-simulations", action="store_true", help="List built-in simulations"
    )
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check and verify dependencies",
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level (default: WARNING)",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file)
    output_format = args.format
    if args.precision is not None and args.precision < 0:
        parser.error("--precision must not be negative")
    overrides = dict(args.param)

    if args.version:
        print(VERSION)
        return 0
    if args.health_check:
        return _health_check()
    if args.list_simulations:
        names = list_simulations()
        if output_format == "json":
            print(json.dumps({name: get_simulation(name).title for name in names}, indent=2))
        else:
            for name in names:
                print(f"{name:<14} {get_simulation(name).title}")
        return 0
    if args.simulation or args.definition:
        return _run_definition_command(args, overrides, output_format)
    if args.eval_expr is None:
        parser.print_help()
        return 1

    formula = args.eval_expr
    if args.plot:
        kwargs: dict[str, Any] = {}
        if args.x_min is not None:
            kwargs["x_min"] = args.x_min
        if args.x_max is not None:
            kwargs["x_max"] = args.x_max
        if args.step is not None:
            kwargs["step"] = args.step
        plot_result = plot_formula(
            formula, overrides, ascii=args.ascii, output_path=args.output, **kwargs
        )
        return _print_plot(plot_result, output_format)

    result = evaluate_with_diagnostics(formula, overrides)
    res = result.to_dict()
    res["display"] = format_result(result.value, args.precision)
    if result.error_code == "UNKNOWN_IDENTIFIER":
        res["missing"] = missing_parameters(formula, overrides)
    if not args.diagnostics:
        # Silent mode: failures print the fallback value like a results panel
        res = {"ok": True, "value": result.value, "display": res["display"]}
    print_result_pretty(res, output_format)
    if args.diagnostics and not result.ok:
        return 1
    return 0


def main() -> None:
    sys.exit(main_entry())


if __name__ == "__main__":
    main()
