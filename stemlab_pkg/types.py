"""Type definitions and result dataclasses for consistent API responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Error code -> failure kind reported by the diagnostic channel
ERROR_KINDS = {
    "EMPTY_INPUT": "syntax",
    "TOO_LONG": "syntax",
    "TOO_DEEP": "syntax",
    "TOO_COMPLEX": "syntax",
    "SYNTAX_ERROR": "syntax",
    "UNKNOWN_FUNCTION": "syntax",
    "ARITY_ERROR": "syntax",
    "UNKNOWN_IDENTIFIER": "unknown_identifier",
    "INVALID_PARAMETER": "unknown_identifier",
    "DOMAIN_ERROR": "numeric_domain",
}


def error_kind(code: str | None) -> str | None:
    """Map an error code to its failure kind (syntax, unknown_identifier, numeric_domain)."""
    if code is None:
        return None
    return ERROR_KINDS.get(code, "syntax")


@dataclass
class EvalResult:
    """Result of evaluating a formula against a parameter set.

    ``value`` always holds what the silent evaluator returns: the finite
    result when ``ok`` is True, the fallback value otherwise.
    """

    ok: bool
    value: float = 0.0
    error: str | None = None
    error_code: str | None = None

    @property
    def kind(self) -> str | None:
        return error_kind(self.error_code)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok, "value": self.value}
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
            result_dict["kind"] = self.kind
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.ok:
            return (
                f"EvalResult(ok=False, error_code={self.error_code!r}, "
                f"error={self.error!r})"
            )
        return f"EvalResult(ok=True, value={self.value!r})"


@dataclass
class CurveResult:
    """Result of sampling a formula over a domain."""

    ok: bool
    points: list[tuple[float, float]] = field(default_factory=list)
    discarded: int = 0
    error: str | None = None

    @property
    def xs(self) -> list[float]:
        return [x for x, _ in self.points]

    @property
    def ys(self) -> list[float]:
        return [y for _, y in self.points]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {
            "ok": self.ok,
            "points": [[x, y] for x, y in self.points],
            "discarded": self.discarded,
        }
        if self.error is not None:
            result_dict["error"] = self.error
        return result_dict

    def __repr__(self) -> str:
        if not self.ok:
            return f"CurveResult(ok=False, error={self.error!r})"
        return (
            f"CurveResult(ok=True, points=<{len(self.points)}>, "
            f"discarded={self.discarded})"
        )


@dataclass
class PlotResult:
    """Result of rendering a sampled curve."""

    ok: bool
    text: str | None = None  # ASCII plot
    path: str | None = None  # saved image
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.text is not None:
            result_dict["text"] = self.text
        if self.path is not None:
            result_dict["path"] = self.path
        if self.error is not None:
            result_dict["error"] = self.error
        return result_dict


@dataclass
class SimulationResult:
    """One computed output of a simulation (e.g. current, period, range)."""

    id: str
    name: str
    unit: str
    value: float
    formula: str | None = None

    def display(self, precision: int | None = None) -> str:
        """Value rounded for presentation, with its unit."""
        from .parser import format_result

        text = format_result(self.value, precision)
        return f"{text} {self.unit}".rstrip()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "value": self.value,
        }
        if self.formula is not None:
            result_dict["formula"] = self.formula
        return result_dict


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ParseError(Exception):
    """Raised when parsing fails."""

    def __init__(
        self, message: str, code: str = "SYNTAX_ERROR", position: int | None = None
    ):
        self.message = message
        self.code = code
        self.position = position
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (at position {self.position})"


class EvaluationError(Exception):
    """Raised when a parsed formula cannot be evaluated to a finite number."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message
