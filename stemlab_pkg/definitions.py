"""Simulation definitions: parameter and formula descriptors.

A definition is the JSON record a generated (or hand-written) experiment is
described by: metadata for the library card, the adjustable parameters with
their slider ranges, and the formulas whose values fill the results panel.
Keys are accepted in snake_case or in the camelCase the generator emits
(``defaultValue``, ``outputId``, ...).
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .config import ANGLE_UNITS, DEFAULT_X_MAX, DEFAULT_X_MIN, VAR_NAME_RE
from .evaluator import evaluate
from .logging_config import get_logger
from .parser import parse_formula
from .sampler import sample_curve
from .types import CurveResult, ParseError, SimulationResult, ValidationError

logger = get_logger("definitions")

# Greedy match from the first "{" to the last "}", like the generator client
JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

SIMULATION_TYPES = (
    "projectile",
    "parabola",
    "quadratic",
    "linear",
    "graph",
    "pendulum",
    "wave",
    "circuit",
    "chemistry",
    "default",
)


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the JSON object embedded in generated text.

    Generated replies often wrap the object in prose or a code fence; the
    span from the first ``{`` to the last ``}`` is parsed.

    Raises:
        ValidationError: No object found, or the span is not valid JSON
    """
    if not isinstance(text, str):
        raise ValidationError("Expected text containing a JSON object", "INVALID_JSON")
    match = JSON_OBJECT_RE.search(text)
    if not match:
        raise ValidationError("Invalid JSON response: no object found", "INVALID_JSON")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON response: {e.msg}", "INVALID_JSON") from e
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON response: not an object", "INVALID_JSON")
    return data


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _number(value: Any, what: str, code: str) -> float:
    # bool is an int subclass but never a meaningful slider value
    if isinstance(value, bool):
        raise ValidationError(f"{what} must be a number, got {value!r}", code)
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{what} must be a number, got {value!r}", code) from e
    if not math.isfinite(number):
        raise ValidationError(f"{what} must be finite, got {value!r}", code)
    return number


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


@dataclass
class ParameterSpec:
    """One adjustable input of a simulation (a slider)."""

    id: str
    name: str
    unit: str
    min: float
    max: float
    step: float
    default_value: float
    angle_unit: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParameterSpec":
        """Build a parameter from its JSON record.

        Raises:
            ValidationError: code ``PARAMETER_INVALID``
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Parameter must be an object, got {data!r}", "PARAMETER_INVALID")
        param_id = str(_pick(data, "id", default="")).strip()
        if not VAR_NAME_RE.match(param_id):
            raise ValidationError(
                f"Parameter id {param_id!r} is not a valid identifier", "PARAMETER_INVALID"
            )
        label = f"Parameter '{param_id}'"
        low = _number(_pick(data, "min"), f"{label} min", "PARAMETER_INVALID")
        high = _number(_pick(data, "max"), f"{label} max", "PARAMETER_INVALID")
        step = _number(_pick(data, "step", default=1), f"{label} step", "PARAMETER_INVALID")
        default = _number(
            _pick(data, "default_value", "defaultValue", default=low),
            f"{label} default",
            "PARAMETER_INVALID",
        )
        if high < low:
            raise ValidationError(f"{label} has max {high} below min {low}", "PARAMETER_INVALID")
        if step <= 0:
            raise ValidationError(f"{label} step must be positive", "PARAMETER_INVALID")
        if not low <= default <= high:
            raise ValidationError(
                f"{label} default {default} is outside [{low}, {high}]", "PARAMETER_INVALID"
            )
        angle_unit = _pick(data, "angle_unit", "angleUnit")
        if angle_unit is not None:
            angle_unit = str(angle_unit).lower()
            if angle_unit not in ANGLE_UNITS:
                raise ValidationError(
                    f"{label} has unknown angle unit {angle_unit!r}", "PARAMETER_INVALID"
                )
        return cls(
            id=param_id,
            name=str(_pick(data, "name", default=param_id)),
            unit=str(_pick(data, "unit", default="")),
            min=low,
            max=high,
            step=step,
            default_value=default,
            angle_unit=angle_unit,
        )

    def clamp(self, value: float) -> float:
        """Snap a value to the slider: inside ``[min, max]`` and on the step grid."""
        value = min(max(float(value), self.min), self.max)
        steps = round((value - self.min) / self.step)
        snapped = min(self.min + steps * self.step, self.max)
        # Strip float noise such as 0.30000000000000004
        return round(snapped, 10)

    def to_dict(self) -> dict[str, Any]:
        result_dict: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "min": self.min,
            "max": self.max,
            "step": self.step,
            "defaultValue": self.default_value,
        }
        if self.angle_unit is not None:
            result_dict["angleUnit"] = self.angle_unit
        return result_dict


@dataclass
class FormulaSpec:
    """One computed output of a simulation."""

    output_id: str
    output_name: str
    output_unit: str
    formula: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], strict: bool = False) -> "FormulaSpec":
        """Build a formula descriptor from its JSON record.

        Args:
            data: Record with outputId/outputName/outputUnit/formula
            strict: Also require the formula to parse. Otherwise a broken
                formula is kept and evaluates to 0 at run time.

        Raises:
            ValidationError: code ``FORMULA_INVALID``
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Formula must be an object, got {data!r}", "FORMULA_INVALID")
        output_id = str(_pick(data, "output_id", "outputId", "id", default="")).strip()
        if not output_id:
            raise ValidationError("Formula is missing its output id", "FORMULA_INVALID")
        formula = _pick(data, "formula")
        if not isinstance(formula, str) or not formula.strip():
            raise ValidationError(
                f"Output '{output_id}' has no formula text", "FORMULA_INVALID"
            )
        if strict:
            try:
                parse_formula(formula)
            except (ValidationError, ParseError) as e:
                raise ValidationError(
                    f"Output '{output_id}' formula does not parse: {e}", "FORMULA_INVALID"
                ) from e
        return cls(
            output_id=output_id,
            output_name=str(_pick(data, "output_name", "outputName", "name", default=output_id)),
            output_unit=str(_pick(data, "output_unit", "outputUnit", "unit", default="")),
            formula=formula,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "outputId": self.output_id,
            "outputName": self.output_name,
            "outputUnit": self.output_unit,
            "formula": self.formula,
        }


@dataclass
class SimulationDefinition:
    """A complete experiment: library metadata, parameters and formulas."""

    title: str
    subject: str = ""
    difficulty_level: str = ""
    short_description: str = ""
    learning_objectives: list[str] = field(default_factory=list)
    tools_instructions: list[str] = field(default_factory=list)
    simulation_config: str = ""
    estimated_time: float = 0
    simulation_type: str = "default"
    parameters: list[ParameterSpec] = field(default_factory=list)
    formulas: list[FormulaSpec] = field(default_factory=list)
    curve_equation: str | None = None
    x_min: float = DEFAULT_X_MIN
    x_max: float = DEFAULT_X_MAX

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], strict: bool = False) -> "SimulationDefinition":
        """Validate and normalise a definition record.

        Raises:
            ValidationError: codes ``INVALID_DEFINITION``, ``PARAMETER_INVALID``
                or ``FORMULA_INVALID``
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Definition must be a JSON object", "INVALID_DEFINITION")
        title = str(_pick(data, "title", default="")).strip()
        if not title:
            raise ValidationError("Definition is missing a title", "INVALID_DEFINITION")

        raw_parameters = _pick(data, "parameters", default=[])
        raw_formulas = _pick(data, "formulas", default=[])
        if not isinstance(raw_parameters, list):
            raise ValidationError("'parameters' must be a list", "PARAMETER_INVALID")
        if not isinstance(raw_formulas, list):
            raise ValidationError("'formulas' must be a list", "FORMULA_INVALID")

        parameters = [ParameterSpec.from_dict(item) for item in raw_parameters]
        seen: set[str] = set()
        for spec in parameters:
            if spec.id in seen:
                raise ValidationError(f"Duplicate parameter id '{spec.id}'", "PARAMETER_INVALID")
            seen.add(spec.id)
        formulas = [FormulaSpec.from_dict(item, strict=strict) for item in raw_formulas]

        # The visual config may nest the curve and axis range
        visual = _pick(data, "visual_config", "visualConfig", default={})
        if not isinstance(visual, Mapping):
            visual = {}
        x_axis = _pick(visual, "x_axis", "xAxis", default={})
        if not isinstance(x_axis, Mapping):
            x_axis = {}
        curve = _pick(data, "curve_equation", "curveEquation", default=None)
        if curve is None:
            curve = _pick(visual, "curve_equation", "curveEquation", default=None)
        x_min = _number(
            _pick(data, "x_min", "xMin", default=_pick(x_axis, "min", default=DEFAULT_X_MIN)),
            "x_min",
            "INVALID_DEFINITION",
        )
        x_max = _number(
            _pick(data, "x_max", "xMax", default=_pick(x_axis, "max", default=DEFAULT_X_MAX)),
            "x_max",
            "INVALID_DEFINITION",
        )
        if x_max <= x_min:
            raise ValidationError(
                f"Curve domain max {x_max} must exceed min {x_min}", "INVALID_DEFINITION"
            )

        simulation_type = str(
            _pick(data, "simulation_type", "simulationType", default="default")
        ).lower()
        if simulation_type not in SIMULATION_TYPES:
            logger.info("Unknown simulation type %r, using default view", simulation_type)
            simulation_type = "default"

        return cls(
            title=title,
            subject=str(_pick(data, "subject", default="")),
            difficulty_level=str(_pick(data, "difficulty_level", "difficultyLevel", default="")),
            short_description=str(
                _pick(data, "short_description", "shortDescription", default="")
            ),
            learning_objectives=_string_list(
                _pick(data, "learning_objectives", "learningObjectives")
            ),
            tools_instructions=_string_list(
                _pick(data, "tools_instructions", "toolsInstructions")
            ),
            simulation_config=str(
                _pick(data, "simulation_config", "simulationConfig", default="")
            ),
            estimated_time=_number(
                _pick(data, "estimated_time", "estimatedTime", default=0),
                "estimated_time",
                "INVALID_DEFINITION",
            ),
            simulation_type=simulation_type,
            parameters=parameters,
            formulas=formulas,
            curve_equation=str(curve) if curve is not None else None,
            x_min=x_min,
            x_max=x_max,
        )

    @classmethod
    def from_text(cls, text: str, strict: bool = False) -> "SimulationDefinition":
        """Build a definition from generated text wrapping a JSON object."""
        return cls.from_dict(extract_json_object(text), strict=strict)

    def parameter(self, param_id: str) -> ParameterSpec:
        for spec in self.parameters:
            if spec.id == param_id:
                return spec
        raise KeyError(param_id)

    def default_parameters(self) -> dict[str, float]:
        """A fresh parameter set holding every default value."""
        return {spec.id: spec.default_value for spec in self.parameters}

    def parameter_set(
        self, overrides: Mapping[str, float] | None = None, clamp: bool = True
    ) -> dict[str, float]:
        """Defaults overlaid with ``overrides``.

        Overrides for declared parameters are snapped to the slider range and
        step when ``clamp`` is True. Extra names are passed through unchanged.

        Raises:
            ValidationError: An override is not a number (``PARAMETER_INVALID``)
        """
        values = self.default_parameters()
        specs = {spec.id: spec for spec in self.parameters}
        for name, raw in (overrides or {}).items():
            value = _number(raw, f"Parameter '{name}'", "PARAMETER_INVALID")
            spec = specs.get(name)
            if spec is not None and clamp:
                snapped = spec.clamp(value)
                if snapped != value:
                    logger.debug("Parameter %s=%r snapped to %r", name, value, snapped)
                value = snapped
            values[name] = value
        return values

    def angle_units(self) -> dict[str, str] | None:
        """Explicit angle units, or None when no parameter declares one."""
        units = {spec.id: spec.angle_unit for spec in self.parameters if spec.angle_unit}
        return units or None

    def to_dict(self) -> dict[str, Any]:
        result_dict: dict[str, Any] = {
            "title": self.title,
            "subject": self.subject,
            "difficulty_level": self.difficulty_level,
            "short_description": self.short_description,
            "learning_objectives": list(self.learning_objectives),
            "tools_instructions": list(self.tools_instructions),
            "simulation_config": self.simulation_config,
            "estimated_time": self.estimated_time,
            "simulation_type": self.simulation_type,
            "parameters": [spec.to_dict() for spec in self.parameters],
            "formulas": [spec.to_dict() for spec in self.formulas],
            "x_min": self.x_min,
            "x_max": self.x_max,
        }
        if self.curve_equation is not None:
            result_dict["curve_equation"] = self.curve_equation
        return result_dict


def load_definition(path: str | Path, strict: bool = False) -> SimulationDefinition:
    """Read a definition from a file holding JSON (possibly wrapped in text).

    Raises:
        ValidationError: Unreadable file or invalid definition
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(f"Cannot read definition file {path}: {e}", "INVALID_DEFINITION") from e
    return SimulationDefinition.from_text(text, strict=strict)


def run_definition(
    definition: SimulationDefinition,
    overrides: Mapping[str, float] | None = None,
    clamp: bool = True,
) -> list[SimulationResult]:
    """Evaluate every formula of a definition.

    A formula that cannot be evaluated reports 0, like every other use of
    ``evaluate``. Explicit angle units replace the trig naming heuristic when
    any parameter declares ``angle_unit``.

    Example:
        >>> ohm = SimulationDefinition.from_dict({
        ...     "title": "Ohm",
        ...     "parameters": [
        ...         {"id": "voltage", "min": 0, "max": 12, "step": 0.5, "defaultValue": 6},
        ...         {"id": "resistance", "min": 1, "max": 100, "step": 1, "defaultValue": 20},
        ...     ],
        ...     "formulas": [{"outputId": "current", "outputUnit": "A",
        ...                   "formula": "voltage/resistance"}],
        ... })
        >>> run_definition(ohm)[0].value
        0.3
    """
    values = definition.parameter_set(overrides, clamp=clamp)
    units = definition.angle_units()
    return [
        SimulationResult(
            id=spec.output_id,
            name=spec.output_name,
            unit=spec.output_unit,
            value=evaluate(spec.formula, values, units),
            formula=spec.formula,
        )
        for spec in definition.formulas
    ]


def sample_definition_curve(
    definition: SimulationDefinition,
    overrides: Mapping[str, float] | None = None,
    step: float | None = None,
) -> CurveResult:
    """Sample the definition's curve equation over its x range."""
    if not definition.curve_equation:
        return CurveResult(ok=False, error=f"'{definition.title}' has no curve equation")
    values = definition.parameter_set(overrides)
    kwargs: dict[str, Any] = {}
    if step is not None:
        kwargs["step"] = step
    return sample_curve(
        definition.curve_equation,
        values,
        definition.x_min,
        definition.x_max,
        angle_units=definition.angle_units(),
        **kwargs,
    )
