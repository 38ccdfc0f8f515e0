"""Centralized configuration for stemlab.

This module defines:
- Input validation limits (length, depth, node count)
- Cache sizes for the parsed-formula cache
- Display precision and the evaluation fallback value
- Curve sampling defaults and canvas geometry
- The closed set of formula functions and the angle-unit hints
- Regex patterns for tokenizing

Configuration can be overridden via:
- CLI flags (see cli.py)
- Environment variables (prefixed with STEMLAB_)
"""

import math
import os
import re

# Version is defined in pyproject.toml [project] section
try:
    import importlib.metadata

    VERSION = importlib.metadata.version("stemlab")
except Exception:
    # Fallback if package not installed
    VERSION = "1.0.0"

# Input validation limits
MAX_INPUT_LENGTH = int(os.getenv("STEMLAB_MAX_INPUT_LENGTH", "10000"))  # characters
MAX_EXPRESSION_DEPTH = int(
    os.getenv("STEMLAB_MAX_EXPRESSION_DEPTH", "100")
)  # parser nesting depth
MAX_EXPRESSION_NODES = int(
    os.getenv("STEMLAB_MAX_EXPRESSION_NODES", "5000")
)  # total AST nodes

# Cache configuration
CACHE_SIZE_PARSE = int(os.getenv("STEMLAB_CACHE_SIZE_PARSE", "1024"))

# Value returned whenever a formula cannot produce a finite result
FALLBACK_VALUE = 0.0

# Results are rounded to this many decimals for display only
DISPLAY_PRECISION = int(os.getenv("STEMLAB_DISPLAY_PRECISION", "2"))

# Curve sampling defaults
DEFAULT_SAMPLE_STEP = float(os.getenv("STEMLAB_DEFAULT_SAMPLE_STEP", "0.2"))
DEFAULT_SAMPLE_COUNT = int(os.getenv("STEMLAB_DEFAULT_SAMPLE_COUNT", "50"))
DEFAULT_X_MIN = float(os.getenv("STEMLAB_DEFAULT_X_MIN", "-10"))
DEFAULT_X_MAX = float(os.getenv("STEMLAB_DEFAULT_X_MAX", "10"))
MAX_SAMPLE_POINTS = int(
    os.getenv("STEMLAB_MAX_SAMPLE_POINTS", "100000")
)  # guard against tiny steps over huge domains

# Canvas geometry used by the viewport mapping (SVG user units)
CANVAS_WIDTH = 400
CANVAS_HEIGHT = 280
CANVAS_PADDING = 50

# Sample tolerance when deciding whether the last grid point reaches x_max
SAMPLE_TOLERANCE = 1e-9

# Closed function set: name -> arity
ALLOWED_FUNCTIONS = {
    "sin": 1,
    "cos": 1,
    "tan": 1,
    "sqrt": 1,
    "abs": 1,
    "pow": 2,
}

TRIG_FUNCTIONS = frozenset({"sin", "cos", "tan"})

# Argument text containing any of these marks a trig argument as degrees
ANGLE_HINTS = ("theta", "angle", "°")

DEGREE_SIGN = "°"

# Constants recognised by name. Lookup of "pi" is case-insensitive.
CONSTANTS = {
    "pi": math.pi,
    "π": math.pi,
}

ANGLE_UNITS = ("deg", "rad")

VAR_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Typographic variants normalised by the tokenizer
UNICODE_OPERATORS = {
    "−": "-",
    "–": "-",
    "×": "*",
    "·": "*",
    "÷": "/",
}

# Leading "y =" accepted on graph-mode curve equations
CURVE_PREFIX_RE = re.compile(r"^\s*y\s*=", re.IGNORECASE)
