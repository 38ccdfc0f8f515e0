"""stemlab package: formula evaluation, curve sampling and simulations for a virtual STEM lab."""

__all__ = [
    "config",
    "parser",
    "evaluator",
    "sampler",
    "symbolic",
    "plotting",
    "definitions",
    "simulations",
    "cli",
    "types",
    "api",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "evaluate",
    "diagnose",
    "validate_formula",
    "missing",
    "sample",
    "plot",
    "run_simulation",
    "simulate",
    "render",
]
