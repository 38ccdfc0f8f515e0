"""Main entry point for running stemlab_pkg as a module.

This allows running stemlab with:
    python -m stemlab_pkg
    python -m stemlab_pkg --health-check
    python -m stemlab_pkg -e "voltage/resistance" -P voltage=6 -P resistance=20

This is equivalent to running:
    python -m stemlab_pkg.cli
    stemlab
"""

from __future__ import annotations

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())
