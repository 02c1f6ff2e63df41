"""CLI command implementations for pipeforge.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .analyze import analyze
from .init import init
from .run import run

__all__ = [
    "analyze",
    "init",
    "run",
]
