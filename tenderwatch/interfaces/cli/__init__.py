"""CLI interface for Tenderwatch.

This package is the home for all Click commands. Use the
``tenderwatch.interfaces.cli`` namespace for imports and module execution.
"""

from .__main__ import cli
from .cleanup import cleanup
from .runs import runs
from .serve import serve
from .sync import sync
from .view import view

__all__ = [
    "cleanup",
    "cli",
    "runs",
    "serve",
    "sync",
    "view",
]
