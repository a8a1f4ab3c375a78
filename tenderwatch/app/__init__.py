"""Application layer: settings, dependencies and the internal HTTP surface."""

from . import config

__all__ = ["config"]
