"""Service layer modules for Tenderwatch."""

from .scheduler import SyncScheduler  # noqa: F401
from .sync import *  # noqa: F401,F403

__all__ = ["SyncScheduler"] + [name for name in dir() if not name.startswith("_") and name != "SyncScheduler"]
