"""Utility modules."""

from superodds.utils.logging import setup_logging
from superodds.utils.alerts import AlertDispatcher

__all__ = [
    "setup_logging",
    "AlertDispatcher",
]
