"""Package logger for helmsman.

The library only emits records; configuring handlers and levels is left to
the host application (e.g. ``logging.basicConfig(level=logging.DEBUG)``).
"""
import logging

logger = logging.getLogger("helmsman")

__all__ = ("logger",)
