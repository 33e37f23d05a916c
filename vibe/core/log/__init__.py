"""Logging micro API for vibe-variants."""

from .lib import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
