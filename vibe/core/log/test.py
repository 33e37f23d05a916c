"""Tests for core logging module."""

import logging
from io import StringIO

from .lib import get_logger, setup_logging


class TestLogging:
    """Test core logging API."""

    def test_get_logger(self) -> None:
        """Verify logger instance creation."""
        logger = get_logger("vibe.test")
        assert logger.name == "vibe.test"
        assert isinstance(logger, logging.Logger)

    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        assert get_logger().name == "vibe"

    def test_module_loggers_are_children(self) -> None:
        """Module loggers propagate to the package logger."""
        child = logging.getLogger("vibe.generation.lib")
        assert child.parent is not None
        assert child.parent.name in ("vibe", "vibe.generation", "root")

    def test_setup_logging(self) -> None:
        """Verify logging setup does not raise and leaves logger levels alone."""
        stream = StringIO()
        setup_logging(level=logging.DEBUG, stream=stream)
        logger = get_logger("vibe.test_setup")
        logger.debug("test message")
        # basicConfig is a no-op when logging is already configured
        assert logger.level == logging.NOTSET
