"""Tests for logger module."""

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from patrolcord.util.logger import (
    ColorFormatter,
    LOG_FORMAT,
    DATE_FORMAT,
    LOG_COLORS,
    PromptToolkitHandler,
    get_logger,
    should_use_color,
)


class TestShouldUseColor:
    @patch("sys.stderr.isatty")
    def test_should_use_color_tty(self, mock_isatty):
        mock_isatty.return_value = True
        assert should_use_color() is True

    @patch("sys.stderr.isatty")
    def test_should_use_color_exception(self, mock_isatty):
        """Color is disabled when the stream cannot be inspected."""
        mock_isatty.side_effect = Exception("Error")
        assert should_use_color() is False


def test_color_formatter_wraps_level_colour() -> None:
    formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)

    output = formatter.format(record)

    assert output.startswith(LOG_COLORS["WARNING"])
    assert "careful" in output


def test_get_logger_configures_handlers_once() -> None:
    first = get_logger("patrolcord_test_logger")
    second = get_logger("patrolcord_test_logger")

    assert first is second
    assert first.propagate is False
    handler_types = [type(handler) for handler in first.handlers]
    assert handler_types == [PromptToolkitHandler, RotatingFileHandler]
