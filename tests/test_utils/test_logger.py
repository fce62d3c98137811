"""Unit tests for hostpanel.utils.logger module."""

import json
import logging
from io import StringIO
from unittest.mock import patch

from hostpanel.utils.context import clear_context, set_context
from hostpanel.utils.logger import (
    ColoredConsoleFormatter,
    ContextInjectionFilter,
    CustomJsonFormatter,
    get_logger,
    log_timer,
    setup_logging,
)


def _capture(name: str):
    """Logger writing JSON lines into a buffer."""
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(logging.DEBUG)

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(ContextInjectionFilter())
    handler.setFormatter(CustomJsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def _lines(stream: StringIO):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestCustomJsonFormatter:
    """Tests for CustomJsonFormatter."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_basic_fields(self):
        record = logging.LogRecord(
            name="hostpanel.services.server_service",
            level=logging.WARNING,
            pathname="server_service.py",
            lineno=10,
            msg="Server deleted",
            args=(),
            exc_info=None,
        )

        data = json.loads(CustomJsonFormatter().format(record))

        assert data["message"] == "Server deleted"
        assert data["level"] == "WARNING"
        assert data["logger"] == "hostpanel.services.server_service"
        assert "timestamp" in data

    def test_extra_fields(self):
        logger, stream = _capture("test.logger.extra")

        logger.info("Allocation assigned", extra={"allocation_id": "a-1", "port": 25565})

        data = _lines(stream)[0]
        assert data["allocation_id"] == "a-1"
        assert data["port"] == 25565

    def test_context_is_injected(self):
        logger, stream = _capture("test.logger.context")
        set_context(request_id="req-9", user_id="profile-1", server_id="server-1")

        logger.info("Server created")

        data = _lines(stream)[0]
        assert data["request_id"] == "req-9"
        assert data["user_id"] == "profile-1"
        assert data["server_id"] == "server-1"

    def test_missing_context_is_omitted(self):
        logger, stream = _capture("test.logger.empty")

        logger.info("No context")

        data = _lines(stream)[0]
        assert "request_id" not in data
        assert "server_id" not in data


class TestColoredConsoleFormatter:
    def test_level_is_colored(self):
        record = logging.LogRecord("x", logging.ERROR, "x.py", 1, "boom", (), None)
        output = ColoredConsoleFormatter("%(levelname)s %(message)s").format(record)

        assert "\033[31m" in output
        assert output.endswith("boom")


class TestSetupLogging:
    """Tests for setup_logging."""

    def teardown_method(self):
        logging.getLogger().handlers.clear()

    @patch("hostpanel.utils.logger.settings")
    def test_json_format(self, mock_settings):
        mock_settings.LOG_FORMAT = "json"
        mock_settings.LOG_LEVEL = "DEBUG"

        setup_logging()

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, CustomJsonFormatter)

    @patch("hostpanel.utils.logger.settings")
    def test_console_format(self, mock_settings):
        mock_settings.LOG_FORMAT = "console"
        mock_settings.LOG_LEVEL = "INFO"

        setup_logging()

        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, ColoredConsoleFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_get_logger(self):
        assert get_logger("hostpanel.test").name == "hostpanel.test"


class TestLogTimer:
    def test_logs_duration(self):
        logger, stream = _capture("test.logger.timer")

        with log_timer("daemon.create_server", logger):
            pass

        data = _lines(stream)[0]
        assert data["operation"] == "daemon.create_server"
        assert data["outcome"] == "ok"
        assert data["duration_ms"] >= 0

    def test_logs_even_on_error(self):
        logger, stream = _capture("test.logger.timer_error")

        try:
            with log_timer("mysql.ping", logger):
                raise ConnectionError("refused")
        except ConnectionError:
            pass

        data = _lines(stream)[0]
        assert data["operation"] == "mysql.ping"
        assert data["outcome"] == "error"
