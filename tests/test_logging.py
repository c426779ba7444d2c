"""Tests for logging configuration."""

import json
import logging
from unittest.mock import patch

from bedrock_gateway.config import Environment, Settings
from bedrock_gateway.logging_config import (
    DevFormatter,
    JSONFormatter,
    get_logger,
    setup_logging,
)


def _record(msg: str = "Test message", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="/app/module.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_format_basic_message(self) -> None:
        """Basic log message is formatted as JSON."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert data["file"] == "/app/module.py:42"
        assert data["service"] == "bedrock-gateway"
        assert "timestamp" in data
        assert "environment" not in data

    def test_format_includes_extra(self) -> None:
        """Fields passed through extra= are kept."""
        record = _record()
        record.error_code = "BRG-4002"

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"] == {"error_code": "BRG-4002"}

    def test_format_with_exception(self) -> None:
        """Exception info is included in output."""
        try:
            raise ValueError("test error")
        except ValueError:
            import sys

            exc_info = sys.exc_info()

        record = _record("Error", logging.ERROR)
        record.exc_info = exc_info

        data = json.loads(JSONFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "test error"
        assert "Traceback" in data["exception"]["traceback"]

    def test_format_tags_environment(self) -> None:
        """The configured environment is stamped on every record."""
        data = json.loads(JSONFormatter(environment="staging").format(_record()))

        assert data["environment"] == "staging"

    def test_secret_extras_masked(self) -> None:
        """Extra fields that look like credentials are masked."""
        record = _record()
        record.api_key = "sk-live"
        record.model_id = "meta.llama3-8b-instruct-v1:0"

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"] == {"api_key": "***", "model_id": "meta.llama3-8b-instruct-v1:0"}


class TestDevFormatter:
    """Tests for development formatter."""

    def test_format_includes_level(self) -> None:
        """Development format includes level, logger and message."""
        output = DevFormatter().format(_record("Warning message", logging.WARNING))

        assert "WARNING" in output
        assert "test" in output
        assert "Warning message" in output

    def test_format_appends_extras(self) -> None:
        """Extra fields follow the message as key=value pairs."""
        record = _record("Stream failed")
        record.error_code = "BRG-5002"

        output = DevFormatter().format(record)

        assert output.endswith("Stream failed | error_code=BRG-5002")


class TestSetupLogging:
    """Tests for logging setup."""

    def test_uses_json_in_production(self) -> None:
        """JSON output is used in production environment."""
        mock_settings = Settings(environment=Environment.PRODUCTION)

        with patch("bedrock_gateway.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.handlers[0].formatter.environment == "production"

    def test_uses_dev_formatter_in_development(self) -> None:
        """Dev formatter is used in development environment."""
        mock_settings = Settings(environment=Environment.DEVELOPMENT)

        with patch("bedrock_gateway.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, DevFormatter)

    def test_level_override(self) -> None:
        """Log level can be overridden."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger().level == logging.DEBUG

    def test_quiets_client_libraries(self) -> None:
        """HTTP and AWS client loggers are raised to WARNING."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger("botocore").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING


class TestGetLogger:
    """Tests for named logger retrieval."""

    def test_returns_named_logger(self) -> None:
        """get_logger returns a logger with the given name."""
        assert get_logger("bedrock_gateway.rag").name == "bedrock_gateway.rag"
