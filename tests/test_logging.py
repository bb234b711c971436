"""Tests for logging configuration and probe request logging."""

import logging
from unittest.mock import Mock, patch

import pytest
import structlog
from pydantic import ValidationError
from starlette.responses import Response

from lightkeeper.config import LightkeeperSettings
from lightkeeper.logging_config import configure_logging
from lightkeeper.middleware import ProbeLoggingMiddleware


class TestLoggingConfiguration:
    """Tests for structlog configuration."""

    def test_configure_logging_json_format(self, monkeypatch):
        """Test that JSON format is loaded from the environment."""
        monkeypatch.setenv("LIGHTKEEPER_LOG_FORMAT", "json")
        monkeypatch.setenv("LIGHTKEEPER_LOG_LEVEL", "INFO")

        configure_logging()

        logger = structlog.get_logger("test")
        assert logger is not None
        assert logging.root.level == logging.INFO

    def test_configure_logging_console_format(self, monkeypatch):
        """Test that console format is loaded from the environment."""
        monkeypatch.setenv("LIGHTKEEPER_LOG_FORMAT", "console")
        monkeypatch.setenv("LIGHTKEEPER_LOG_LEVEL", "DEBUG")

        configure_logging()

        assert logging.root.level == logging.DEBUG

    def test_configure_logging_respects_log_level(self):
        """Test that an explicit settings object is honored."""
        configure_logging(LightkeeperSettings(log_format="json", log_level="ERROR"))

        assert logging.root.level == logging.ERROR


class TestConfigSettings:
    """Tests for logging-related config settings."""

    def test_settings_default_log_level(self):
        settings = LightkeeperSettings()
        assert settings.log_level == "INFO"
        assert settings.log_level_value == logging.INFO

    def test_settings_default_log_format(self):
        settings = LightkeeperSettings()
        assert settings.log_format == "console"

    def test_settings_validates_log_level_case_insensitive(self):
        settings = LightkeeperSettings(log_level="warning")
        assert settings.log_level == "WARNING"

    def test_settings_validates_log_level_invalid(self):
        with pytest.raises(ValidationError, match="Invalid log level"):
            LightkeeperSettings(log_level="INVALID")

    def test_settings_validates_log_format_invalid(self):
        with pytest.raises(ValidationError, match="Invalid log format"):
            LightkeeperSettings(log_format="pretty")


class TestProbeLoggingMiddleware:
    """Tests for probe request logging."""

    @pytest.fixture
    def mock_app(self):
        """Mock ASGI application."""

        async def app(scope, receive, send):
            response = Response(content="READY", status_code=200)
            await response(scope, receive, send)

        return app

    @pytest.mark.asyncio
    async def test_logs_probe_request(self, mock_app):
        middleware = ProbeLoggingMiddleware(mock_app)
        scope = {
            "type": "http",
            "method": "GET",
            "path": "/ready",
            "headers": [],
            "query_string": b"",
            "client": ("10.0.0.7", 53211),
        }

        async def receive():
            return {"type": "http.request", "body": b""}

        sent = []

        async def send(message):
            sent.append(message)

        with patch("lightkeeper.middleware.logger") as mock_logger:
            await middleware(scope, receive, send)

        assert sent[0]["status"] == 200
        mock_logger.debug.assert_called_once()
        kwargs = mock_logger.debug.call_args.kwargs
        assert kwargs["path"] == "/ready"
        assert kwargs["status_code"] == 200
        assert kwargs["client_ip"] == "10.0.0.7"

    @pytest.mark.asyncio
    async def test_non_http_scope_passed_through(self):
        inner = Mock()

        async def app(scope, receive, send):
            inner(scope["type"])

        middleware = ProbeLoggingMiddleware(app)

        with patch("lightkeeper.middleware.logger") as mock_logger:
            await middleware({"type": "lifespan"}, None, None)

        inner.assert_called_once_with("lifespan")
        mock_logger.debug.assert_not_called()
