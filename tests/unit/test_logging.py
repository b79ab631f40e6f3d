"""
Tests for the logging module and the request tracing middleware.
"""

import json
import logging

import pytest
import structlog


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_development_mode(self):
        from core.logging import configure_logging

        configure_logging(json_logs=False, log_level="DEBUG")

    def test_configure_production_mode(self):
        from core.logging import configure_logging

        configure_logging(json_logs=True, log_level="INFO")

    def test_configure_log_level(self):
        from core.logging import configure_logging

        configure_logging(log_level="WARNING")
        assert logging.getLogger().level == logging.WARNING

        configure_logging(log_level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        from core.logging import configure_logging

        configure_logging(log_level="CHATTY")

        assert logging.getLogger().level == logging.INFO

    def test_noisy_loggers_quieted(self):
        from core.logging import configure_logging

        configure_logging(log_level="DEBUG")

        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("redis").level == logging.WARNING


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_named_logger(self):
        from core.logging import get_logger

        logger = get_logger("test.module")

        assert hasattr(logger, "info")
        assert hasattr(logger, "debug")
        assert hasattr(logger, "error")

    def test_logger_can_log(self):
        from core.logging import configure_logging, get_logger

        configure_logging(json_logs=False, log_level="DEBUG")
        logger = get_logger("test")

        logger.info("Filter state saved", key="search_scope_filters_abc")
        logger.debug("Resolved filters", filters={"categories": ["shoes"]})
        logger.warning("Redis unavailable")


class TestContextBinding:
    """Tests for context binding functions."""

    def test_bind_and_clear_context(self):
        from core.logging import bind_context, clear_context

        clear_context()
        bind_context(request_id="abc", path="/api/filters")

        ctx = structlog.contextvars.get_contextvars()
        assert ctx.get("request_id") == "abc"
        assert ctx.get("path") == "/api/filters"

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_unbind_specific_context(self):
        from core.logging import bind_context, clear_context, unbind_context

        clear_context()
        bind_context(request_id="abc", method="POST", path="/api/filters")

        unbind_context("path")

        ctx = structlog.contextvars.get_contextvars()
        assert ctx.get("request_id") == "abc"
        assert "path" not in ctx

        clear_context()


class TestLoggerMixin:
    """Tests for LoggerMixin class."""

    def test_mixin_provides_logger(self):
        from core.logging import LoggerMixin, configure_logging

        configure_logging(json_logs=False)

        class FilterThing(LoggerMixin):
            def work(self):
                self.logger.info("Working")

        thing = FilterThing()
        assert thing.logger is not None
        thing.work()


class TestJSONOutput:
    """Tests for JSON logging output."""

    def test_json_output_is_valid_json(self, capsys):
        from core.logging import configure_logging, get_logger

        configure_logging(json_logs=True, log_level="INFO")
        get_logger("json_test").info("Test message", key="value")

        captured = capsys.readouterr()
        for line in captured.out.strip().split("\n"):
            if line.startswith("{"):
                data = json.loads(line)
                assert "event" in data


class TestRequestTracingMiddleware:
    """The tracing middleware echoes request ids and timing."""

    def _client(self):
        from fastapi import FastAPI
        from fastapi.testclient import TestClient
        from core.middleware import RequestTracingMiddleware

        app = FastAPI()
        app.add_middleware(RequestTracingMiddleware)

        @app.get("/ping")
        def ping():
            return {"context": structlog.contextvars.get_contextvars().get("path")}

        return TestClient(app)

    def test_generates_request_id(self):
        response = self._client().get("/ping")

        assert response.status_code == 200
        assert len(response.headers["X-Request-ID"]) == 8
        assert response.headers["X-Response-Time"].endswith("ms")

    def test_propagates_request_id(self):
        response = self._client().get("/ping", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_context_cleared_after_request(self):
        from core.logging import clear_context

        clear_context()
        self._client().get("/ping")

        assert "request_id" not in structlog.contextvars.get_contextvars()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
