"""
Tests for app/core/logging_config.py - formatters, context loggers and
request logging.
"""
import json
import logging
import sys

import pytest

from app.core.logging_config import (
    ColoredFormatter,
    JSONFormatter,
    RequestLoggingMiddleware,
    get_logger,
    setup_logging,
)


def _record(msg: str = "hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("hse.test", logging.INFO, __file__, 10, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        payload = json.loads(JSONFormatter().format(_record()))

        assert payload["message"] == "hello world"
        assert payload["logger"] == "hse.test"
        assert payload["level"] == "INFO"
        assert payload["service"] == "hse-portal-backend"
        assert "extra" not in payload

    def test_extra_fields_nested(self):
        payload = json.loads(JSONFormatter().format(_record(company_id="c1")))

        assert payload["extra"] == {"company_id": "c1"}

    def test_exception_info(self):
        try:
            raise ValueError("broken")
        except ValueError:
            record = logging.LogRecord("hse.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        payload = json.loads(JSONFormatter().format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "broken"


class TestColoredFormatter:
    def test_single_line(self):
        line = ColoredFormatter().format(_record())

        assert "hse.test" in line
        assert "hello world" in line
        assert "\n" not in line


class TestContextLogger:
    def test_context_is_attached(self, caplog):
        logger = get_logger("hse.test", company_id="c1")

        with caplog.at_level(logging.INFO, logger="hse.test"):
            logger.bind(user_id="u1").info("uploaded %s", "plan.pdf")

        record = caplog.records[-1]
        assert record.getMessage() == "uploaded plan.pdf"
        assert record.company_id == "c1"
        assert record.user_id == "u1"

    def test_bind_does_not_change_parent(self, caplog):
        parent = get_logger("hse.test", company_id="c1")
        parent.bind(user_id="u1")

        with caplog.at_level(logging.INFO, logger="hse.test"):
            parent.info("plain")

        assert not hasattr(caplog.records[-1], "user_id")


class TestSetupLogging:
    def test_json_output_can_be_forced(self):
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            setup_logging(log_level="warning", json_logs=True)

            assert root.level == logging.WARNING
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        finally:
            root.handlers[:], root.level = saved[0], saved[1]


class TestRequestLoggingMiddleware:
    @pytest.mark.asyncio
    async def test_logs_status_and_request_id(self, caplog):
        async def app(scope, receive, send):
            await send({"type": "http.response.start", "status": 404, "headers": []})
            await send({"type": "http.response.body", "body": b""})

        sent = []

        async def send(message):
            sent.append(message)

        scope = {"type": "http", "method": "GET", "path": "/api/v1/tasks/"}
        with caplog.at_level(logging.INFO, logger="hse.http"):
            await RequestLoggingMiddleware(app)(scope, None, send)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.status == 404
        assert record.path == "/api/v1/tasks/"
        assert scope["state"]["request_id"] == record.request_id
        assert len(sent) == 2

    @pytest.mark.asyncio
    async def test_health_is_not_logged(self, caplog):
        async def app(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})

        async def send(message):
            pass

        with caplog.at_level(logging.INFO, logger="hse.http"):
            await RequestLoggingMiddleware(app)({"type": "http", "method": "GET", "path": "/health"}, None, send)

        assert not [r for r in caplog.records if r.name == "hse.http"]
