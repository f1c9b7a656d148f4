"""
Structured logging for the HSE Portal backend.

JSON lines in production (for log shippers), coloured single-line output in
development. All application loggers live under the ``hse`` namespace.
"""

import json
import logging
import sys
import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.config import settings

SERVICE_NAME = "hse-portal-backend"

# LogRecord attributes that are not user-supplied "extra" fields
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
    "thread", "threadName", "message", "taskName",
})

_QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with any ``extra=`` fields nested under "extra"."""

    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": settings.ENVIRONMENT,
            "source": {"file": record.filename, "line": record.lineno, "function": record.funcName},
        }

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        extra = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)


class ColoredFormatter(logging.Formatter):
    """Readable console output for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{color}{stamp} | {record.levelname:8} | {record.name} | {record.getMessage()}{self.RESET}"
        if record.exc_info:
            last = traceback.format_exception(*record.exc_info)[-1].strip()
            line += f"\n{color}{last}{self.RESET}"
        return line


class ContextLogger:
    """
    Logger wrapper that stamps bound context (request id, company id, ...)
    onto every record as extra fields.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        self._logger = logger
        self._context: dict[str, Any] = dict(context)

    def bind(self, **context: Any) -> "ContextLogger":
        """Return a new logger carrying this logger's context plus ``context``."""
        return ContextLogger(self._logger, **{**self._context, **context})

    def log(self, level: int, msg: str, *args, **kwargs) -> None:
        extra = {**self._context, **kwargs.pop("extra", {})}
        self._logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs) -> None:
        kwargs["exc_info"] = True
        self.log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(
    service_name: str = SERVICE_NAME,
    log_level: Optional[str] = None,
    json_logs: Optional[bool] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        service_name: Value of the "service" field in JSON output
        log_level: Explicit level; defaults to LOG_LEVEL, then DEBUG/INFO by DEBUG flag
        json_logs: Force JSON output on or off; defaults to on in production
    """
    level_name = (log_level or settings.LOG_LEVEL or ("DEBUG" if settings.DEBUG else "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    use_json = json_logs if json_logs is not None else settings.ENVIRONMENT.lower() == "production"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter(service_name) if use_json else ColoredFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("hse.logging").info(
        "Logging configured: level=%s, format=%s, environment=%s",
        level_name, "JSON" if use_json else "colored", settings.ENVIRONMENT,
    )


def get_logger(name: str, **context: Any) -> ContextLogger:
    """
    Usage:
        logger = get_logger("hse.documents", company_id=ctx.company_id)
        logger.info("Uploaded %s", path)
    """
    return ContextLogger(logging.getLogger(name), **context)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestLoggingMiddleware:
    """ASGI middleware logging method, path, status and duration per HTTP request."""

    SKIP_PATHS = ("/health", "/metrics")

    def __init__(self, app):
        self.app = app
        self.logger = logging.getLogger("hse.http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = generate_request_id()
        scope.setdefault("state", {})["request_id"] = request_id
        started = time.perf_counter()
        status_code = 0

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            status_code = 500
            raise
        finally:
            path = scope.get("path", "/")
            if path not in self.SKIP_PATHS:
                method = scope.get("method", "UNKNOWN")
                duration_ms = (time.perf_counter() - started) * 1000
                self.logger.log(
                    logging.WARNING if status_code >= 400 else logging.INFO,
                    "%s %s %s %.1fms", method, path, status_code, duration_ms,
                    extra={
                        "request_id": request_id,
                        "method": method,
                        "path": path,
                        "status": status_code,
                        "duration_ms": round(duration_ms, 1),
                    },
                )
