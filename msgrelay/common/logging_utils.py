"""
Structured logging for the producer and consumer.

Events are logged as `logger.info(event, extra={"fields": {...}})` and rendered
by JsonFormatter as one JSON object per line on stdout.
"""
import json
import logging
import os
import sys
import time
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(getattr(record, "fields", {}))
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["error"] = str(exc)
            payload["error_type"] = type(exc).__name__
            payload["traceback"] = self.formatException(record.exc_info).replace("\n", "\\n")
        return json.dumps(payload, ensure_ascii=False, default=str)


def get_json_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(service_name)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    logger.propagate = False
    return logger


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    """
    Log a named event with structured fields.

    Example:
        log_event(logger, "message_created", id="1718000000000000000")
    """
    logger.log(level, event, extra={"fields": fields})


def log_error_event(logger: logging.Logger, event: str, exc: BaseException | None = None, **fields: Any) -> None:
    """Log an event at ERROR level, with the exception's traceback when given."""
    logger.error(event, exc_info=exc, extra={"fields": fields})


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    Access log: one `http_request` event per request, tagged with the serving
    host and any service-specific context (the consumer adds its producer).
    5xx responses are logged at WARNING.
    """

    def __init__(self, app, logger: logging.Logger, hostname: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(app)
        self.logger = logger
        self.hostname = hostname
        self.context = context or {}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in ("/health", "/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        response = await call_next(request)
        log_event(
            self.logger,
            "http_request",
            level=logging.WARNING if response.status_code >= 500 else logging.INFO,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            request_id=request_id,
            hostname=self.hostname,
            **self.context,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response


def setup_exception_logging(app: FastAPI, logger: logging.Logger) -> None:
    """Log unhandled exceptions as a single JSON line and answer 500."""

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log_error_event(logger, "unhandled_exception", exc=exc, method=request.method, path=request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
