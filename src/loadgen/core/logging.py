"""Loguru logging on stderr with trace correlation.

stdout carries the completion records, so every log sink goes to stderr.
"""
import sys
import json
import logging
from loguru import logger as loguru_logger
from opentelemetry import trace

from src.loadgen.core.config import settings


def get_trace_id() -> str:
    """Trace ID of the active OpenTelemetry span, if any."""
    span = trace.get_current_span()
    if span and span.is_recording():
        span_context = span.get_span_context()
        if span_context.is_valid:
            return format(span_context.trace_id, "032x")
    return "no-trace"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru."""

    def emit(self, record):
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def json_formatter(record):
    """Format loguru record as a JSON line."""
    log_entry = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        "level": record["level"].name,
        "message": record["message"],
        "trace_id": get_trace_id(),
        "service": settings.PROJECT_NAME,
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if record["exception"]:
        exc = record["exception"]
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else "Unknown",
            "value": str(exc.value) if exc.value else "",
        }

    if record["extra"]:
        log_entry.update(record["extra"])

    # loguru treats the returned string as a template, escape braces
    return json.dumps(log_entry, default=str).replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging(debug: bool = settings.DEBUG):
    """Setup logging: JSON in production, colored text otherwise."""
    log_level = "DEBUG" if debug else "INFO"

    loguru_logger.remove()

    if settings.ENV == "production":
        loguru_logger.add(
            sys.stderr,
            format=json_formatter,
            level=log_level,
            serialize=False,
        )
    else:
        loguru_logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=log_level,
            colorize=True,
        )

    # httpx and httpcore log through the standard library
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]
        logging.getLogger(logger_name).propagate = False
        logging.getLogger(logger_name).setLevel(logging.DEBUG if debug else logging.WARNING)


logger = loguru_logger
