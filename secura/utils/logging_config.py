"""
Structured logging configuration for Secura.

Provides JSON-formatted logs in production and a readable line format
in development, plus a small in-process metrics collector.
"""

import logging
import sys
import json
import time
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from functools import wraps
from contextvars import ContextVar

from secura.config import settings


# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if request_id_var.get():
            log_data["request_id"] = request_id_var.get()
        if user_id_var.get():
            log_data["user_id"] = user_id_var.get()

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        log_data["environment"] = settings.environment

        return json.dumps(log_data, default=str)


class StructuredLogger:
    """
    Wrapper for structured logging with additional context.

    Usage:
        logger = StructuredLogger("secura.api")
        logger.info("Upload received", filename="photo.jpg", size=20480)
        logger.error("Gateway call failed", error=str(e), exc_info=True)
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, message: str, **kwargs):
        if not self._logger.isEnabledFor(level):
            return
        extra_data = kwargs.pop("extra_data", None) or kwargs
        record = self._logger.makeRecord(
            name=self._logger.name,
            level=level,
            fn="",
            lno=0,
            msg=message,
            args=(),
            exc_info=None,
        )
        if extra_data:
            record.extra_data = extra_data
        self._logger.handle(record)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs):
        if exc_info:
            self._logger.error(message, exc_info=True, extra={"extra_data": kwargs})
        else:
            self._log(logging.ERROR, message, **kwargs)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
):
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (True for prod, False for dev)
        log_file: Optional file path for file logging
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
        )
        console_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.upper()))
        file_handler.setFormatter(JSONFormatter())  # Always JSON for files
        root_logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("python_multipart").setLevel(logging.WARNING)
    logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)


# ============== METRICS ==============


class MetricsCollector:
    """
    Collects and aggregates metrics for monitoring.

    Usage:
        metrics = MetricsCollector()
        metrics.increment("analysis.forensics.total")
        metrics.timing("analysis.forensics.latency", 0.125)
    """

    def __init__(self):
        self._counters: Dict[str, int] = {}
        self._timings: Dict[str, list] = {}
        self._start_time = time.time()

    def increment(self, name: str, value: int = 1):
        self._counters[name] = self._counters.get(name, 0) + value

    def timing(self, name: str, value: float):
        if name not in self._timings:
            self._timings[name] = []
        self._timings[name].append(value)
        # Keep only last 1000 values
        if len(self._timings[name]) > 1000:
            self._timings[name] = self._timings[name][-1000:]

    def get_stats(self) -> Dict[str, Any]:
        """Get current metrics."""
        timing_stats = {}
        for name, values in self._timings.items():
            if values:
                sorted_vals = sorted(values)
                timing_stats[name] = {
                    "count": len(values),
                    "min": min(values),
                    "max": max(values),
                    "avg": sum(values) / len(values),
                    "p50": sorted_vals[len(sorted_vals) // 2],
                    "p95": sorted_vals[int(len(sorted_vals) * 0.95)] if len(sorted_vals) >= 20 else None,
                }

        return {
            "uptime_seconds": time.time() - self._start_time,
            "counters": self._counters.copy(),
            "timings": timing_stats,
        }

    def reset(self):
        self._counters.clear()
        self._timings.clear()


# Global metrics instance
metrics = MetricsCollector()


# ============== DECORATORS ==============


def track_analysis(kind: str):
    """Decorator to count analyses by outcome and record their latency."""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            metrics.increment(f"analysis.{kind}.total")
            start = time.time()
            try:
                result = await func(*args, **kwargs)
            except Exception:
                metrics.increment(f"analysis.{kind}.errors")
                raise
            metrics.timing(f"analysis.{kind}.latency", time.time() - start)
            classification = result.get("classification", "unknown")
            metrics.increment(f"analysis.{kind}.classification.{classification}")
            return result

        return wrapper

    return decorator


def init_logging():
    """Initialize logging based on environment settings."""
    setup_logging(
        level="INFO" if settings.is_production else "DEBUG",
        json_format=settings.is_production,
    )
