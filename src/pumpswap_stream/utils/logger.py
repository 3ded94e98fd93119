"""
Logging setup for the stream service.

- JSON lines for production, with stream context (pool, signature, slot,
  room, state, attempt) lifted from `extra=`
- Plain text for local runs
- A timer that flags slow per-record processing
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

# Extra attributes copied into JSON log lines when present on the record
CONTEXT_FIELDS = (
    "pool",
    "signature",
    "slot",
    "room",
    "state",
    "attempt",
    "execution_time",
)

TEXT_FORMAT = '%(asctime)s %(levelname)-8s %(name)s: %(message)s'

# Library loggers held at INFO or above
QUIET_LOGGERS = ("grpc", "asyncio", "redis", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class PerformanceLogger:
    """Times hot-path blocks; debug when fast, warning past the threshold."""

    def __init__(self, logger: logging.Logger, slow_threshold_ms: float = 250.0):
        self.logger = logger
        self.slow_threshold_ms = slow_threshold_ms

    @contextmanager
    def timer(self, operation: str, **context):
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            extra = {'execution_time': round(elapsed_ms, 3), **context}
            if elapsed_ms >= self.slow_threshold_ms:
                self.logger.warning(f"Slow {operation}: {elapsed_ms:.1f}ms", extra=extra)
            else:
                self.logger.debug(f"{operation} took {elapsed_ms:.2f}ms", extra=extra)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True,
) -> logging.Logger:
    """
    Configure the root logger for the process.

    Replaces any existing root handlers with stdout (and optionally a file),
    all sharing one formatter.

    Args:
        log_level: Root level name
        log_file: Also append to this file (parent directories are created)
        json_format: JSON lines instead of plain text

    Returns:
        The root logger
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper()))

    formatter = JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))

    return root


def get_performance_logger(name: str, slow_threshold_ms: float = 250.0) -> PerformanceLogger:
    return PerformanceLogger(logging.getLogger(name), slow_threshold_ms)
