"""
Logging configuration for p3core.

Provides plain or JSON-structured logging to the console, optional rotating
log files, and a small timing logger for index builds.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per record so pipeline logs can be parsed.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


class PerformanceLogger:
    """
    Logger for operation timings.

    Keeps every duration per operation so a run can report a summary at the end.
    """

    def __init__(self, logger_name: str = "p3core.performance"):
        self.logger = logging.getLogger(logger_name)
        self.metrics: Dict[str, list] = {}

    def log_operation_time(self, operation: str, duration_seconds: float, **kwargs):
        """
        Log operation timing.

        Args:
            operation: Name of the operation
            duration_seconds: How long it took
            **kwargs: Additional context (e.g., sequences, kmers)
        """
        self.metrics.setdefault(operation, []).append(duration_seconds)
        extra = {
            "extra_fields": {
                "operation": operation,
                "duration_seconds": duration_seconds,
                **kwargs,
            }
        }
        self.logger.info(f"{operation} completed in {duration_seconds:.2f}s", extra=extra)

    def log_throughput(self, operation: str, items: int, duration_seconds: float):
        """Log an operation together with its items-per-second rate."""
        rate = items / duration_seconds if duration_seconds > 0 else 0
        self.log_operation_time(
            operation,
            duration_seconds,
            items_processed=items,
            items_per_second=rate,
        )

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics for all tracked operations."""
        import numpy as np

        summary = {}
        for operation, durations in self.metrics.items():
            summary[operation] = {
                "count": len(durations),
                "total_seconds": sum(durations),
                "mean_seconds": float(np.mean(durations)),
                "median_seconds": float(np.median(durations)),
                "min_seconds": min(durations),
                "max_seconds": max(durations),
            }
        return summary


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    enable_json: bool = False,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the root logger for a p3core run.

    Progress goes to stderr so that tab-delimited results on stdout can be piped
    into the next tool.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a rotating log file
        enable_json: Use JSON formatting for structured logs
        max_bytes: Maximum size of each log file before rotation
        backup_count: Number of backup log files to keep

    Returns:
        Configured root logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG", enable_json=True)
        >>> logger.info("Index build started")
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if enable_json:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATEFMT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger
