"""
Structured logging system for clubadmin.

Provides centralized logging with console and file outputs, plus
run metrics for reconciliation and cleanup passes.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for maintenance runs.
    """

    def __init__(
        self,
        name: str = "clubadmin",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()

        self.metrics = {
            "store_calls": 0,
            "members_reconciled": 0,
            "members_changed": 0,
            "members_failed": 0,
            "records_removed": {},
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"clubadmin_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def set_level(self, level: str):
        """Change the logger and console level. The file handler level is left as is."""
        self.logger.setLevel(getattr(logging, level.upper()))
        for handler in self.logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(getattr(logging, level.upper()))

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str, ensure_ascii=False)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_store_call(self):
        """Increment store call counter."""
        self.metrics["store_calls"] += 1

    def record_reconcile(self, changed: bool):
        """Record a member whose total was rewritten."""
        self.metrics["members_reconciled"] += 1
        if changed:
            self.metrics["members_changed"] += 1

    def record_reconcile_failure(self, error_type: str):
        """Record a member that could not be reconciled."""
        self.metrics["members_failed"] += 1
        self.record_error(error_type)

    def record_removal(self, entity: str, count: int = 1):
        """Record records deleted by a cleanup."""
        removed = self.metrics["records_removed"]
        removed[entity] = removed.get(entity, 0) + count

    def record_error(self, error_type: str):
        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        metrics_copy = self.metrics.copy()
        metrics_copy["records_removed"] = dict(self.metrics["records_removed"])
        metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])

        attempted = metrics_copy["members_reconciled"] + metrics_copy["members_failed"]
        metrics_copy["reconcile_success_rate"] = (
            round(metrics_copy["members_reconciled"] / attempted, 3) if attempted else None
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Maintenance Run Metrics ===")
        self.info(f"Store calls: {metrics['store_calls']}")

        attempted = metrics["members_reconciled"] + metrics["members_failed"]
        if attempted:
            rate = metrics["reconcile_success_rate"] * 100
            self.info(
                f"Members reconciled: {metrics['members_reconciled']}/{attempted} "
                f"({rate:.1f}% success, {metrics['members_changed']} changed)"
            )

        if metrics["records_removed"]:
            self.info("Records removed:")
            for entity, count in metrics["records_removed"].items():
                self.info(f"  {entity}: {count}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "clubadmin",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (default: CLUBADMIN_LOG_LEVEL or INFO)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if level is None:
            level = os.getenv("CLUBADMIN_LOG_LEVEL", "INFO")
        kwargs.setdefault("log_dir", Path(os.getenv("CLUBADMIN_LOG_DIR", "logs")))
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
