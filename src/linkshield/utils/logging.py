"""Structured logging setup using structlog."""

import logging
import sys
from typing import Any

import structlog
from structlog.types import FilteringBoundLogger


def setup_logging(
    log_level: str = "INFO", json_logs: bool = False, include_caller_info: bool = False
) -> None:
    """Configure structured logging with appropriate processors."""

    # Configure standard library logging (httpx, sqlalchemy, apscheduler)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        # Add contextvars (scan ids, request ids)
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _safe_add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )

    processors.extend(
        [
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
        ]
    )

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        # Log to stderr so CLI json output on stdout stays parseable
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _safe_add_logger_name(logger, method_name: str, event_dict):
    """Safely add logger name, handling WriteLogger and other logger types."""
    try:
        if hasattr(logger, "name"):
            event_dict["logger"] = logger.name
        elif hasattr(logger, "_logger") and hasattr(logger._logger, "name"):
            event_dict["logger"] = logger._logger.name
        else:
            event_dict["logger"] = event_dict.get("logger", "unknown")
    except Exception:
        event_dict["logger"] = "unknown"
    return event_dict


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a configured structlog logger."""
    return structlog.get_logger(name)


class LoggingContextManager:
    """Context manager for scoped logging context (e.g. one scan run)."""

    def __init__(self, **context: Any):
        self.context = context
        self.original_context: dict[str, Any] = {}

    def __enter__(self):
        self.original_context = structlog.contextvars.get_contextvars()
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**self.original_context)


class StructuredLogger:
    """Wrapper for structured logging with convenience methods."""

    def __init__(self, name: str):
        self.logger = get_logger(name)
        self.name = name

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message with structured data."""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message with structured data."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message with structured data."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message with structured data."""
        self.logger.error(message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(message, **kwargs)


def get_structured_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
