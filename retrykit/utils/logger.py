import logging
import os
import threading
import json
import traceback
from datetime import datetime
from typing import Optional, Dict, Any


_logger_lock = threading.Lock()

DEFAULT_LOGGER_NAME = 'retrykit'

# Structured fields the executors attach to their records via ``extra=``.
CONTEXT_FIELDS = [
    'operation', 'attempt', 'max_attempts', 'category', 'exception_type',
    'exception_message', 'retry_delay', 'retry_after', 'http_status',
    'error_code', 'elapsed_time', 'traceback'
]


class StructuredFormatter(logging.Formatter):
    """
    Formatter that appends the structured retry context of a record.
    The context is rendered as JSON below the message, tracebacks verbatim.
    """

    def format(self, record: logging.LogRecord) -> str:
        base_message = super().format(record)

        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            context = {k: v for k, v in extra_data.items() if k != 'traceback'}
            if context:
                extra_str = json.dumps(context, indent=2, default=str)
                base_message += f"\n  Context: {extra_str}"

        tb = getattr(record, 'traceback', None)
        if tb:
            base_message += f"\n  Traceback:\n{tb}"

        return base_message


class ErrorContextFilter(logging.Filter):
    """
    Collects the known context fields of a record into ``record.extra_data``.
    Keeps the log message itself short while the file log stays searchable.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        extra_data = {}
        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                extra_data[field] = getattr(record, field)

        if extra_data:
            record.extra_data = extra_data

        return True


def setup_logger(name: str = DEFAULT_LOGGER_NAME, log_dir: str = 'logs') -> logging.Logger:
    """
    Set up a thread-safe logger with both console and file handlers.
    Calling it again for the same name returns the configured logger.

    Args:
        name: Logger name
        log_dir: Directory to store log files

    Returns:
        Configured logger instance
    """
    with _logger_lock:
        logger = logging.getLogger(name)
        logger.setLevel(logging.INFO)

        if logger.handlers:
            return logger

        os.makedirs(log_dir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(log_dir, f'{name}_{timestamp}.log')

        file_formatter = StructuredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(file_formatter)
        file_handler.addFilter(ErrorContextFilter())

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter('%(message)s'))

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

        logger.info(f"Logging to file: {log_file}")

        return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Get a logger by name (the library logger by default)."""
    return logging.getLogger(name)


def log_error_with_context(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    context: Optional[Dict[str, Any]] = None,
    include_traceback: bool = True
):
    """
    Log an error with structured context and optional traceback.

    Args:
        logger: Logger instance to use
        message: Error message
        exception: Optional exception object
        context: Optional dictionary of context information
        include_traceback: Whether to include traceback in log
    """
    extra = dict(context or {})

    if exception is not None:
        extra['exception_type'] = type(exception).__name__
        extra['exception_message'] = str(exception)

    if include_traceback:
        if exception is not None and exception.__traceback__ is not None:
            extra['traceback'] = ''.join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
        else:
            extra['traceback'] = traceback.format_exc()

    logger.error(message, extra=extra)


def log_warning_with_context(
    logger: logging.Logger,
    message: str,
    context: Optional[Dict[str, Any]] = None
):
    """Log a warning with structured context."""
    logger.warning(message, extra=dict(context or {}))


def log_info_with_context(
    logger: logging.Logger,
    message: str,
    context: Optional[Dict[str, Any]] = None
):
    """Log an info message with structured context."""
    logger.info(message, extra=dict(context or {}))
