from .logger import setup_logger, get_logger
from .exceptions import (
    RetryableError,
    PermanentError,
    RetryError,
    CallFailedError,
    RetryCancelledError,
)
from .error_metrics import ErrorMetrics, get_global_metrics
from .config_loader import ConfigLoader

__all__ = [
    'setup_logger',
    'get_logger',
    'RetryableError',
    'PermanentError',
    'RetryError',
    'CallFailedError',
    'RetryCancelledError',
    'ErrorMetrics',
    'get_global_metrics',
    'ConfigLoader',
]
