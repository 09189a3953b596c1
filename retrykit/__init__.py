from .classification import ErrorCategory, ClassifiedError, ErrorClassifier
from .scheduling import RetryPolicy, AttemptState, RetryScheduler
from .execution import (
    CancellationToken,
    AsyncCancellationToken,
    CallExecutor,
    AsyncCallExecutor,
    retry_with_backoff,
)
from .utils import (
    setup_logger,
    get_logger,
    RetryableError,
    PermanentError,
    RetryError,
    CallFailedError,
    RetryCancelledError,
    ErrorMetrics,
    get_global_metrics,
    ConfigLoader,
)

__version__ = '1.0.0'

__all__ = [
    'ErrorCategory',
    'ClassifiedError',
    'ErrorClassifier',
    'RetryPolicy',
    'AttemptState',
    'RetryScheduler',
    'CancellationToken',
    'AsyncCancellationToken',
    'CallExecutor',
    'AsyncCallExecutor',
    'retry_with_backoff',
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
