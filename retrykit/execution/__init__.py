from .cancellation import CancellationToken, AsyncCancellationToken
from .executor import CallExecutor, AsyncCallExecutor
from .retry import retry_with_backoff

__all__ = [
    'CancellationToken',
    'AsyncCancellationToken',
    'CallExecutor',
    'AsyncCallExecutor',
    'retry_with_backoff',
]
