from .policy import RetryPolicy, AttemptState
from .scheduler import RetryScheduler

__all__ = [
    'RetryPolicy',
    'AttemptState',
    'RetryScheduler',
]
