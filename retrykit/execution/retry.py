import inspect
import logging
from functools import wraps
from typing import Callable, Optional

from retrykit.classification.classifier import ErrorClassifier
from retrykit.execution.executor import AsyncCallExecutor, CallExecutor
from retrykit.scheduling.policy import RetryPolicy
from retrykit.scheduling.scheduler import RetryScheduler
from retrykit.utils.error_metrics import ErrorMetrics


def retry_with_backoff(
    policy: RetryPolicy,
    classifier: Optional[ErrorClassifier] = None,
    scheduler: Optional[RetryScheduler] = None,
    logger: Optional[logging.Logger] = None,
    metrics: Optional[ErrorMetrics] = None,
    cancel_token=None
) -> Callable:
    """
    Decorator that runs every call of the function through a retry executor.

    Works for plain functions (CallExecutor) and ``async def`` functions
    (AsyncCallExecutor). The function name is used as the operation name.

    Args:
        policy: Retry policy applied to each call
        classifier: Optional classifier replacing the default ErrorClassifier
        scheduler: Optional scheduler replacing the default RetryScheduler
        logger: Optional logger; defaults to the decorated function's module logger
        metrics: Optional ErrorMetrics to record outcomes into
        cancel_token: Optional token shared by all calls (e.g. a shutdown signal)

    Returns:
        Decorated function with retry logic
    """
    def decorator(func: Callable) -> Callable:
        func_logger = logger or logging.getLogger(func.__module__)

        if inspect.iscoroutinefunction(func):
            async_executor = AsyncCallExecutor(
                policy, classifier=classifier, scheduler=scheduler,
                logger=func_logger, metrics=metrics
            )

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                return await async_executor.run(
                    lambda: func(*args, **kwargs),
                    operation_name=func.__name__,
                    cancel_token=cancel_token
                )
            async_wrapper.executor = async_executor
            return async_wrapper

        executor = CallExecutor(
            policy, classifier=classifier, scheduler=scheduler,
            logger=func_logger, metrics=metrics
        )

        @wraps(func)
        def wrapper(*args, **kwargs):
            return executor.run(
                lambda: func(*args, **kwargs),
                operation_name=func.__name__,
                cancel_token=cancel_token
            )
        wrapper.executor = executor
        return wrapper
    return decorator
