import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

from retrykit.classification.categories import ClassifiedError
from retrykit.classification.classifier import ErrorClassifier
from retrykit.scheduling.policy import AttemptState, RetryPolicy
from retrykit.scheduling.scheduler import RetryScheduler
from retrykit.utils.error_metrics import ErrorMetrics
from retrykit.utils.exceptions import CallFailedError, RetryCancelledError
from retrykit.utils.logger import log_error_with_context, log_info_with_context, log_warning_with_context


T = TypeVar('T')


def _operation_name(operation: Callable, operation_name: Optional[str]) -> str:
    if operation_name:
        return operation_name
    return getattr(operation, '__name__', None) or type(operation).__name__


class _ExecutorBase:
    """Classification, scheduling and reporting shared by both executors."""

    def __init__(
        self,
        policy: RetryPolicy,
        classifier: Optional[ErrorClassifier] = None,
        scheduler: Optional[RetryScheduler] = None,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[ErrorMetrics] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        if not isinstance(policy, RetryPolicy):
            raise TypeError(f"policy must be a RetryPolicy, got {type(policy).__name__}")
        self.policy = policy
        self.classifier = classifier or ErrorClassifier()
        self.scheduler = scheduler or RetryScheduler()
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = metrics
        self._clock = clock

    def _start(self) -> Tuple[AttemptState, float]:
        if self.metrics is not None:
            self.metrics.increment_total_operations()
        return AttemptState(), self._clock()

    def _on_error(
        self,
        error: Exception,
        name: str,
        state: AttemptState,
        started: float
    ) -> Tuple[ClassifiedError, bool, float]:
        state.elapsed_time = self._clock() - started
        classified = self.classifier.classify(error, name)

        if self.metrics is not None:
            self.metrics.record_error(
                category=classified.category.value,
                operation_name=name,
                error_message=str(error),
                is_retryable=classified.retryable,
                attempt=state.attempt_number,
                exception_type=type(error).__name__
            )

        retry, delay = self.scheduler.should_retry(classified, state, self.policy)
        if retry:
            log_warning_with_context(
                self.logger,
                f"Retryable error in {name} (attempt {state.attempt_number}/{self.policy.max_attempts}) "
                f"[{classified.category.value}]: {error}. Retrying in {delay:.2f}s",
                context=self._context(classified, state, retry_delay=delay)
            )
        return classified, retry, delay

    def _on_success(self, name: str, state: AttemptState, started: float):
        state.elapsed_time = self._clock() - started
        was_retried = state.attempt_number > 1
        if was_retried:
            log_info_with_context(
                self.logger,
                f"{name} succeeded on attempt {state.attempt_number}/{self.policy.max_attempts}",
                context={
                    'operation': name,
                    'attempt': state.attempt_number,
                    'max_attempts': self.policy.max_attempts,
                    'elapsed_time': state.elapsed_time
                }
            )
        if self.metrics is not None:
            self.metrics.record_success(name, was_retried=was_retried)

    def _failed(self, classified: ClassifiedError, state: AttemptState) -> CallFailedError:
        if classified.retryable:
            message = (
                f"Max attempts ({self.policy.max_attempts}) exhausted for {classified.operation_name}: "
                f"{classified.original_error}"
            )
        else:
            message = (
                f"Non-retryable error in {classified.operation_name} "
                f"[{classified.category.value}]: {classified.original_error}"
            )
        log_error_with_context(
            self.logger,
            message,
            exception=classified.original_error,
            context=self._context(classified, state)
        )
        if self.metrics is not None:
            self.metrics.record_failure(classified.operation_name)
        return CallFailedError(classified, attempts=state.attempt_number, elapsed=state.elapsed_time)

    def _cancelled(
        self,
        name: str,
        attempts: int,
        started: float,
        last_error: Optional[ClassifiedError]
    ) -> RetryCancelledError:
        elapsed = self._clock() - started
        log_info_with_context(
            self.logger,
            f"{name} cancelled after {attempts} attempt(s)",
            context={'operation': name, 'attempt': attempts, 'elapsed_time': elapsed}
        )
        if self.metrics is not None:
            self.metrics.record_cancelled(name)
        return RetryCancelledError(name, attempts=attempts, elapsed=elapsed, last_error=last_error)

    def _context(self, classified: ClassifiedError, state: AttemptState, **extra: Any) -> dict:
        context = {
            'operation': classified.operation_name,
            'attempt': state.attempt_number,
            'max_attempts': self.policy.max_attempts,
            'category': classified.category.value,
            'exception_type': type(classified.original_error).__name__,
            'elapsed_time': state.elapsed_time,
        }
        if classified.http_status is not None:
            context['http_status'] = classified.http_status
        if classified.error_code is not None:
            context['error_code'] = classified.error_code
        if classified.retry_after is not None:
            context['retry_after'] = classified.retry_after
        context.update(extra)
        return context


class CallExecutor(_ExecutorBase):
    """
    Runs a remote operation, retrying classified transient failures.

    Each ``run`` call is independent: attempt state lives on the stack, the
    policy is immutable, so one executor can serve many threads.

    Args:
        policy: Retry policy for the call site
        classifier: Maps exceptions to categories (ErrorClassifier by default)
        scheduler: Decides retries and delays (RetryScheduler by default)
        logger: Logger for retry/failure records (module logger by default)
        metrics: Optional ErrorMetrics to record outcomes into
        sleep: Blocking sleep used between attempts when no token is given
        clock: Monotonic clock used for elapsed time
    """

    def __init__(
        self,
        policy: RetryPolicy,
        classifier: Optional[ErrorClassifier] = None,
        scheduler: Optional[RetryScheduler] = None,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[ErrorMetrics] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        super().__init__(policy, classifier, scheduler, logger, metrics, clock)
        self._sleep = sleep

    def run(
        self,
        operation: Callable[[], T],
        operation_name: Optional[str] = None,
        cancel_token=None
    ) -> T:
        """
        Call ``operation`` until it succeeds or retrying stops.

        Args:
            operation: Zero-argument callable performing the remote call
            operation_name: Name used in errors and logs (callable name by default)
            cancel_token: Optional CancellationToken or threading.Event

        Returns:
            The operation's result

        Raises:
            CallFailedError: Non-retryable error or attempts exhausted
            RetryCancelledError: Cancelled before an attempt or while waiting
        """
        name = _operation_name(operation, operation_name)
        state, started = self._start()
        last_error = None

        while True:
            if cancel_token is not None and cancel_token.is_set():
                raise self._cancelled(name, state.attempt_number - 1, started, last_error)

            try:
                result = operation()
            except Exception as error:
                last_error, retry, delay = self._on_error(error, name, state, started)
                if not retry:
                    raise self._failed(last_error, state) from error
            else:
                self._on_success(name, state, started)
                return result

            if self._pause(delay, cancel_token):
                raise self._cancelled(name, state.attempt_number, started, last_error)
            state.attempt_number += 1

    def _pause(self, delay: float, cancel_token) -> bool:
        if cancel_token is None:
            self._sleep(delay)
            return False
        return bool(cancel_token.wait(delay)) or cancel_token.is_set()


class AsyncCallExecutor(_ExecutorBase):
    """
    asyncio variant of CallExecutor for coroutine operations.

    The pause between attempts is a non-blocking ``asyncio.sleep``.
    Cancelling the surrounding task raises ``asyncio.CancelledError`` as
    usual; an AsyncCancellationToken gives a RetryCancelledError instead.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        classifier: Optional[ErrorClassifier] = None,
        scheduler: Optional[RetryScheduler] = None,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[ErrorMetrics] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        super().__init__(policy, classifier, scheduler, logger, metrics, clock)
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: Optional[str] = None,
        cancel_token=None
    ) -> T:
        """Await ``operation()`` until it succeeds or retrying stops (see CallExecutor.run)."""
        name = _operation_name(operation, operation_name)
        state, started = self._start()
        last_error = None

        while True:
            if cancel_token is not None and cancel_token.is_set():
                raise self._cancelled(name, state.attempt_number - 1, started, last_error)

            try:
                result = await operation()
            except Exception as error:
                last_error, retry, delay = self._on_error(error, name, state, started)
                if not retry:
                    raise self._failed(last_error, state) from error
            else:
                self._on_success(name, state, started)
                return result

            if await self._pause(delay, cancel_token):
                raise self._cancelled(name, state.attempt_number, started, last_error)
            state.attempt_number += 1

    async def _pause(self, delay: float, cancel_token) -> bool:
        if cancel_token is None:
            await self._sleep(delay)
            return False
        return bool(await cancel_token.wait(delay)) or cancel_token.is_set()
