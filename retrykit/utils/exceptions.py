from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from retrykit.classification.categories import ClassifiedError, ErrorCategory


class RetryableError(Exception):
    """
    Exception that indicates the operation can be retried.
    Raise it from an operation to force a retry for failures the classifier
    cannot recognise on its own (e.g. an application level "try again").
    """
    def __init__(
        self,
        message: str,
        original_exception: Exception = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception
        self.status_code = status_code
        self.retry_after = retry_after


class PermanentError(Exception):
    """
    Exception that indicates the operation should not be retried.
    Used for errors like invalid input, authentication failures, or business logic errors.
    """
    def __init__(
        self,
        message: str,
        original_exception: Exception = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception
        self.status_code = status_code


class RetryError(Exception):
    """Base class for the outcome errors raised by the executors."""


class CallFailedError(RetryError):
    """
    Terminal failure of a retried call.

    Raised from the last exception the operation raised, so ``__cause__``
    and ``original_error`` both point at the root cause.
    """
    def __init__(self, classified: "ClassifiedError", attempts: int, elapsed: float):
        self.classified = classified
        self.attempts = attempts
        self.elapsed = elapsed
        super().__init__(
            f"{classified.operation_name} failed after {attempts} attempt(s) "
            f"in {elapsed:.2f}s [{classified.category.value}]: "
            f"{type(classified.original_error).__name__}: {classified.original_error}"
        )

    @property
    def category(self) -> "ErrorCategory":
        return self.classified.category

    @property
    def original_error(self) -> BaseException:
        return self.classified.original_error

    @property
    def operation_name(self) -> str:
        return self.classified.operation_name


class RetryCancelledError(RetryError):
    """Raised when the caller cancels a run between attempts."""
    def __init__(
        self,
        operation_name: str,
        attempts: int,
        elapsed: float,
        last_error: Optional["ClassifiedError"] = None
    ):
        self.operation_name = operation_name
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_error = last_error
        message = (
            f"{operation_name} cancelled after {attempts} attempt(s) in {elapsed:.2f}s"
        )
        if last_error is not None:
            message += f" (last error [{last_error.category.value}]: {last_error.original_error})"
        super().__init__(message)
