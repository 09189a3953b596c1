from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Coarse categories that decide whether a failed remote call is retried."""
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in (ErrorCategory.TRANSIENT, ErrorCategory.RATE_LIMITED)


@dataclass(frozen=True)
class ClassifiedError:
    """
    An exception raised by a remote call together with its category.

    Attributes:
        original_error: The exception raised by the operation
        category: Category assigned by the classifier
        operation_name: Name of the operation that raised it
        retry_after: Server supplied retry hint in seconds, if any
        http_status: HTTP status code found on the error, if any
        error_code: Service error code found on the error, if any
    """
    original_error: BaseException
    category: ErrorCategory
    operation_name: str
    retry_after: Optional[float] = None
    http_status: Optional[int] = None
    error_code: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.category.retryable
