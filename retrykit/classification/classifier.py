import json
import socket
import time
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterable, Optional

from retrykit.classification.categories import ClassifiedError, ErrorCategory
from retrykit.utils.exceptions import PermanentError, RetryableError


RATE_LIMITED_STATUSES = frozenset({429})
TRANSIENT_STATUSES = frozenset({500, 502, 503, 504})
PERMISSION_DENIED_STATUSES = frozenset({401, 403})
NOT_FOUND_STATUSES = frozenset({404})
INVALID_INPUT_STATUSES = frozenset({400})

# Service error codes, compared case-insensitively. AWS reports most of these
# in the ``Error.Code`` field and as the modeled exception class name.
DEFAULT_ERROR_CODES: Dict[ErrorCategory, frozenset] = {
    ErrorCategory.RATE_LIMITED: frozenset({
        'throttling', 'throttlingexception', 'throttled', 'requestthrottled',
        'requestthrottledexception', 'toomanyrequestsexception', 'toomanyrequests',
        'requestlimitexceeded', 'ratelimitexceeded', 'limitexceededexception',
        'provisionedthroughputexceededexception', 'slowdown', 'bandwidthlimitexceeded',
        'ec2throttledexception', 'priorrequestnotcomplete', 'transactioninprogressexception',
        'userratelimitexceeded', 'quotaexceeded', 'rate_limit_exceeded',
    }),
    ErrorCategory.TRANSIENT: frozenset({
        'internalerror', 'internalfailure', 'internalservererror', 'internalserverexception',
        'serviceunavailable', 'serviceunavailableexception', 'servicefailure',
        'requesttimeout', 'requesttimeoutexception', 'requesttimetooskewed',
        'connectionerror', 'endpointconnectionerror', 'connectionclosederror',
        'timeout', 'readtimeout', 'connecttimeout', 'readtimeouterror', 'connecttimeouterror',
    }),
    ErrorCategory.PERMISSION_DENIED: frozenset({
        'accessdenied', 'accessdeniedexception', 'unauthorizedoperation',
        'unauthorizedexception', 'notauthorized', 'notauthorizedexception',
        'authfailure', 'forbidden', 'forbiddenexception', 'invalidclienttokenid',
        'unrecognizedclientexception', 'expiredtoken', 'expiredtokenexception',
        'signaturedoesnotmatch', 'missingauthenticationtoken',
    }),
    ErrorCategory.NOT_FOUND: frozenset({
        'resourcenotfoundexception', 'resourcenotfound', 'notfound', 'notfoundexception',
        'nosuchkey', 'nosuchbucket', 'nosuchentity', 'nosuchentityexception',
        'nosuchupload', 'parameternotfound', 'queuedoesnotexist',
        'aws.simplequeueservice.nonexistentqueue', 'entitynotfoundexception',
    }),
    ErrorCategory.INVALID_INPUT: frozenset({
        'validationexception', 'validationerror', 'invalidparametervalue',
        'invalidparametervalueexception', 'invalidparameterexception',
        'invalidparametercombination', 'invalidargumentexception', 'invalidargument',
        'invalidrequestexception', 'invalidrequest', 'invalidinput', 'invalidinputexception',
        'malformedquerystring', 'malformedpolicydocument', 'malformedpolicydocumentexception',
        'missingparameter', 'missingrequiredparameter', 'serializationexception',
        'badrequest', 'badrequestexception',
    }),
}

RATE_LIMITED_PHRASES = ('rate exceeded', 'throttl', 'too many requests', 'slow down', 'rate limit')

# Categories that carry an error code, in the order they are checked.
_CODE_ORDER = (
    ErrorCategory.RATE_LIMITED,
    ErrorCategory.TRANSIENT,
    ErrorCategory.PERMISSION_DENIED,
    ErrorCategory.NOT_FOUND,
    ErrorCategory.INVALID_INPUT,
)


def _as_status(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if 100 <= value <= 599:
        return value
    return None


def _response_metadata(error: BaseException) -> Dict[str, Any]:
    response = getattr(error, 'response', None)
    if isinstance(response, dict):
        metadata = response.get('ResponseMetadata')
        if isinstance(metadata, dict):
            return metadata
    return {}


def extract_status_code(error: BaseException) -> Optional[int]:
    """
    Find an HTTP status code on an exception.

    Looks at the shapes used by common clients: ``status_code``/``status``
    attributes, an integer ``code``, googleapiclient's ``resp.status``,
    requests/httpx ``response.status_code`` and botocore's
    ``response['ResponseMetadata']['HTTPStatusCode']``.
    """
    for attr in ('status_code', 'status', 'code'):
        status = _as_status(getattr(error, attr, None))
        if status is not None:
            return status

    resp = getattr(error, 'resp', None)
    if resp is not None:
        status = _as_status(getattr(resp, 'status', None))
        if status is not None:
            return status

    response = getattr(error, 'response', None)
    if response is not None and not isinstance(response, dict):
        status = _as_status(getattr(response, 'status_code', None))
        if status is not None:
            return status

    return _as_status(_response_metadata(error).get('HTTPStatusCode'))


def _first_reason(items: Any) -> Optional[str]:
    if not isinstance(items, list):
        return None
    for item in items:
        if isinstance(item, dict) and isinstance(item.get('reason'), str) and item['reason']:
            return item['reason']
    return None


def _google_error_reason(error: BaseException) -> Optional[str]:
    """
    Read the ``reason`` of a googleapiclient ``HttpError``.

    googleapiclient only fills ``error_details`` when the body carries a
    ``message``, so the JSON content is read as well.
    """
    reason = _first_reason(getattr(error, 'error_details', None))
    if reason is not None:
        return reason

    content = getattr(error, 'content', None)
    if getattr(error, 'resp', None) is None or not isinstance(content, bytes):
        return None
    try:
        data = json.loads(content.decode('utf-8'))
    except ValueError:
        return None

    if isinstance(data, list) and data:
        data = data[0]
    body = data.get('error') if isinstance(data, dict) else None
    if not isinstance(body, dict):
        return None
    return _first_reason(body.get('errors')) or _first_reason(body.get('details'))


def extract_error_code(error: BaseException) -> Optional[str]:
    """
    Find a service error code (e.g. ``ThrottlingException``) on an exception.

    Looks at botocore's ``response['Error']['Code']``, string ``error_code``
    and ``code`` attributes, and the ``reason`` Google APIs attach to each
    error (e.g. ``rateLimitExceeded`` on a 403).
    """
    response = getattr(error, 'response', None)
    if isinstance(response, dict):
        details = response.get('Error')
        if isinstance(details, dict) and isinstance(details.get('Code'), str):
            return details['Code']

    for attr in ('error_code', 'code'):
        value = getattr(error, attr, None)
        if isinstance(value, str) and value:
            return value

    return _google_error_reason(error)


def parse_retry_after(value: Any) -> Optional[float]:
    """
    Parse a Retry-After value into seconds.

    Accepts numbers, delta-seconds strings and HTTP-dates. Returns None when
    the value cannot be understood.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return max(float(value), 0.0)
    if not isinstance(value, str):
        return None

    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    return max(when.timestamp() - time.time(), 0.0)


def _header(headers: Any, name: str) -> Any:
    if headers is None or not hasattr(headers, 'get'):
        return None
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def extract_retry_after(error: BaseException) -> Optional[float]:
    """Find a retry hint, either as a ``retry_after`` attribute or a Retry-After header."""
    hint = parse_retry_after(getattr(error, 'retry_after', None))
    if hint is not None:
        return hint

    candidates = [getattr(error, 'headers', None), getattr(error, 'resp', None)]
    response = getattr(error, 'response', None)
    if response is not None and not isinstance(response, dict):
        candidates.append(getattr(response, 'headers', None))
    candidates.append(_response_metadata(error).get('HTTPHeaders'))

    for headers in candidates:
        hint = parse_retry_after(_header(headers, 'Retry-After'))
        if hint is not None:
            return hint
    return None


class ErrorClassifier:
    """
    Maps exceptions raised by remote calls onto an ErrorCategory.

    Classification only inspects the shape of the exception (status codes,
    service error codes, exception types) so it works with any client
    library. Additional service codes can be registered per category to
    support backends whose codes are not known here.
    """

    def __init__(self, extra_error_codes: Optional[Dict[ErrorCategory, Iterable[str]]] = None):
        codes = {category: set(values) for category, values in DEFAULT_ERROR_CODES.items()}
        for category, values in (extra_error_codes or {}).items():
            if category == ErrorCategory.UNKNOWN:
                raise ValueError("Error codes cannot be registered for the UNKNOWN category")
            codes.setdefault(category, set()).update(v.lower() for v in values)
        self._error_codes = {category: frozenset(values) for category, values in codes.items()}

    def classify(self, error: BaseException, operation_name: str) -> ClassifiedError:
        """
        Classify an exception raised by ``operation_name``.

        Args:
            error: Exception raised by the remote call (must not be None)
            operation_name: Name of the operation, kept for reporting

        Returns:
            ClassifiedError wrapping the exception

        Raises:
            TypeError: If error is None or not an exception
        """
        if error is None:
            raise TypeError("Cannot classify None; an exception instance is required")
        if not isinstance(error, BaseException):
            raise TypeError(f"Cannot classify {type(error).__name__}; an exception instance is required")

        status = extract_status_code(error)
        code = extract_error_code(error)
        category = self._categorize(error, status, code)

        retry_after = None
        if category.retryable:
            retry_after = extract_retry_after(error)

        return ClassifiedError(
            original_error=error,
            category=category,
            operation_name=operation_name,
            retry_after=retry_after,
            http_status=status,
            error_code=code,
        )

    def _categorize(self, error: BaseException, status: Optional[int], code: Optional[str]) -> ErrorCategory:
        if isinstance(error, RetryableError):
            if status in RATE_LIMITED_STATUSES:
                return ErrorCategory.RATE_LIMITED
            return ErrorCategory.TRANSIENT

        code_category = self._category_for_code(code)
        if code_category is None:
            code_category = self._category_for_code(type(error).__name__)

        if isinstance(error, PermanentError):
            category = self._category_for_status(status) or code_category
            if category is None or category.retryable:
                return ErrorCategory.UNKNOWN
            return category

        if (
            status in RATE_LIMITED_STATUSES
            or code_category == ErrorCategory.RATE_LIMITED
            or (status in (None, 400) and self._mentions_rate_limit(error, status, code))
        ):
            return ErrorCategory.RATE_LIMITED

        if (
            status in TRANSIENT_STATUSES
            or code_category == ErrorCategory.TRANSIENT
            or isinstance(error, (ConnectionError, TimeoutError, socket.timeout))
        ):
            return ErrorCategory.TRANSIENT

        if (
            status in PERMISSION_DENIED_STATUSES
            or code_category == ErrorCategory.PERMISSION_DENIED
            or isinstance(error, PermissionError)
        ):
            return ErrorCategory.PERMISSION_DENIED

        if (
            status in NOT_FOUND_STATUSES
            or code_category == ErrorCategory.NOT_FOUND
            or isinstance(error, FileNotFoundError)
        ):
            return ErrorCategory.NOT_FOUND

        if (
            status in INVALID_INPUT_STATUSES
            or code_category == ErrorCategory.INVALID_INPUT
            or isinstance(error, ValueError)
        ):
            return ErrorCategory.INVALID_INPUT

        return ErrorCategory.UNKNOWN

    def _category_for_code(self, code: Optional[str]) -> Optional[ErrorCategory]:
        if not code:
            return None
        code = code.lower()
        for category in _CODE_ORDER:
            if code in self._error_codes.get(category, ()):
                return category
        return None

    @staticmethod
    def _category_for_status(status: Optional[int]) -> Optional[ErrorCategory]:
        if status in PERMISSION_DENIED_STATUSES:
            return ErrorCategory.PERMISSION_DENIED
        if status in NOT_FOUND_STATUSES:
            return ErrorCategory.NOT_FOUND
        if status in INVALID_INPUT_STATUSES:
            return ErrorCategory.INVALID_INPUT
        return None

    @staticmethod
    def _mentions_rate_limit(error: BaseException, status: Optional[int], code: Optional[str]) -> bool:
        # Phrases only count on service errors, never on local argument errors.
        if isinstance(error, (ValueError, TypeError, KeyError)):
            return False
        if status is None and code is None and not isinstance(getattr(error, 'response', None), dict):
            return False
        message = str(error).lower()
        return any(phrase in message for phrase in RATE_LIMITED_PHRASES)
