import pytest
import socket
from email.utils import format_datetime
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from googleapiclient.errors import HttpError

from retrykit import ErrorCategory, ErrorClassifier, PermanentError, RetryableError
from retrykit.classification.classifier import (
    extract_status_code,
    extract_error_code,
    parse_retry_after,
)


@pytest.fixture
def classifier():
    return ErrorClassifier()


class TestStatusCodes:
    @pytest.mark.parametrize('status, expected', [
        (429, ErrorCategory.RATE_LIMITED),
        (500, ErrorCategory.TRANSIENT),
        (502, ErrorCategory.TRANSIENT),
        (503, ErrorCategory.TRANSIENT),
        (504, ErrorCategory.TRANSIENT),
        (403, ErrorCategory.PERMISSION_DENIED),
        (401, ErrorCategory.PERMISSION_DENIED),
        (404, ErrorCategory.NOT_FOUND),
        (400, ErrorCategory.INVALID_INPUT),
        (409, ErrorCategory.UNKNOWN),
        (501, ErrorCategory.UNKNOWN),
    ])
    def test_status_code_mapping(self, classifier, api_error, status, expected):
        classified = classifier.classify(api_error(status_code=status), 'get_item')

        assert classified.category == expected
        assert classified.http_status == status
        assert classified.operation_name == 'get_item'

    def test_google_http_error_shape(self, classifier):
        error_response = Mock()
        error_response.status = 404
        error = HttpError(resp=error_response, content=b'Not Found')

        classified = classifier.classify(error, 'spreadsheets.get')

        assert classified.category == ErrorCategory.NOT_FOUND
        assert classified.http_status == 404

    def test_google_http_error_rate_limited(self, classifier):
        error_response = Mock()
        error_response.status = 429
        error = HttpError(resp=error_response, content=b'Quota exceeded')

        classified = classifier.classify(error, 'spreadsheets.values.update')

        assert classified.category == ErrorCategory.RATE_LIMITED

    @pytest.mark.parametrize('reason', ['rateLimitExceeded', 'userRateLimitExceeded', 'quotaExceeded'])
    def test_google_quota_reason_on_403_is_rate_limited(self, classifier, reason):
        error_response = Mock()
        error_response.status = 403
        content = ('{"error":{"code":403,"errors":[{"reason":"%s"}]}}' % reason).encode('utf-8')
        error = HttpError(resp=error_response, content=content)

        classified = classifier.classify(error, 'spreadsheets.values.update')

        assert classified.category == ErrorCategory.RATE_LIMITED
        assert classified.http_status == 403
        assert classified.error_code == reason

    def test_google_reason_from_error_details(self, classifier):
        error_response = Mock()
        error_response.status = 403
        content = (
            b'{"error":{"code":403,"message":"Quota exceeded for quota metric \'Write requests\'",'
            b'"errors":[{"message":"Quota exceeded","domain":"usageLimits","reason":"userRateLimitExceeded"}]}}'
        )
        error = HttpError(resp=error_response, content=content)

        classified = classifier.classify(error, 'spreadsheets.values.update')

        assert classified.category == ErrorCategory.RATE_LIMITED
        assert classified.error_code == 'userRateLimitExceeded'

    def test_google_forbidden_reason_stays_permission_denied(self, classifier):
        error_response = Mock()
        error_response.status = 403
        content = b'{"error":{"code":403,"message":"The caller does not have permission","errors":[{"reason":"forbidden"}]}}'
        error = HttpError(resp=error_response, content=content)

        classified = classifier.classify(error, 'spreadsheets.get')

        assert classified.category == ErrorCategory.PERMISSION_DENIED
        assert classified.error_code == 'forbidden'

    def test_requests_style_response(self, classifier):
        error = Exception('Server Error')
        error.response = Mock(status_code=503, headers={})

        assert classifier.classify(error, 'fetch').category == ErrorCategory.TRANSIENT

    def test_bool_status_is_ignored(self):
        error = Exception('boom')
        error.status = True

        assert extract_status_code(error) is None

    def test_out_of_range_code_is_ignored(self):
        error = Exception('boom')
        error.code = 42

        assert extract_status_code(error) is None


class TestServiceErrorCodes:
    @pytest.mark.parametrize('code, status, expected', [
        ('ThrottlingException', 400, ErrorCategory.RATE_LIMITED),
        ('ProvisionedThroughputExceededException', 400, ErrorCategory.RATE_LIMITED),
        ('SlowDown', 503, ErrorCategory.RATE_LIMITED),
        ('InternalFailure', 500, ErrorCategory.TRANSIENT),
        ('AccessDeniedException', 400, ErrorCategory.PERMISSION_DENIED),
        ('ResourceNotFoundException', 400, ErrorCategory.NOT_FOUND),
        ('NoSuchKey', 404, ErrorCategory.NOT_FOUND),
        ('ValidationException', 400, ErrorCategory.INVALID_INPUT),
        ('InvalidArgumentException', 400, ErrorCategory.INVALID_INPUT),
        ('ConditionalCheckFailedException', 400, ErrorCategory.INVALID_INPUT),
        ('ConditionalCheckFailedException', 409, ErrorCategory.UNKNOWN),
    ])
    def test_botocore_error_codes(self, classifier, client_error, code, status, expected):
        classified = classifier.classify(client_error(code, status), 'dynamodb.get_item')

        assert classified.category == expected
        assert classified.error_code == code

    def test_throttling_wins_over_bad_request_status(self, classifier, client_error):
        classified = classifier.classify(client_error('Throttling', 400, 'Rate exceeded'), 'describe')

        assert classified.category == ErrorCategory.RATE_LIMITED

    def test_exception_class_name_is_used_as_code(self, classifier):
        class ResourceNotFoundException(Exception):
            pass

        classified = classifier.classify(ResourceNotFoundException('table missing'), 'describe_table')

        assert classified.category == ErrorCategory.NOT_FOUND

    def test_codes_are_case_insensitive(self, classifier, client_error):
        classified = classifier.classify(client_error('THROTTLINGEXCEPTION', 400), 'op')

        assert classified.category == ErrorCategory.RATE_LIMITED

    def test_extract_error_code_from_attribute(self):
        error = Exception('boom')
        error.error_code = 'AccessDenied'

        assert extract_error_code(error) == 'AccessDenied'

    def test_extra_error_codes(self, client_error):
        classifier = ErrorClassifier(extra_error_codes={
            ErrorCategory.TRANSIENT: ['KMSInternalException'],
        })

        classified = classifier.classify(client_error('KMSInternalException', 400), 'decrypt')

        assert classified.category == ErrorCategory.TRANSIENT

    def test_extra_error_codes_reject_unknown_category(self):
        with pytest.raises(ValueError, match="UNKNOWN"):
            ErrorClassifier(extra_error_codes={ErrorCategory.UNKNOWN: ['Whatever']})


class TestExceptionTypes:
    @pytest.mark.parametrize('error, expected', [
        (ConnectionResetError('reset by peer'), ErrorCategory.TRANSIENT),
        (ConnectionRefusedError('refused'), ErrorCategory.TRANSIENT),
        (TimeoutError('timed out'), ErrorCategory.TRANSIENT),
        (socket.timeout('timed out'), ErrorCategory.TRANSIENT),
        (PermissionError('denied'), ErrorCategory.PERMISSION_DENIED),
        (FileNotFoundError('missing'), ErrorCategory.NOT_FOUND),
        (ValueError('bad parameter'), ErrorCategory.INVALID_INPUT),
        (RuntimeError('something odd'), ErrorCategory.UNKNOWN),
        (KeyError('x'), ErrorCategory.UNKNOWN),
    ])
    def test_builtin_exceptions(self, classifier, error, expected):
        assert classifier.classify(error, 'op').category == expected

    def test_rate_limit_message_on_service_error(self, classifier, client_error):
        classified = classifier.classify(client_error('LimitReached', 400, 'Rate exceeded'), 'describe')

        assert classified.category == ErrorCategory.RATE_LIMITED

    def test_rate_limit_message_on_bad_request(self, classifier, api_error):
        classified = classifier.classify(api_error('Too Many Requests, slow down', status_code=400), 'op')

        assert classified.category == ErrorCategory.RATE_LIMITED

    @pytest.mark.parametrize('error, expected', [
        (ValueError('rate limit must be a positive integer'), ErrorCategory.INVALID_INPUT),
        (ValueError('invalid throttle setting'), ErrorCategory.INVALID_INPUT),
        (TypeError('throttle expects a float'), ErrorCategory.UNKNOWN),
        (KeyError('rate limit'), ErrorCategory.UNKNOWN),
        (RuntimeError('Rate exceeded for this account'), ErrorCategory.UNKNOWN),
    ])
    def test_rate_limit_message_ignored_on_local_errors(self, classifier, error, expected):
        classified = classifier.classify(error, 'op')

        assert classified.category == expected
        assert not classified.retryable

    def test_rate_limit_message_ignored_with_other_status(self, classifier, api_error):
        classified = classifier.classify(api_error('rate limit docs not found', status_code=404), 'op')

        assert classified.category == ErrorCategory.NOT_FOUND


class TestMarkers:
    def test_retryable_error_is_transient(self, classifier):
        classified = classifier.classify(RetryableError('try again'), 'op')

        assert classified.category == ErrorCategory.TRANSIENT

    def test_retryable_error_with_429_is_rate_limited(self, classifier):
        error = RetryableError('slow down', status_code=429, retry_after=3)

        classified = classifier.classify(error, 'op')

        assert classified.category == ErrorCategory.RATE_LIMITED
        assert classified.retry_after == 3.0

    def test_permanent_error_is_never_retryable(self, classifier):
        classified = classifier.classify(PermanentError('connection timeout forever'), 'op')

        assert classified.category == ErrorCategory.UNKNOWN
        assert classified.retryable is False

    def test_permanent_error_with_status(self, classifier):
        classified = classifier.classify(PermanentError('no access', status_code=403), 'op')

        assert classified.category == ErrorCategory.PERMISSION_DENIED

    def test_permanent_error_with_retryable_status(self, classifier):
        classified = classifier.classify(PermanentError('give up', status_code=503), 'op')

        assert classified.category == ErrorCategory.UNKNOWN


class TestRetryAfter:
    def test_retry_after_attribute(self, classifier, api_error):
        classified = classifier.classify(api_error(status_code=429, retry_after=10), 'op')

        assert classified.retry_after == 10.0

    def test_retry_after_header(self, classifier, api_error):
        error = api_error(status_code=429, headers={'Retry-After': '7'})

        assert classifier.classify(error, 'op').retry_after == 7.0

    def test_retry_after_lowercase_header(self, classifier, api_error):
        error = api_error(status_code=503, headers={'retry-after': '2.5'})

        assert classifier.classify(error, 'op').retry_after == 2.5

    def test_retry_after_botocore_headers(self, classifier, client_error):
        error = client_error('ThrottlingException', 400, headers={'retry-after': '4'})

        assert classifier.classify(error, 'op').retry_after == 4.0

    def test_retry_after_not_captured_for_non_retryable(self, classifier, api_error):
        error = api_error(status_code=404, headers={'Retry-After': '7'})

        assert classifier.classify(error, 'op').retry_after is None

    def test_missing_retry_after(self, classifier, api_error):
        assert classifier.classify(api_error(status_code=429), 'op').retry_after is None

    def test_google_http_error_without_hint(self, classifier):
        error_response = Mock()
        error_response.status = 503
        error = HttpError(resp=error_response, content=b'Backend Error')

        assert classifier.classify(error, 'op').retry_after is None

    @pytest.mark.parametrize('value, expected', [
        ('5', 5.0),
        (' 12 ', 12.0),
        (3, 3.0),
        (-4, 0.0),
        ('soon', None),
        (None, None),
        (True, None),
    ])
    def test_parse_retry_after(self, value, expected):
        assert parse_retry_after(value) == expected

    def test_parse_retry_after_http_date(self):
        when = datetime.now(timezone.utc) + timedelta(seconds=120)

        seconds = parse_retry_after(format_datetime(when, usegmt=True))

        assert 110 <= seconds <= 121

    def test_parse_retry_after_past_http_date(self):
        assert parse_retry_after('Wed, 21 Oct 2015 07:28:00 GMT') == 0.0


class TestClassifyContract:
    def test_classify_none_fails_fast(self, classifier):
        with pytest.raises(TypeError, match="None"):
            classifier.classify(None, 'op')

    def test_classify_non_exception_fails_fast(self, classifier):
        with pytest.raises(TypeError):
            classifier.classify('503', 'op')

    def test_classification_is_deterministic(self, classifier, client_error):
        error = client_error('ThrottlingException', 400, headers={'Retry-After': '3'})

        first = classifier.classify(error, 'op')
        second = classifier.classify(error, 'op')

        assert first == second
        assert first.category == second.category

    def test_classified_error_is_immutable(self, classifier, api_error):
        classified = classifier.classify(api_error(status_code=503), 'op')

        with pytest.raises(Exception):
            classified.category = ErrorCategory.UNKNOWN

    def test_original_error_is_kept(self, classifier, api_error):
        error = api_error(status_code=503)

        assert classifier.classify(error, 'op').original_error is error
