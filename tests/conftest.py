import pytest
import os
import sys
import random
from unittest.mock import Mock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from retrykit import RetryPolicy, RetryScheduler


class FakeApiError(Exception):
    """Exception shaped like the errors raised by HTTP based SDK clients."""

    def __init__(self, message='api error', status_code=None, headers=None, retry_after=None):
        super().__init__(message)
        self.status_code = status_code
        self.headers = headers or {}
        if retry_after is not None:
            self.retry_after = retry_after


class FakeClientError(Exception):
    """Exception shaped like botocore's ClientError."""

    def __init__(self, code, status, message='service error', headers=None):
        super().__init__(f"An error occurred ({code}): {message}")
        self.response = {
            'Error': {'Code': code, 'Message': message},
            'ResponseMetadata': {
                'HTTPStatusCode': status,
                'HTTPHeaders': headers or {},
            },
        }


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def api_error():
    return FakeApiError


@pytest.fixture
def client_error():
    return FakeClientError


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recorded_sleeps(fake_clock):
    sleeps = []

    def sleep(delay):
        sleeps.append(delay)
        fake_clock.advance(delay)

    sleep.calls = sleeps
    return sleep


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=30.0, jitter_fraction=0.0)


@pytest.fixture
def jittered_policy():
    return RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=10.0, jitter_fraction=0.5)


@pytest.fixture
def seeded_scheduler():
    return RetryScheduler(rng=random.Random(1234))


@pytest.fixture
def mock_logger():
    return Mock()
