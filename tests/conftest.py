"""Root conftest.py for the TaxBandits e-filing test suite.

Project-wide fixtures: a fake clock for token expiry, a manual scheduler for
the status poller, and a mocked requests.Session returning real Response objects.
"""

import itertools
import json
from typing import Any, Callable, List, Optional

import pytest
import requests
from pytest_mock import MockerFixture, MockType

from taxbandit import TaxBanditClient, TaxBanditConfig

CLIENT_SECRET = "test-client-secret-0123456789abcdef0123456789"


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


class FakeClock:
    """Callable Unix clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTimer:
    def __init__(self, due: float, seq: int, callback: Callable[[], None]):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        """Run the callback regardless of cancellation, like a timer that already fired."""
        self.callback()


class ManualScheduler:
    """Virtual-time scheduler: timers run only inside advance()."""

    def __init__(self):
        self._now = 0.0
        self._seq = itertools.count()
        self.timers: List[ManualTimer] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self._now + delay, next(self._seq), callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.timers.remove(timer)
            self._now = timer.due
            timer.callback()
        self._now = target


def build_response(
    status_code: int = 200,
    body: Any = None,
    reason: Optional[str] = None,
    raw: Optional[bytes] = None,
) -> requests.Response:
    """A real requests.Response with the given status and JSON body."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason or ("OK" if status_code < 400 else "Error")
    if raw is not None:
        response._content = raw
    elif body is not None:
        response._content = json.dumps(body).encode("utf-8")
    else:
        response._content = b""
    response.headers["Content-Type"] = "application/json"
    return response


def oauth_body(token: str = "access-token-1", expires_in: int = 3600) -> dict:
    return {
        "AccessToken": token,
        "TokenType": "Bearer",
        "ExpiresIn": expires_in,
        "StatusCode": 200,
        "StatusName": "Ok",
    }


@pytest.fixture
def config() -> TaxBanditConfig:
    return TaxBanditConfig(
        client_id="client-id-0123456789",
        client_secret=CLIENT_SECRET,
        user_token="user-token-abcdef",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def session(mocker: MockerFixture) -> MockType:
    """Session whose OAuth POST succeeds; API calls are configured per test."""
    mock_session = mocker.Mock(spec=requests.Session)
    mock_session.post.return_value = build_response(200, oauth_body())
    return mock_session


@pytest.fixture
def client(config: TaxBanditConfig, session: MockType, clock: FakeClock) -> TaxBanditClient:
    return TaxBanditClient(config, session=session, clock=clock)


@pytest.fixture
def mock_client(mocker: MockerFixture) -> MockType:
    """A TaxBanditClient stand-in for service-level tests."""
    return mocker.Mock(spec=TaxBanditClient)


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    """Factory for real requests.Response objects."""
    return build_response


@pytest.fixture
def make_oauth_body() -> Callable[..., dict]:
    return oauth_body
