"""Test configuration hooks and shared fixtures."""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest
from pytest_httpx import HTTPXMock

from wecom_notify.api.auth import TokenManager
from wecom_notify.api.client import API_PREFIX, WeComNotify

CORP_ID = "ww0123456789abcdef"
AGENT_ID = 1000002
APP_SECRET = "test-secret"


def _endpoint(path: str) -> re.Pattern[str]:
    return re.compile(re.escape(f"{API_PREFIX}{path}") + r"(\?.*)?$")


class FakeClock:
    """Controllable replacement for ``time.time``."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class WeComMock:
    """Registers canned WeCom API responses on top of pytest-httpx."""

    corp_id = CORP_ID
    agent_id = AGENT_ID
    app_secret = APP_SECRET

    TOKEN_URL = _endpoint("/gettoken")
    SEND_URL = _endpoint("/message/send")
    UPLOAD_URL = _endpoint("/media/upload")

    def __init__(self, httpx_mock: HTTPXMock):
        self.httpx_mock = httpx_mock

    def add_token(self, token: str = "token-1", expires_in: int = 7200) -> None:
        self.httpx_mock.add_response(
            url=self.TOKEN_URL,
            json={"errcode": 0, "errmsg": "ok", "access_token": token, "expires_in": expires_in},
        )

    def add_token_error(self, errcode: int = 40001, errmsg: str = "invalid credential") -> None:
        self.httpx_mock.add_response(
            url=self.TOKEN_URL, json={"errcode": errcode, "errmsg": errmsg}
        )

    def add_send(self, errcode: int = 0, **extra: Any) -> None:
        self.httpx_mock.add_response(
            url=self.SEND_URL,
            json={"errcode": errcode, "errmsg": "ok" if errcode == 0 else "error", **extra},
        )

    def add_upload(self, errcode: int = 0, **extra: Any) -> None:
        self.httpx_mock.add_response(
            url=self.UPLOAD_URL,
            json={"errcode": errcode, "errmsg": "ok" if errcode == 0 else "error", **extra},
        )

    def token_requests(self) -> list[httpx.Request]:
        return self.httpx_mock.get_requests(url=self.TOKEN_URL)

    def send_requests(self) -> list[httpx.Request]:
        return self.httpx_mock.get_requests(url=self.SEND_URL)

    def upload_requests(self) -> list[httpx.Request]:
        return self.httpx_mock.get_requests(url=self.UPLOAD_URL)

    @staticmethod
    def body(request: httpx.Request) -> dict[str, Any]:
        return json.loads(request.content)


@pytest.fixture
def wecom(httpx_mock: HTTPXMock) -> WeComMock:
    return WeComMock(httpx_mock)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def http_client() -> Iterator[httpx.Client]:
    with httpx.Client(base_url=API_PREFIX, timeout=10.0) as client:
        yield client


@pytest.fixture
def cache_path(tmp_path: Path) -> Path:
    return tmp_path / "cache" / ".wecom_notify"


@pytest.fixture
def token_manager(http_client: httpx.Client, clock: FakeClock) -> TokenManager:
    """Token manager with persistence disabled."""
    return TokenManager(http_client, corp_id=CORP_ID, app_secret=APP_SECRET, clock=clock)


@pytest.fixture
def persistent_manager_factory(http_client: httpx.Client, clock: FakeClock, cache_path: Path):
    """Build token managers sharing one cache file, as separate processes would."""

    def factory(**kwargs: Any) -> TokenManager:
        kwargs.setdefault("corp_id", CORP_ID)
        kwargs.setdefault("app_secret", APP_SECRET)
        kwargs.setdefault("agent_id", AGENT_ID)
        kwargs.setdefault("token_persist", True)
        kwargs.setdefault("cache_file_path", cache_path)
        kwargs.setdefault("clock", clock)
        return TokenManager(http_client, **kwargs)

    return factory


@pytest.fixture
def notify() -> Iterator[WeComNotify]:
    """Client with persistence disabled, closed after the test."""
    with WeComNotify(corp_id=CORP_ID, agent_id=AGENT_ID, app_secret=APP_SECRET) as client:
        yield client
