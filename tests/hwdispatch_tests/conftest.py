"""Shared doubles and fixtures for hwdispatch tests."""

from typing import Callable, List

import pytest

from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.device_requests import DeviceRequest
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.mock_device_link import MockDeviceLink
from hwdispatch.core.router import OperationRouter

MANIFEST_ENV = {
    "HWDISPATCH_MANIFEST_EMAIL": "dev@example.com",
    "HWDISPATCH_MANIFEST_APP_URL": "https://example.com",
}


class ScriptedLink:
    """Device link double that records every call and answers from ``responder``."""

    def __init__(self, responder: Callable[[DeviceRequest], DeviceReply] = None):
        self.responder = responder or (lambda request: DeviceReply.ok({}))
        self.open_calls = 0
        self.close_calls = 0
        self.sent: List[DeviceRequest] = []

    def open(self) -> None:
        self.open_calls += 1

    def close(self) -> None:
        self.close_calls += 1

    def send(self, request: DeviceRequest) -> DeviceReply:
        self.sent.append(request)
        return self.responder(request)


class SessionFactorySpy:
    """Counts how many sessions a router asked for."""

    def __init__(self, link):
        self.link = link
        self.calls = 0

    def __call__(self) -> DeviceSession:
        self.calls += 1
        return DeviceSession(self.link)


@pytest.fixture
def manifest_env(monkeypatch):
    for key, value in MANIFEST_ENV.items():
        monkeypatch.setenv(key, value)
    for key in ("HWDISPATCH_DEVICE_BACKEND", "HWDISPATCH_ALLOW_MOCK_DEVICE", "HWDISPATCH_BRIDGE_URL"):
        monkeypatch.delenv(key, raising=False)
    return MANIFEST_ENV


@pytest.fixture
def mock_link():
    return MockDeviceLink()


@pytest.fixture
def mock_router(mock_link):
    return OperationRouter(lambda: DeviceSession(mock_link))


@pytest.fixture
def scripted_link():
    """Factory for ScriptedLink doubles."""
    return ScriptedLink


@pytest.fixture
def factory_spy():
    """Factory for SessionFactorySpy doubles."""
    return SessionFactorySpy
