import builtins
import sys

import pytest

from hwdispatch.core.config import ConnectConfig
from hwdispatch.core.device_link import DeviceLink, DeviceReply, create_device_link
from hwdispatch.core.exceptions import ConfigurationError
from hwdispatch.core.mock_device_link import MockDeviceLink


def _config(**overrides):
    values = {"manifest_email": "dev@example.com", "manifest_app_url": "https://example.com"}
    values.update(overrides)
    return ConnectConfig(**values)


def test_mock_backend_disabled_without_explicit_opt_in():
    with pytest.raises(ConfigurationError, match="HWDISPATCH_ALLOW_MOCK_DEVICE"):
        create_device_link(_config(backend="mock"))


def test_mock_backend_allowed_when_opted_in():
    link = create_device_link(_config(backend="mock", allow_mock=True, device_label="Desk"))
    assert isinstance(link, MockDeviceLink)
    assert isinstance(link, DeviceLink)


def test_trezor_backend_missing_dependency(monkeypatch):
    original_import = builtins.__import__

    def fake_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name.startswith("trezorlib"):
            raise ImportError("trezorlib missing")
        return original_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", fake_import)
    monkeypatch.delitem(sys.modules, "hwdispatch.core.device_link_trezor", raising=False)

    with pytest.raises(ImportError) as exc:
        create_device_link(_config(backend="trezor"))
    assert "trezor" in str(exc.value)


def test_reply_envelope():
    assert DeviceReply.ok({"a": 1}).to_dict() == {"success": True, "payload": {"a": 1}, "error": None}
    failure = DeviceReply.transport_failure("gone")
    assert failure.success is False
    assert failure.unavailable is True
    assert DeviceReply.fail("no").unavailable is False
