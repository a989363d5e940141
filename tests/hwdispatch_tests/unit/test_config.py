import pytest

from hwdispatch.core.config import DEFAULT_BRIDGE_URL, ConnectConfig
from hwdispatch.core.exceptions import ConfigurationError


def test_from_env_reads_manifest_and_defaults(manifest_env):
    config = ConnectConfig.from_env()
    assert config.manifest_email == "dev@example.com"
    assert config.bridge_url == DEFAULT_BRIDGE_URL
    assert config.lazy_load is True
    assert config.backend == "trezor"
    assert config.allow_mock is False


def test_link_options_are_passed_through(manifest_env, monkeypatch):
    monkeypatch.setenv("HWDISPATCH_WEBUSB", "true")
    monkeypatch.setenv("HWDISPATCH_DEVICE_PATH", "webusb:001:1")
    options = ConnectConfig.from_env().as_link_options()
    assert options["manifest"] == {"email": "dev@example.com", "appUrl": "https://example.com"}
    assert options["webusb"] is True
    assert options["devicePath"] == "webusb:001:1"


def test_bad_manifest_email_fails_fast(manifest_env, monkeypatch):
    monkeypatch.setenv("HWDISPATCH_MANIFEST_EMAIL", "not-an-email")
    with pytest.raises(ConfigurationError):
        ConnectConfig.from_env()


def test_missing_manifest_fails_fast(monkeypatch):
    monkeypatch.delenv("HWDISPATCH_MANIFEST_EMAIL", raising=False)
    monkeypatch.delenv("HWDISPATCH_MANIFEST_APP_URL", raising=False)
    with pytest.raises(ConfigurationError, match="HWDISPATCH_MANIFEST_EMAIL"):
        ConnectConfig.from_env()


def test_unknown_backend_and_bad_integers_rejected(manifest_env, monkeypatch):
    with pytest.raises(ConfigurationError):
        ConnectConfig.from_env(backend="ledger")
    monkeypatch.setenv("HWDISPATCH_DEFAULT_ACCOUNT_INDEX", "first")
    with pytest.raises(ConfigurationError):
        ConnectConfig.from_env()


def test_overrides_are_validated(manifest_env):
    config = ConnectConfig.from_env(backend="mock", allow_mock=True)
    assert config.backend == "mock"
    with pytest.raises(ConfigurationError):
        ConnectConfig.from_env(bridge_url="not a url")
