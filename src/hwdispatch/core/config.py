"""
Connection configuration for the device link.

Values are read from the environment. They are opaque to the dispatch core
and are forwarded to the device link backend unchanged, apart from the
manifest identity which the vendor connect protocol requires and which is
validated up front.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict

from hwdispatch.core.exceptions import ConfigurationError, InvalidParameterError
from hwdispatch.core.validation import validate_email, validate_url

_TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_BRIDGE_URL = "http://127.0.0.1:21325"
DEFAULT_BACKEND = "trezor"
SUPPORTED_BACKENDS = ("trezor", "mock")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class ConnectConfig:
    """
    Device connection settings.

    Attributes:
        manifest_email: Contact email registered with the vendor connect manifest
        manifest_app_url: Application URL registered with the manifest
        bridge_url: Address of the local bridge process
        webusb: Prefer WebUSB transport over the bridge
        debug: Enable transport debug output
        lazy_load: Defer transport initialization until first request
        backend: Device link implementation ("trezor" or "mock")
        allow_mock: Explicit opt-in for the mock backend (tests only)
    """

    manifest_email: str
    manifest_app_url: str
    bridge_url: str = DEFAULT_BRIDGE_URL
    webusb: bool = False
    debug: bool = False
    lazy_load: bool = True
    device_path: str = ""
    device_label: str = ""
    use_passphrase: bool = False
    default_account_index: int = 0
    backend: str = DEFAULT_BACKEND
    allow_mock: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls, **overrides: Any) -> "ConnectConfig":
        """Build a validated configuration from HWDISPATCH_* variables."""
        config = cls(
            manifest_email=os.getenv("HWDISPATCH_MANIFEST_EMAIL", "").strip(),
            manifest_app_url=os.getenv("HWDISPATCH_MANIFEST_APP_URL", "").strip(),
            bridge_url=os.getenv("HWDISPATCH_BRIDGE_URL", DEFAULT_BRIDGE_URL).strip(),
            webusb=_env_flag("HWDISPATCH_WEBUSB", False),
            debug=_env_flag("HWDISPATCH_DEBUG", False),
            lazy_load=_env_flag("HWDISPATCH_LAZY_LOAD", True),
            device_path=os.getenv("HWDISPATCH_DEVICE_PATH", "").strip(),
            device_label=os.getenv("HWDISPATCH_DEVICE_LABEL", "").strip(),
            use_passphrase=_env_flag("HWDISPATCH_USE_PASSPHRASE", False),
            default_account_index=_env_int("HWDISPATCH_DEFAULT_ACCOUNT_INDEX", 0),
            backend=os.getenv("HWDISPATCH_DEVICE_BACKEND", DEFAULT_BACKEND).strip().lower(),
            allow_mock=_env_flag("HWDISPATCH_ALLOW_MOCK_DEVICE", False),
        )
        if overrides:
            config = replace(config, **overrides)
        config.validate()
        return config

    def validate(self) -> None:
        """
        Fail fast on configuration a device link cannot work with.

        Raises:
            ConfigurationError: On a missing or malformed manifest identity,
                bridge URL, backend name or account index
        """
        if not self.manifest_email:
            raise ConfigurationError("HWDISPATCH_MANIFEST_EMAIL is required")
        if not self.manifest_app_url:
            raise ConfigurationError("HWDISPATCH_MANIFEST_APP_URL is required")
        try:
            validate_email(self.manifest_email)
            validate_url(self.manifest_app_url)
            validate_url(self.bridge_url)
        except InvalidParameterError as exc:
            raise ConfigurationError(str(exc)) from exc
        if self.backend not in SUPPORTED_BACKENDS:
            raise ConfigurationError(
                f"Unsupported device backend '{self.backend}'. "
                f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}"
            )
        if self.default_account_index < 0:
            raise ConfigurationError("Default account index cannot be negative")

    def as_link_options(self) -> Dict[str, Any]:
        """Options forwarded verbatim to the device link."""
        options = {
            "manifest": {"email": self.manifest_email, "appUrl": self.manifest_app_url},
            "bridgeUrl": self.bridge_url,
            "webusb": self.webusb,
            "debug": self.debug,
            "lazyLoad": self.lazy_load,
        }
        if self.device_path:
            options["devicePath"] = self.device_path
        options.update(self.extra)
        return options


LOG_LEVEL = os.getenv("HWDISPATCH_LOG_LEVEL", "WARNING").strip().upper()
LOG_JSON = _env_flag("HWDISPATCH_LOG_JSON", False)


__all__ = ["ConnectConfig", "ConfigurationError", "DEFAULT_BRIDGE_URL", "LOG_LEVEL", "LOG_JSON"]
