from __future__ import annotations

"""
Device link capability and backend selection.

Provides:
- DeviceReply, the envelope every backend answers with
- DeviceLink protocol implemented by each backend
- create_device_link() which picks a backend from ConnectConfig

Backends (separate modules):
- Mock: mock_device_link.py (TESTING ONLY)
- Trezor: device_link_trezor.py (requires trezorlib)
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

from hwdispatch.core.config import ConnectConfig
from hwdispatch.core.device_requests import DeviceRequest
from hwdispatch.core.exceptions import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from hwdispatch.core.device_link_trezor import TrezorDeviceLink  # noqa: F401
    from hwdispatch.core.mock_device_link import MockDeviceLink  # noqa: F401

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceReply:
    """
    Raw device answer: ``{success, payload, error}``.

    ``payload`` is only meaningful when ``success`` is true; ``error`` only
    when it is false. ``unavailable`` marks failures where the device was
    never reached, as opposed to the device refusing the request.
    """

    success: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    unavailable: bool = False

    @classmethod
    def ok(cls, payload: Optional[Dict[str, Any]] = None) -> "DeviceReply":
        return cls(True, dict(payload or {}), None)

    @classmethod
    def fail(cls, error: str) -> "DeviceReply":
        return cls(False, {}, error)

    @classmethod
    def transport_failure(cls, error: str) -> "DeviceReply":
        return cls(False, {}, error, unavailable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "payload": dict(self.payload), "error": self.error}


@runtime_checkable
class DeviceLink(Protocol):
    """
    Opaque channel to one signing device.

    A link answers each request with a DeviceReply. Device-level refusals
    (user cancelled, wrong state) come back as ``success=False`` replies.
    Transport failures raise DeviceLinkError or OSError.
    """

    def open(self) -> None:
        """
        Open the transport to the device.

        Raises:
            DeviceLinkError: If no device is reachable
        """
        ...

    def close(self) -> None:
        """Release transport resources. Safe to call once after open()."""
        ...

    def send(self, request: DeviceRequest) -> DeviceReply:
        """
        Perform one request/response round trip.

        Args:
            request: Typed device request

        Returns:
            DeviceReply for the request
        """
        ...


def create_device_link(config: ConnectConfig) -> DeviceLink:
    """
    Build the device link selected by ``config.backend``.

    Raises:
        ConfigurationError: If the mock backend is selected without opt-in
        ImportError: If the trezor backend is selected and trezorlib is missing
    """
    backend = config.backend.lower()
    if backend == "mock":
        if not config.allow_mock:
            raise ConfigurationError(
                "MockDeviceLink is disabled for production. "
                "Set HWDISPATCH_ALLOW_MOCK_DEVICE=1 only in test environments."
            )
        from hwdispatch.core.mock_device_link import MockDeviceLink

        return MockDeviceLink(options=config.as_link_options(), label=config.device_label or "My Trezor")
    if backend == "trezor":
        try:
            from hwdispatch.core.device_link_trezor import TrezorDeviceLink
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise ImportError("Trezor support requires trezorlib. pip install trezor") from exc
        return TrezorDeviceLink(options=config.as_link_options(), device_path=config.device_path)
    raise ConfigurationError(f"Unsupported device backend '{config.backend}'")


__all__ = ["DeviceReply", "DeviceLink", "create_device_link"]
