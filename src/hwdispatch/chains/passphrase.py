"""BIP-39 passphrase protection settings."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import device_features, project
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import OperationRequest

PASSPHRASE_SOURCES = ("host", "device")


def get_status(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    return {
        "passphraseProtection": bool(features.get("passphrase_protection")),
        "passphraseAlwaysOnDevice": bool(features.get("passphrase_always_on_device")),
    }


def _set_protection(session: DeviceSession, enabled: bool) -> Dict[str, Any]:
    project(
        session.apply_settings(use_passphrase=enabled),
        default_error=f"Failed to {'enable' if enabled else 'disable'} passphrase",
    )
    state = "enabled" if enabled else "disabled"
    return {"message": f"Passphrase protection {state}", "enabled": enabled}


def enable(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    return _set_protection(session, True)


def disable(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    return _set_protection(session, False)


def set_source(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    source = str(request.get("passphraseSource", "host")).lower()
    if source not in PASSPHRASE_SOURCES:
        raise InvalidParameterError("Passphrase source must be 'host' or 'device'")
    on_device = source == "device"
    project(
        session.apply_settings(passphrase_always_on_device=on_device),
        default_error="Failed to set passphrase source",
    )
    return {"message": f"Passphrase source set to {source}", "source": source, "alwaysOnDevice": on_device}


HANDLERS = {
    "getStatus": get_status,
    "enable": enable,
    "disable": disable,
    "setSource": set_source,
}
