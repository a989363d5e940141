"""
PIN, auto-lock and safety-check settings.

``setAutoLock`` takes minutes; the device stores milliseconds.
"""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import device_features, project
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.devices import SAFETY_CHECK_LEVELS
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import OperationRequest

MS_PER_MINUTE = 60_000
MAX_AUTO_LOCK_MINUTES = 24 * 60


def _firmware_version(features: Dict[str, Any]) -> str:
    return ".".join(str(features.get(key, 0)) for key in ("major_version", "minor_version", "patch_version"))


def get_status(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    return {
        "pinProtection": bool(features.get("pin_protection")),
        "passphraseProtection": bool(features.get("passphrase_protection")),
        "initialized": bool(features.get("initialized")),
        "needsBackup": bool(features.get("needs_backup")),
        "autoLockDelayMs": features.get("auto_lock_delay_ms"),
        "safetyChecks": features.get("safety_checks"),
        "firmwareVersion": _firmware_version(features),
    }


def change_pin(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    project(session.change_pin(), default_error="Failed to change PIN")
    return {"message": "PIN changed successfully", "action": "pin_changed"}


def remove_pin(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    project(session.change_pin(remove=True), default_error="Failed to remove PIN")
    return {"message": "PIN removed successfully", "action": "pin_removed"}


def set_auto_lock(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    minutes = request.get_int("autoLockDelay", 10, minimum=1, maximum=MAX_AUTO_LOCK_MINUTES)
    delay_ms = minutes * MS_PER_MINUTE
    project(session.apply_settings(auto_lock_delay_ms=delay_ms), default_error="Failed to set auto-lock")
    return {
        "message": f"Auto-lock set to {minutes} minutes",
        "autoLockDelayMinutes": minutes,
        "autoLockDelayMs": delay_ms,
    }


def lock_device(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    project(session.lock_device(), default_error="Failed to lock device")
    return {"message": "Device locked", "locked": True}


def set_safety_checks(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    level = str(request.get("safetyLevel", "Strict"))
    if level not in SAFETY_CHECK_LEVELS:
        raise InvalidParameterError(f"Safety level must be one of: {', '.join(SAFETY_CHECK_LEVELS)}")
    project(session.apply_settings(safety_checks=level), default_error="Failed to set safety checks")
    return {"message": f"Safety checks set to {level}", "safetyChecks": level}


HANDLERS = {
    "getStatus": get_status,
    "changePin": change_pin,
    "removePin": remove_pin,
    "setAutoLock": set_auto_lock,
    "lockDevice": lock_device,
    "setSafetyChecks": set_safety_checks,
}
