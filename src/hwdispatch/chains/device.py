"""Device lifecycle: features, wipe, reset, recovery and settings."""

from __future__ import annotations

import logging
from typing import Any, Dict

from hwdispatch.chains.common import device_features, project
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.format_utils import utc_now_iso
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.validation import validate_label

logger = logging.getLogger(__name__)

SEED_STRENGTHS = (128, 192, 256)
RECOVERY_WORD_COUNTS = (12, 18, 24)


def get_features(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    return {"features": device_features(session)}


def ping(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    project(session.ping(str(request.get("message", "ping"))), default_error="Device did not answer ping")
    return {"status": "connected", "timestamp": utc_now_iso()}


def wipe(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    project(session.wipe_device(), default_error="Failed to wipe device")
    logger.warning("Device wiped", extra={"event": "device.wiped"})
    return {"message": "Device wiped successfully"}


def reset(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    strength = request.get_int("seedStrength", 256)
    if strength not in SEED_STRENGTHS:
        raise InvalidParameterError("Seed strength must be 128, 192 or 256 bits")
    label = validate_label(request.get("deviceLabel", ""))
    project(
        session.reset_device(strength, request.get_bool("usePassphrase"), label),
        default_error="Failed to reset device",
    )
    return {"message": "Device initialized. Write down the recovery seed shown on the device."}


def recover(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    word_count = request.get_int("wordCount", 24)
    if word_count not in RECOVERY_WORD_COUNTS:
        raise InvalidParameterError("Word count must be 12, 18 or 24")
    project(
        session.recover_device(word_count, request.get_bool("usePassphrase")),
        default_error="Failed to recover device",
    )
    return {"message": "Device recovered successfully"}


def apply_settings(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    """``autoLockDelay`` is given in seconds."""
    settings: Dict[str, Any] = {}
    if request.get("deviceLabel") is not None:
        settings["label"] = validate_label(request.get("deviceLabel"))
    if request.get("usePassphrase") is not None:
        settings["use_passphrase"] = request.get_bool("usePassphrase")
    if request.get("autoLockDelay") is not None:
        settings["auto_lock_delay_ms"] = request.require_int("autoLockDelay", minimum=1) * 1000
    if not settings:
        raise InvalidParameterError("At least one of deviceLabel, usePassphrase or autoLockDelay is required")
    project(session.apply_settings(**settings), default_error="Failed to apply settings")
    return {"message": "Settings applied successfully"}


def get_device_id(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    return {"deviceId": features.get("device_id")}


HANDLERS = {
    "getFeatures": get_features,
    "ping": ping,
    "wipe": wipe,
    "reset": reset,
    "recover": recover,
    "applySettings": apply_settings,
    "getDeviceId": get_device_id,
}
