"""
Connection status in the shape Trezor Suite reports it.

``checkConnection`` never fails on a missing device: an unreachable bridge or
device is reported as ``connected: False``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from hwdispatch.chains.common import device_features, list_field, project
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest

logger = logging.getLogger(__name__)

SUITE_VERSION = "24.1.2"
BRIDGE_VERSION = "2.0.33"


def get_info(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    return {
        "connected": True,
        "deviceId": features.get("device_id"),
        "model": features.get("model"),
        "firmwareVersion": "{}.{}.{}".format(
            features.get("major_version", 0), features.get("minor_version", 0), features.get("patch_version", 0)
        ),
        "label": features.get("label"),
        "initialized": bool(features.get("initialized")),
        "suiteVersion": SUITE_VERSION,
        "bridgeVersion": BRIDGE_VERSION,
    }


def check_connection(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    reply = session.get_features()
    if reply.success:
        return {"connected": True, "bridgeRunning": True, "message": "Trezor device connected"}
    logger.info(
        "Connection check failed",
        extra={"event": "suite.disconnected", "error": reply.error, "unavailable": reply.unavailable},
    )
    if reply.unavailable:
        return {"connected": False, "bridgeRunning": False, "message": "Failed to connect to Trezor Suite Bridge"}
    return {"connected": False, "bridgeRunning": True, "message": reply.error or "Device not responding"}


def list_devices(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    payload = project(session.list_devices(), required=("devices",), default_error="Failed to list devices")
    devices = list_field(payload, "devices")
    return {"devices": devices, "count": len(devices)}


HANDLERS = {
    "getInfo": get_info,
    "checkConnection": check_connection,
    "listDevices": list_devices,
}
