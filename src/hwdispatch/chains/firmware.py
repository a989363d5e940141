"""
Firmware version reporting and update checks.

Release data is the static table in ``hwdispatch.core.devices``; nothing is
fetched from the network.
"""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import device_features
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.devices import FIRMWARE_RELEASES, latest_firmware, version_tuple
from hwdispatch.core.router import OperationRequest


def _version(features: Dict[str, Any]) -> str:
    return "{}.{}.{}".format(
        features.get("major_version", 0), features.get("minor_version", 0), features.get("patch_version", 0)
    )


def get_version(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    return {
        "major": features.get("major_version", 0),
        "minor": features.get("minor_version", 0),
        "patch": features.get("patch_version", 0),
        "version": _version(features),
        "bootloaderMode": bool(features.get("bootloader_mode")),
        "model": features.get("model"),
    }


def check_update(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    model = str(request.get("deviceModel") or features.get("model") or "T")
    current = _version(features)
    latest = latest_firmware(model)
    return {
        "currentVersion": current,
        "latestVersion": latest,
        "updateAvailable": version_tuple(latest) > version_tuple(current),
        "deviceModel": model,
    }


def get_release_info(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    model = str(request.get("deviceModel", "T"))
    return {"deviceModel": model, "releases": [dict(release) for release in FIRMWARE_RELEASES]}


HANDLERS = {
    "getVersion": get_version,
    "checkUpdate": check_update,
    "getReleaseInfo": get_release_info,
}
