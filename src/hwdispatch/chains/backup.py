"""Seed backup workflow."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import device_features, project
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest


def start_backup(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    payload = project(session.backup_device(), default_error="Failed to start backup")
    return {
        "message": payload.get("message", "Backup process initiated. Follow instructions on device."),
        "status": "backup_initiated",
    }


def verify_backup(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    verified = not features.get("needs_backup", False)
    return {"verified": verified, "message": "Backup verified" if verified else "Backup not completed"}


def get_status(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    return {
        "needsBackup": bool(features.get("needs_backup")),
        "unfinishedBackup": bool(features.get("unfinished_backup")),
        "noBackup": bool(features.get("no_backup")),
        "initialized": bool(features.get("initialized")),
    }


HANDLERS = {
    "startBackup": start_backup,
    "verifyBackup": verify_backup,
    "getStatus": get_status,
}
