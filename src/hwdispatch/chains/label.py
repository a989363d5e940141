"""Device label management."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import device_features, project
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.validation import validate_label


def get_label(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    features = device_features(session)
    return {"label": features.get("label") or "", "deviceId": features.get("device_id")}


def set_label(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    label = validate_label(request.get("deviceLabel"))
    if not label:
        raise InvalidParameterError("Missing required parameter: deviceLabel")
    project(session.apply_settings(label=label), default_error="Failed to set label")
    return {"message": f'Label set to "{label}"', "label": label}


def clear_label(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    project(session.apply_settings(label=""), default_error="Failed to clear label")
    return {"message": "Label cleared successfully", "label": ""}


HANDLERS = {
    "getLabel": get_label,
    "setLabel": set_label,
    "clearLabel": clear_label,
}
