"""Address validation, classification and device derivation."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import address_for, path_or_default, project, reply_path
from hwdispatch.core.addresses import address_type, addresses_match, validate_address
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import OperationRequest


def _coin(request: OperationRequest) -> str:
    if not request.coin:
        raise InvalidParameterError("Missing required parameter: coin")
    return request.coin


def validate(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    address = str(request.require("address"))
    coin = _coin(request)
    return {"address": address, "coin": coin, "valid": validate_address(address, coin)}


def get_type(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    address = str(request.require("address"))
    coin = _coin(request)
    return {"address": address, "coin": coin, "type": address_type(address, coin)}


def derive(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin = _coin(request)
    path = path_or_default(request, coin)
    payload = project(
        address_for(session, coin, path, request.get_bool("showOnDevice")),
        required=("address",),
        default_error="Failed to derive address",
    )
    return {
        "address": payload["address"],
        "path": path.to_list(),
        "serializedPath": reply_path(payload, path),
        "coin": coin,
    }


def compare(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    first = str(request.require("address1"))
    second = str(request.require("address2"))
    return {"address1": first, "address2": second, "match": addresses_match(first, second)}


HANDLERS = {
    "validate": validate,
    "getType": get_type,
    "derive": derive,
    "compare": compare,
}
