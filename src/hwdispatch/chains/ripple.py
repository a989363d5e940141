"""XRP Ledger payments."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import base_units, path_or_default, project, reply_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.units import DROP_DECIMALS


def get_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "xrp")
    payload = project(
        session.ripple_get_address(path, request.get_bool("showOnDevice")),
        required=("address",),
        default_error="Failed to get XRP address",
    )
    return {"address": payload["address"], "path": reply_path(payload, path)}


def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    """Sign a Payment; ``amount`` is in XRP and ``fee`` already in drops."""
    path = path_or_default(request, "xrp")
    transaction = {
        "TransactionType": "Payment",
        "Destination": str(request.require("destination")),
        "Amount": str(base_units(request.require("amount"), DROP_DECIMALS, "amount")),
        "Fee": str(request.require_int("fee", minimum=0)),
        "Sequence": request.require_int("sequence", minimum=0),
    }
    destination_tag = request.get_int("destinationTag", 0, minimum=0)
    if destination_tag:
        transaction["DestinationTag"] = destination_tag
    payload = project(
        session.ripple_sign_transaction(path, transaction),
        required=("signatures", "serializedTx"),
        default_error="Failed to sign XRP transaction",
    )
    return {"signatures": payload["signatures"], "serializedTx": payload["serializedTx"]}


HANDLERS = {
    "getAddress": get_address,
    "signTransaction": sign_transaction,
}
