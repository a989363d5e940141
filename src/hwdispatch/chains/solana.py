"""Solana addresses, public keys and transaction signing."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import path_or_default, project, reply_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest


def _network(request: OperationRequest) -> str:
    return str(request.get("network", "mainnet-beta"))


def get_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "sol")
    payload = project(
        session.solana_get_address(path, request.get_bool("showOnDevice")),
        required=("address",),
        default_error="Failed to get Solana address",
    )
    return {"address": payload["address"], "path": reply_path(payload, path), "network": _network(request)}


def get_public_key(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "sol")
    payload = project(
        session.get_public_key(path, "sol", request.get_bool("showOnDevice")),
        required=("publicKey",),
        default_error="Failed to get Solana public key",
    )
    return {"publicKey": payload["publicKey"], "path": reply_path(payload, path), "network": _network(request)}


def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "sol")
    payload = project(
        session.solana_sign_transaction(path, str(request.require("serializedTx"))),
        required=("signature",),
        default_error="Failed to sign Solana transaction",
    )
    return {"signature": payload["signature"], "network": _network(request)}


HANDLERS = {
    "getAddress": get_address,
    "getPublicKey": get_public_key,
    "signTransaction": sign_transaction,
}
