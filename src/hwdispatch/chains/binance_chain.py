"""Binance Chain (BEP2) addresses and transactions."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import mapping, path_or_default, project, reply_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest


def get_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "bnb")
    payload = project(
        session.binance_get_address(path, request.get_bool("showOnDevice")),
        required=("address",),
        default_error="Failed to get Binance Chain address",
    )
    return {"address": payload["address"], "path": reply_path(payload, path)}


def get_public_key(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "bnb")
    payload = project(
        session.get_public_key(path, "bnb", request.get_bool("showOnDevice")),
        required=("publicKey",),
        default_error="Failed to get Binance Chain public key",
    )
    return {"publicKey": payload["publicKey"], "path": reply_path(payload, path)}


def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "bnb")
    payload = project(
        session.binance_sign_transaction(path, mapping(request, "transaction")),
        required=("signature", "publicKey"),
        default_error="Failed to sign Binance Chain transaction",
    )
    return {"signature": payload["signature"], "publicKey": payload["publicKey"]}


HANDLERS = {
    "getAddress": get_address,
    "getPublicKey": get_public_key,
    "signTransaction": sign_transaction,
}
