"""Tezos addresses, public keys and operations."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import mapping, path_or_default, project, reply_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest


def get_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "xtz")
    payload = project(
        session.tezos_get_address(path, request.get_bool("showOnDevice")),
        required=("address",),
        default_error="Failed to get Tezos address",
    )
    return {"address": payload["address"], "path": reply_path(payload, path)}


def get_public_key(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "xtz")
    payload = project(
        session.get_public_key(path, "xtz", request.get_bool("showOnDevice")),
        required=("publicKey",),
        default_error="Failed to get Tezos public key",
    )
    return {"publicKey": payload["publicKey"], "path": reply_path(payload, path)}


def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "xtz")
    payload = project(
        session.tezos_sign_transaction(path, str(request.require("branch")), mapping(request, "operationData")),
        required=("signature", "sigOpContents"),
        default_error="Failed to sign Tezos operation",
    )
    return {"signature": payload["signature"], "sigOpContents": payload["sigOpContents"]}


HANDLERS = {
    "getAddress": get_address,
    "getPublicKey": get_public_key,
    "signTransaction": sign_transaction,
}
