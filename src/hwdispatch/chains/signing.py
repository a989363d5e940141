"""Generic message, hash and entropy operations."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import path_or_default, project, reply_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.format_utils import hex_to_bytes
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.validation import validate_entropy_size, validate_hash


def sign_message(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin = request.coin_or("btc")
    path = path_or_default(request, coin)
    message = str(request.require("message"))
    payload = project(
        session.sign_message(path, message, coin),
        required=("signature",),
        default_error="Failed to sign message",
    )
    return {**payload, "message": message, "coin": coin, "path": reply_path(payload, path)}


def verify_message(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin = request.coin_or("btc")
    address = str(request.require("address"))
    message = str(request.require("message"))
    signature = str(request.require("signature"))
    payload = project(
        session.verify_message(address, message, signature, coin),
        required=("valid",),
        default_error="Failed to verify message",
    )
    return {"valid": bool(payload["valid"]), "message": message, "address": address, "coin": coin}


def sign_hash(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    digest = validate_hash(request.require("hash"))
    path = request.require_path()
    payload = project(
        session.sign_hash(path, hex_to_bytes(digest)),
        required=("signature",),
        default_error="Failed to sign hash",
    )
    return {"hash": digest, "path": str(path), "signature": payload["signature"]}


def get_entropy(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    size = validate_entropy_size(request.get("entropySize", 32))
    payload = project(
        session.get_entropy(size),
        required=("entropy",),
        default_error="Failed to get entropy",
    )
    return {"entropy": payload["entropy"], "size": size, "source": "hardware_rng"}


HANDLERS = {
    "signMessage": sign_message,
    "verifyMessage": verify_message,
    "signHash": sign_hash,
    "getEntropy": get_entropy,
}
