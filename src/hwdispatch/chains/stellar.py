"""Stellar addresses and transaction envelopes."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import path_or_default, project, reply_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest

NETWORK_PASSPHRASES = {
    "public": "Public Global Stellar Network ; September 2015",
    "testnet": "Test SDF Network ; September 2015",
}


def _network(request: OperationRequest) -> str:
    return str(request.get("network", "public"))


def get_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "xlm")
    payload = project(
        session.stellar_get_address(path, request.get_bool("showOnDevice")),
        required=("address",),
        default_error="Failed to get Stellar address",
    )
    return {"address": payload["address"], "path": reply_path(payload, path), "network": _network(request)}


def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    network = _network(request)
    path = path_or_default(request, "xlm")
    passphrase = NETWORK_PASSPHRASES.get(network, network)
    payload = project(
        session.stellar_sign_transaction(path, passphrase, str(request.require("transactionEnvelope"))),
        required=("signature",),
        default_error="Failed to sign Stellar transaction",
    )
    return {"signature": payload["signature"], "network": network}


HANDLERS = {
    "getAddress": get_address,
    "signTransaction": sign_transaction,
}
