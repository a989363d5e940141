"""EOS public keys and transactions."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import mapping, path_or_default, project
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest


def get_public_key(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "eos")
    payload = project(
        session.eos_get_public_key(path, request.get_bool("showOnDevice")),
        required=("wifPublicKey", "rawPublicKey"),
        default_error="Failed to get EOS public key",
    )
    return {"wifPublicKey": payload["wifPublicKey"], "rawPublicKey": payload["rawPublicKey"]}


def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    path = path_or_default(request, "eos")
    payload = project(
        session.eos_sign_transaction(path, mapping(request, "transaction")),
        required=("signature",),
        default_error="Failed to sign EOS transaction",
    )
    return {"signature": payload["signature"]}


HANDLERS = {
    "getPublicKey": get_public_key,
    "signTransaction": sign_transaction,
}
