"""
Ethereum and EVM-compatible chains.

Amounts arrive in display units (ETH for ``value``, gwei for ``gasPrice``)
and are converted to integer wei before they reach the device.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from eth_utils import is_address, is_hex_address

from hwdispatch.chains.common import base_units, mapping, path_or_default, project, reply_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import Handler, OperationRequest
from hwdispatch.core.units import GWEI_DECIMALS, WEI_DECIMALS
from hwdispatch.core.validation import validate_chain_id, validate_hex

DEFAULT_GAS_LIMIT = 21000

ChainResolver = Callable[[OperationRequest], int]


def network_chain(request: OperationRequest) -> int:
    return validate_chain_id(request.get("network", 1))


def build_handlers(resolve: ChainResolver, *, with_verify: bool = True) -> Dict[str, Handler]:
    def get_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        chain_id = resolve(request)
        path = path_or_default(request, "eth")
        payload = project(
            session.get_address(path, "eth", request.get_bool("showOnDevice")),
            required=("address",),
            default_error="Failed to get address",
        )
        return {"address": payload["address"], "path": reply_path(payload, path), "chainId": chain_id}

    def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        chain_id = resolve(request)
        path = path_or_default(request, "eth")
        to = str(request.require("to")).strip()
        if not to.startswith("0x") or not is_hex_address(to):
            raise InvalidParameterError("Recipient must be a 0x-prefixed 20-byte address")
        if not is_address(to):
            raise InvalidParameterError("Recipient address has an invalid EIP-55 checksum")
        data = validate_hex(request.get("data", "0x") or "0x", field="data")
        payload = project(
            session.ethereum_sign_transaction(
                path,
                to=to,
                value=base_units(request.get("value", "0"), WEI_DECIMALS, "value"),
                gas_limit=request.get_int("gasLimit", DEFAULT_GAS_LIMIT, minimum=21000),
                gas_price=base_units(request.require("gasPrice"), GWEI_DECIMALS, "gasPrice"),
                nonce=request.require_int("nonce", minimum=0),
                chain_id=chain_id,
                data=data if data.startswith("0x") else "0x" + data,
            ),
            required=("v", "r", "s"),
            default_error="Failed to sign transaction",
        )
        result = {"v": payload["v"], "r": payload["r"], "s": payload["s"], "chainId": chain_id}
        if "serializedTx" in payload:
            result["serializedTx"] = payload["serializedTx"]
        return result

    def sign_message(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        chain_id = resolve(request)
        path = path_or_default(request, "eth")
        message = str(request.require("message"))
        payload = project(
            session.ethereum_sign_message(path, message),
            required=("address", "signature"),
            default_error="Failed to sign message",
        )
        return {
            "address": payload["address"],
            "signature": payload["signature"],
            "message": message,
            "chainId": chain_id,
        }

    def sign_typed_data(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        chain_id = resolve(request)
        path = path_or_default(request, "eth")
        typed_data = mapping(request, "typedData")
        payload = project(
            session.ethereum_sign_typed_data(path, typed_data, request.get_bool("metamaskV4Compat", True)),
            required=("address", "signature"),
            default_error="Failed to sign typed data",
        )
        return {"address": payload["address"], "signature": payload["signature"], "chainId": chain_id}

    def verify_message(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        chain_id = resolve(request)
        address = str(request.require("address"))
        message = str(request.require("message"))
        signature = str(request.require("signature"))
        payload = project(
            session.ethereum_verify_message(address, message, signature),
            required=("valid",),
            default_error="Failed to verify message",
        )
        return {"valid": bool(payload["valid"]), "address": address, "message": message, "chainId": chain_id}

    handlers = {
        "getAddress": get_address,
        "signTransaction": sign_transaction,
        "signMessage": sign_message,
        "signTypedData": sign_typed_data,
    }
    if with_verify:
        handlers["verifyMessage"] = verify_message
    return handlers


HANDLERS = build_handlers(network_chain)
