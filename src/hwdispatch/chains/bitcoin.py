"""
Bitcoin and Bitcoin-derived coins (Litecoin, Dogecoin, Dash, Zcash, ...).

The ``bitcoin`` resource selects mainnet or testnet through ``network``;
``bitcoinLike`` takes any Bitcoin-family coin through ``coin``. Both share
the handlers below and differ only in how the coin is resolved and which
key is echoed back.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Tuple

from hwdispatch.chains.common import REGISTRY, normalize_address_n, path_or_default, project, records, reply_path
from hwdispatch.core.coin_registry import script_type_for_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import Handler, OperationRequest

ADDRESS_TYPES = ("p2wpkh", "p2sh-p2wpkh", "p2pkh", "p2tr")
NETWORKS = {"mainnet": "btc", "testnet": "test"}

# Resolves (coin symbol, echo field, echo value) for a request.
CoinResolver = Callable[[OperationRequest], Tuple[str, str, str]]


def _network_coin(request: OperationRequest) -> Tuple[str, str, str]:
    network = str(request.get("network", "mainnet")).lower()
    if network not in NETWORKS:
        raise InvalidParameterError(f"Unsupported Bitcoin network: {network}")
    return NETWORKS[network], "network", network


def family_coin(request: OperationRequest) -> Tuple[str, str, str]:
    if not request.coin:
        raise InvalidParameterError("Missing required parameter: coin")
    descriptor = REGISTRY.require(request.coin)
    if descriptor.family != "bitcoin":
        raise InvalidParameterError(f"{descriptor.display_name} is not a Bitcoin-family coin")
    return descriptor.symbol, "coin", descriptor.symbol


def build_handlers(resolve: CoinResolver) -> Dict[str, Handler]:
    def get_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        coin, key, echo = resolve(request)
        path = path_or_default(request, coin)
        address_kind = str(request.get("addressType", script_type_for_path(path))).lower()
        if address_kind not in ADDRESS_TYPES:
            raise InvalidParameterError(
                f"Unsupported address type: {address_kind}. Expected one of: {', '.join(ADDRESS_TYPES)}"
            )
        payload = project(
            session.get_address(path, coin, request.get_bool("showOnDevice"), address_kind),
            required=("address",),
            default_error="Failed to get address",
        )
        return {
            "address": payload["address"],
            "path": reply_path(payload, path),
            "addressType": address_kind,
            key: echo,
        }

    def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        coin, key, echo = resolve(request)
        inputs = normalize_address_n(records(request, "inputs"))
        outputs = normalize_address_n(records(request, "outputs"))
        if not inputs:
            raise InvalidParameterError("Transaction must have at least one input")
        if not outputs:
            raise InvalidParameterError("Transaction must have at least one output")
        options = {
            "version": request.get_int("version", 2, minimum=1),
            "lock_time": request.get_int("lockTime", 0, minimum=0),
        }
        payload = project(
            session.sign_transaction(coin, inputs, outputs, options),
            required=("signatures", "serializedTx"),
            default_error="Failed to sign transaction",
        )
        return {
            "signatures": payload["signatures"],
            "serializedTx": payload["serializedTx"],
            "txid": payload.get("txid"),
            key: echo,
        }

    def sign_message(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        coin, key, echo = resolve(request)
        path = path_or_default(request, coin)
        message = str(request.require("message"))
        payload = project(
            session.sign_message(path, message, coin),
            required=("address", "signature"),
            default_error="Failed to sign message",
        )
        return {"address": payload["address"], "signature": payload["signature"], "message": message, key: echo}

    def verify_message(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
        coin, key, echo = resolve(request)
        address = str(request.require("address"))
        message = str(request.require("message"))
        signature = str(request.require("signature"))
        payload = project(
            session.verify_message(address, message, signature, coin),
            required=("valid",),
            default_error="Failed to verify message",
        )
        return {"valid": bool(payload["valid"]), "address": address, "message": message, key: echo}

    return {
        "getAddress": get_address,
        "signTransaction": sign_transaction,
        "signMessage": sign_message,
        "verifyMessage": verify_message,
    }


HANDLERS = build_handlers(_network_coin)
