"""
Account-level key operations: public keys, extended keys and discovery.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from hwdispatch.chains.common import (
    REGISTRY,
    object_field,
    path_or_default,
    project,
    reply_path,
    skip_failure,
)
from hwdispatch.core.derivation_path import account_index
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import HardwareDispatchError, InvalidParameterError
from hwdispatch.core.router import OperationRequest

logger = logging.getLogger(__name__)

DISCOVERY_ACCOUNTS = 5

_SECP256K1_FAMILIES = ("bitcoin", "ethereum", "ripple", "eos", "binance")


def get_public_key(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin = request.coin_or("btc")
    path = path_or_default(request, coin)
    payload = project(
        session.get_public_key(path, coin, request.get_bool("showOnDevice")),
        required=("publicKey",),
        default_error="Failed to get public key",
    )
    return {
        "publicKey": payload["publicKey"],
        "path": reply_path(payload, path),
        "chainCode": object_field(payload, "node").get("chainCode", payload.get("chainCode")),
        "coin": coin,
    }


def get_xpub(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin = request.coin_or("btc")
    descriptor = REGISTRY.lookup(coin)
    if descriptor is not None and descriptor.family not in _SECP256K1_FAMILIES:
        raise InvalidParameterError("Extended public keys are only available for secp256k1 coins")
    path = request.path or REGISTRY.account_path(coin, request.get_int("accountIndex", 0, minimum=0))
    payload = project(
        session.get_public_key(path, coin, request.get_bool("showOnDevice")),
        required=("xpub",),
        default_error="Failed to get xpub",
    )
    node = object_field(payload, "node")
    return {
        "xpub": payload["xpub"],
        "path": reply_path(payload, path),
        "depth": node.get("depth", path.depth),
        "fingerprint": node.get("fingerprint"),
        "coin": coin,
    }


def get_info(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin = request.coin_or("btc")
    index = request.get_int("accountIndex", 0, minimum=0)
    path = request.path or REGISTRY.account_path(coin, index)
    payload = project(
        session.get_public_key(path, coin),
        required=("publicKey",),
        default_error="Failed to get account info",
    )
    return {
        "accountIndex": index,
        "path": reply_path(payload, path),
        "coin": coin,
        "coinType": REGISTRY.slip44_type(coin),
        "publicKey": payload["publicKey"],
    }


def discover(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    """
    Query the first five accounts of a coin.

    Accounts the device refuses are skipped; the result lists the ones that
    answered, in index order.
    """
    coin = request.coin_or("btc")
    base = request.path or REGISTRY.account_path(coin, 0)
    accounts = []
    for index in range(DISCOVERY_ACCOUNTS):
        path = base.with_account(index)
        try:
            payload = project(
                session.get_public_key(path, coin),
                required=("publicKey",),
                default_error=f"Failed to get account {index}",
            )
        except HardwareDispatchError as exc:
            skip_failure("account.discover", coin, exc)
            continue
        accounts.append({"index": account_index(path), "path": str(path), "publicKey": payload["publicKey"]})
    return {"coin": coin, "accounts": accounts, "count": len(accounts)}


HANDLERS = {
    "getPublicKey": get_public_key,
    "getXpub": get_xpub,
    "getInfo": get_info,
    "discover": discover,
}
