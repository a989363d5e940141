"""
Operations that span several coins in one dispatch.

Each coin is queried in the order given. A coin the device refuses (or the
registry does not know) is logged and skipped; the result carries the coins
that succeeded and their ``count``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from hwdispatch.chains.common import REGISTRY, address_for, project, skip_failure
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import HardwareDispatchError, InvalidParameterError
from hwdispatch.core.router import OperationRequest

logger = logging.getLogger(__name__)

DEFAULT_COINS = ("btc", "eth", "ltc")


def _coins(request: OperationRequest) -> List[str]:
    value = request.get("coins", list(DEFAULT_COINS))
    if isinstance(value, str):
        value = request.get_json("coins") if value.strip().startswith("[") else value.split(",")
    if not isinstance(value, list):
        raise InvalidParameterError("Parameter 'coins' must be a list of coin symbols")
    coins = [str(item).strip().lower() for item in value if str(item).strip()]
    if not coins:
        raise InvalidParameterError("At least one coin is required")
    return coins


def get_all_addresses(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    account = request.get_int("accountIndex", 0, minimum=0)
    show = request.get_bool("showOnDevice")
    addresses = []
    for coin in _coins(request):
        try:
            path = REGISTRY.default_path(coin, account)
            payload = project(
                address_for(session, coin, path, show),
                required=("address",),
                default_error=f"Failed to get {coin} address",
            )
        except HardwareDispatchError as exc:
            skip_failure("multiCurrency.getAllAddresses", coin, exc)
            continue
        addresses.append({"coin": coin, "address": payload["address"], "path": str(path)})
    return {"addresses": addresses, "count": len(addresses)}


def get_portfolio_keys(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    account = request.get_int("accountIndex", 0, minimum=0)
    public_keys = []
    for coin in _coins(request):
        try:
            path = REGISTRY.default_path(coin, account)
            payload = project(
                session.get_public_key(path, coin),
                required=("publicKey",),
                default_error=f"Failed to get {coin} public key",
            )
        except HardwareDispatchError as exc:
            skip_failure("multiCurrency.getPortfolioKeys", coin, exc)
            continue
        public_keys.append({"coin": coin, "publicKey": payload["publicKey"], "path": str(path)})
    return {"publicKeys": public_keys, "count": len(public_keys)}


def discover_accounts(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    """One address and one public key per coin; both must succeed for the coin to count."""
    account = request.get_int("accountIndex", 0, minimum=0)
    accounts = []
    for coin in _coins(request):
        try:
            path = REGISTRY.default_path(coin, account)
            address = project(
                address_for(session, coin, path),
                required=("address",),
                default_error=f"Failed to get {coin} address",
            )
            key = project(
                session.get_public_key(path, coin),
                required=("publicKey",),
                default_error=f"Failed to get {coin} public key",
            )
        except HardwareDispatchError as exc:
            skip_failure("multiCurrency.discoverAccounts", coin, exc)
            continue
        accounts.append(
            {
                "coin": coin,
                "accountIndex": account,
                "address": address["address"],
                "publicKey": key["publicKey"],
                "path": str(path),
                "discovered": True,
            }
        )
    logger.info(
        "Multi-currency discovery finished",
        extra={"event": "multi_currency.discovered", "count": len(accounts)},
    )
    return {"accounts": accounts, "count": len(accounts)}


HANDLERS = {
    "getAllAddresses": get_all_addresses,
    "getPortfolioKeys": get_portfolio_keys,
    "discoverAccounts": discover_accounts,
}
