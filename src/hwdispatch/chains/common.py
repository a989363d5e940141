"""
Helpers shared by the chain handler modules.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

from hwdispatch.core.coin_registry import DEFAULT_REGISTRY, script_type_for_path
from hwdispatch.core.derivation_path import DerivationPath, account_index, parse_path
from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import HardwareDispatchError, InvalidParameterError, MalformedReplyError
from hwdispatch.core.results import ResultProjector
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.units import to_base_units

logger = logging.getLogger(__name__)

REGISTRY = DEFAULT_REGISTRY
CARDANO_STAKING_PATH = "m/1852'/1815'/{account}'/2/0"

project = ResultProjector.project


def list_field(payload: Dict[str, Any], name: str) -> list:
    """A reply field that must hold a list."""
    value = payload.get(name)
    if not isinstance(value, list):
        raise MalformedReplyError(f"Device reply field '{name}' must be a list", {"field": name})
    return list(value)


def object_field(payload: Dict[str, Any], name: str) -> Dict[str, Any]:
    """An optional reply field that, when present, must hold an object."""
    value = payload.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedReplyError(f"Device reply field '{name}' must be an object", {"field": name})
    return value


def path_or_default(request: OperationRequest, coin: str) -> DerivationPath:
    """The ``path`` parameter, or the coin's default path for ``accountIndex``."""
    if request.path is not None:
        return request.path
    return REGISTRY.default_path(coin, request.get_int("accountIndex", 0, minimum=0))


def reply_path(payload: Dict[str, Any], path: DerivationPath) -> str:
    return payload.get("serializedPath") or str(path)


def base_units(value: Any, decimals: int, field: str) -> int:
    try:
        return to_base_units(value, decimals)
    except ValueError as exc:
        raise InvalidParameterError(f"{field}: {exc}") from exc


def records(request: OperationRequest, name: str) -> list[Dict[str, Any]]:
    """Required list-of-objects parameter such as transaction inputs."""
    value = request.get_json(name)
    if value is None:
        raise InvalidParameterError(f"Missing required parameter: {name}")
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise InvalidParameterError(f"Parameter '{name}' must be a list of objects")
    return value


def mapping(request: OperationRequest, name: str) -> Dict[str, Any]:
    value = request.get_json(name)
    if value is None:
        raise InvalidParameterError(f"Missing required parameter: {name}")
    if not isinstance(value, dict):
        raise InvalidParameterError(f"Parameter '{name}' must be an object")
    return value


def normalize_address_n(items: Sequence[Dict[str, Any]]) -> list[Dict[str, Any]]:
    """Convert ``address_n`` path strings to component lists."""
    normalized = []
    for item in items:
        entry = dict(item)
        if isinstance(entry.get("address_n"), str):
            entry["address_n"] = parse_path(entry["address_n"]).to_list()
        normalized.append(entry)
    return normalized


def address_for(
    session: DeviceSession, coin: str, path: DerivationPath, show_on_device: bool = False
) -> DeviceReply:
    """Issue the address request matching the coin's family."""
    descriptor = REGISTRY.require(coin)
    family = descriptor.family
    if family == "cardano":
        staking = parse_path(CARDANO_STAKING_PATH.format(account=account_index(path)))
        return session.cardano_get_address(path, staking, 1, show_on_device)
    if family == "solana":
        return session.solana_get_address(path, show_on_device)
    if family == "ripple":
        return session.ripple_get_address(path, show_on_device)
    if family == "stellar":
        return session.stellar_get_address(path, show_on_device)
    if family == "tezos":
        return session.tezos_get_address(path, show_on_device)
    if family == "binance":
        return session.binance_get_address(path, show_on_device)
    if family == "eos":
        reply = session.eos_get_public_key(path, show_on_device)
        if not reply.success:
            return reply
        return DeviceReply.ok({**reply.payload, "address": reply.payload.get("wifPublicKey")})
    script_type = script_type_for_path(path) if family == "bitcoin" else "p2pkh"
    return session.get_address(path, descriptor.symbol, show_on_device, script_type)


def device_features(session: DeviceSession) -> Dict[str, Any]:
    """Current device features; raises if the device refuses the request."""
    return project(session.get_features(), default_error="Failed to get device features")


def skip_failure(operation: str, coin: str, exc: HardwareDispatchError) -> None:
    logger.warning(
        "Skipping failed sub-request",
        extra={"event": "chains.skip", "operation": operation, "coin": coin, "error": exc.message},
    )


__all__ = [
    "REGISTRY",
    "project",
    "path_or_default",
    "reply_path",
    "base_units",
    "records",
    "mapping",
    "normalize_address_n",
    "address_for",
    "device_features",
    "skip_failure",
    "list_field",
    "object_field",
]
