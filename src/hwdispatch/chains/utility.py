"""
Offline helpers: unit conversion, path parsing and mnemonic checks.

These handlers are registered under an offline resource; the router passes
``None`` instead of a session.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from hwdispatch.core.derivation_path import DerivationPath, is_hardened, unharden
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.units import convert_units as _convert
from hwdispatch.core.validation import check_mnemonic


def convert_units(request: OperationRequest, session: Optional[DeviceSession]) -> Dict[str, Any]:
    amount = request.require("amount")
    from_unit = str(request.require("fromUnit"))
    to_unit = str(request.require("toUnit"))
    try:
        converted = _convert(amount, from_unit, to_unit)
    except ValueError as exc:
        raise InvalidParameterError(str(exc)) from exc
    return {"amount": str(amount), "fromUnit": from_unit, "toUnit": to_unit, "converted": converted}


def _component(path: DerivationPath, position: int) -> Optional[int]:
    if position >= path.depth:
        return None
    return unharden(path.components[position])


def parse_path_operation(request: OperationRequest, session: Optional[DeviceSession]) -> Dict[str, Any]:
    path = request.require_path()
    components = [
        {"value": unharden(component), "hardened": is_hardened(component), "fullValue": component}
        for component in path.components
    ]
    return {
        "path": str(path),
        "components": components,
        "purpose": _component(path, 0),
        "coinType": _component(path, 1),
        "account": _component(path, 2),
        "change": _component(path, 3),
        "addressIndex": _component(path, 4),
        "depth": path.depth,
    }


def generate_path(request: OperationRequest, session: Optional[DeviceSession]) -> Dict[str, Any]:
    purpose = request.get_int("purpose", 44, minimum=0)
    coin_type = request.get_int("coinType", 0, minimum=0)
    account = request.get_int("account", 0, minimum=0)
    change = request.get_int("change", 0, minimum=0)
    index = request.get_int("addressIndex", 0, minimum=0)
    path = DerivationPath.bip44(purpose, coin_type, account, change, index)
    return {
        "path": str(path),
        "purpose": purpose,
        "coinType": coin_type,
        "account": account,
        "change": change,
        "addressIndex": index,
    }


def validate_mnemonic(request: OperationRequest, session: Optional[DeviceSession]) -> Dict[str, Any]:
    return check_mnemonic(request.require("mnemonic"))


HANDLERS = {
    "convertUnits": convert_units,
    "parsePath": parse_path_operation,
    "generatePath": generate_path,
    "validateMnemonic": validate_mnemonic,
}
