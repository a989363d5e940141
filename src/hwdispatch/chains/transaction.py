"""
Bitcoin-family transaction composition, signing and fee estimation.

``compose`` and ``estimateFee`` are pure calculations. ``sign`` hands the
prepared inputs and outputs to the device.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

from hwdispatch.chains.bitcoin import family_coin
from hwdispatch.chains.common import REGISTRY, normalize_address_n, project, records
from hwdispatch.core.addresses import validate_address
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.units import from_base_units
from hwdispatch.core.validation import validate_amount

# Typical one-input two-output P2WPKH transaction.
COMPOSE_SIZE_VBYTES = 250

# vsize = overhead + per-input + per-output, P2WPKH weights.
TX_OVERHEAD_VBYTES = 11
INPUT_VBYTES = 68
OUTPUT_VBYTES = 31


def _coin(request: OperationRequest) -> str:
    if request.coin is None:
        return "btc"
    return family_coin(request)[0]


def _fee_rate(request: OperationRequest) -> int:
    return request.get_int("feeRate", 10, minimum=1)


def compose(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    """Validate outputs and estimate the fee without touching the device."""
    coin = _coin(request)
    outputs = []
    for index, output in enumerate(records(request, "outputs")):
        address = str(output.get("address", "")).strip()
        if not address:
            raise InvalidParameterError(f"Output {index} is missing an address")
        if not validate_address(address, coin):
            raise InvalidParameterError(f"Output {index} has an invalid {coin} address: {address}")
        amount = validate_amount(output.get("amount"), field=f"Output {index} amount")
        outputs.append({"address": address, "amount": str(amount)})
    if not outputs:
        raise InvalidParameterError("Transaction must have at least one output")
    fee_rate = _fee_rate(request)
    account_path = request.path or REGISTRY.account_path(coin, request.get_int("accountIndex", 0, minimum=0))
    return {
        "composed": True,
        "coin": coin,
        "outputs": outputs,
        "accountPath": str(account_path),
        "feeRate": fee_rate,
        "estimatedFee": COMPOSE_SIZE_VBYTES * fee_rate,
        "estimatedSize": COMPOSE_SIZE_VBYTES,
        "rbfEnabled": request.get_bool("rbf", True),
        "rawTx": None,
    }


def sign(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin = _coin(request)
    inputs = normalize_address_n(records(request, "inputs"))
    outputs = normalize_address_n(records(request, "outputs"))
    if not inputs:
        raise InvalidParameterError("Transaction must have at least one input")
    if not outputs:
        raise InvalidParameterError("Transaction must have at least one output")
    account_path = request.path or REGISTRY.account_path(coin, request.get_int("accountIndex", 0, minimum=0))
    options = {
        "version": request.get_int("version", 2, minimum=1),
        "lock_time": request.get_int("lockTime", 0, minimum=0),
    }
    payload = project(
        session.sign_transaction(coin, inputs, outputs, options),
        required=("serializedTx",),
        default_error="Failed to sign transaction",
    )
    return {
        "signed": True,
        "coin": coin,
        "accountPath": str(account_path),
        "signedTx": payload["serializedTx"],
        "txid": payload.get("txid"),
    }


def estimate_fee(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin = _coin(request)
    inputs = request.get_int("inputCount", 1, minimum=1)
    outputs = request.get_int("outputCount", 2, minimum=1)
    fee_rate = _fee_rate(request)
    vsize = TX_OVERHEAD_VBYTES + INPUT_VBYTES * inputs + OUTPUT_VBYTES * outputs
    fee = vsize * fee_rate
    decimals = REGISTRY.require(coin).decimals
    return {
        "coin": coin,
        "inputCount": inputs,
        "outputCount": outputs,
        "estimatedVsize": vsize,
        "feeRate": fee_rate,
        "estimatedFee": fee,
        "estimatedFeeInCoin": from_base_units(Decimal(fee), decimals),
    }


HANDLERS = {
    "compose": compose,
    "sign": sign,
    "estimateFee": estimate_fee,
}
