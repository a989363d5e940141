"""
Cardano (Shelley era) addresses and transactions.

``network`` is the Cardano network id: 1 for mainnet, 0 for testnets.
Base addresses combine a payment key with the staking key at ``stakingPath``.
"""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import CARDANO_STAKING_PATH, path_or_default, project, records, reply_path
from hwdispatch.core.derivation_path import account_index, parse_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.router import OperationRequest


def _network_id(request: OperationRequest) -> int:
    network_id = request.get_int("network", 1)
    if network_id not in (0, 1):
        raise InvalidParameterError("Cardano network must be 0 (testnet) or 1 (mainnet)")
    return network_id


def _staking_path(request: OperationRequest, account: int = 0):
    return request.path_param("stakingPath") or parse_path(CARDANO_STAKING_PATH.format(account=account))


def get_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    network_id = _network_id(request)
    path = path_or_default(request, "ada")
    staking_path = _staking_path(request, account_index(path))
    payload = project(
        session.cardano_get_address(path, staking_path, network_id, request.get_bool("showOnDevice")),
        required=("address",),
        default_error="Failed to get Cardano address",
    )
    return {"address": payload["address"], "path": reply_path(payload, path), "networkId": network_id}


def get_public_key(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    network_id = _network_id(request)
    path = path_or_default(request, "ada")
    payload = project(
        session.get_public_key(path, "ada", request.get_bool("showOnDevice")),
        required=("publicKey",),
        default_error="Failed to get Cardano public key",
    )
    return {"publicKey": payload["publicKey"], "path": reply_path(payload, path), "networkId": network_id}


def sign_transaction(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    network_id = _network_id(request)
    inputs = records(request, "inputs")
    outputs = records(request, "outputs")
    fee = str(request.require_int("fee", minimum=0))
    ttl = str(request.require_int("ttl", minimum=0))
    payload = project(
        session.cardano_sign_transaction(
            inputs,
            outputs,
            fee,
            ttl,
            network_id,
            certificates=request.get_json("certificates", []),
            withdrawals=request.get_json("withdrawals", []),
            metadata=request.get("metadata"),
        ),
        required=("signatures", "serializedTx"),
        default_error="Failed to sign Cardano transaction",
    )
    return {
        "signatures": payload["signatures"],
        "serializedTx": payload["serializedTx"],
        "hash": payload.get("hash"),
        "networkId": network_id,
    }


def get_stake_address(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    network_id = _network_id(request)
    staking_path = _staking_path(request, request.get_int("accountIndex", 0, minimum=0))
    payload = project(
        session.cardano_get_address(staking_path, staking_path, network_id),
        required=("address",),
        default_error="Failed to get stake address",
    )
    return {"stakeAddress": payload["address"], "path": reply_path(payload, staking_path), "networkId": network_id}


HANDLERS = {
    "getAddress": get_address,
    "getPublicKey": get_public_key,
    "signTransaction": sign_transaction,
    "getStakeAddress": get_stake_address,
}
