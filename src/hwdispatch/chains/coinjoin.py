"""CoinJoin ownership proofs and coordinator authorization."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import REGISTRY, project, reply_path
from hwdispatch.core.coin_registry import script_type_for_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.validation import validate_hex

DEFAULT_MAX_ROUNDS = 10
DEFAULT_COORDINATOR_FEE_RATE = 500000  # 0.5% in units of 1e-8
DEFAULT_MAX_FEE_PER_KVBYTE = 3500


def _path_and_script(request: OperationRequest):
    coin = request.coin_or("btc")
    path = request.path or REGISTRY.default_path(coin, request.get_int("accountIndex", 0, minimum=0))
    return coin, path, str(request.get("scriptType", script_type_for_path(path))).lower()


def get_ownership_proof(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin, path, script_type = _path_and_script(request)
    commitment = request.get("commitmentData")
    if commitment is not None:
        commitment = validate_hex(str(commitment), field="commitmentData")
    payload = project(
        session.get_ownership_proof(path, script_type, commitment or "", coin),
        required=("ownershipProof",),
        default_error="Failed to get ownership proof",
    )
    return {
        "ownershipProof": payload["ownershipProof"],
        "path": reply_path(payload, path),
        "scriptType": script_type,
        "commitmentData": commitment,
    }


def get_ownership_id(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin, path, script_type = _path_and_script(request)
    payload = project(
        session.get_ownership_id(path, script_type, coin),
        required=("ownershipId",),
        default_error="Failed to get ownership ID",
    )
    return {"ownershipId": payload["ownershipId"], "path": reply_path(payload, path), "scriptType": script_type}


def authorize(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    coin, path, script_type = _path_and_script(request)
    coordinator = str(request.require("coordinator"))
    max_rounds = request.get_int("maxRounds", DEFAULT_MAX_ROUNDS, minimum=1)
    fee_rate = request.get_int("maxCoordinatorFeeRate", DEFAULT_COORDINATOR_FEE_RATE, minimum=0)
    fee_per_kvbyte = request.get_int("maxFeePerKvbyte", DEFAULT_MAX_FEE_PER_KVBYTE, minimum=0)
    payload = project(
        session.authorize_coinjoin(path, coordinator, max_rounds, fee_rate, fee_per_kvbyte, script_type, coin),
        default_error="Failed to authorize CoinJoin",
    )
    return {
        "authorized": True,
        "coordinator": coordinator,
        "maxRounds": max_rounds,
        "maxCoordinatorFeeRate": fee_rate,
        "maxFeePerKvbyte": fee_per_kvbyte,
        "message": payload.get("message", "CoinJoin authorization granted"),
    }


HANDLERS = {
    "getOwnershipProof": get_ownership_proof,
    "getOwnershipId": get_ownership_id,
    "authorize": authorize,
}
