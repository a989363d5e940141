"""
EVM-compatible networks (Polygon, BNB Smart Chain, Arbitrum, ...).

Same requests as Ethereum; the target network is chosen with ``chain``.
"""

from __future__ import annotations

import logging

from hwdispatch.chains.common import REGISTRY
from hwdispatch.chains.ethereum import build_handlers
from hwdispatch.core.router import OperationRequest
from hwdispatch.core.validation import validate_chain_id

logger = logging.getLogger(__name__)


def selected_chain(request: OperationRequest) -> int:
    chain_id = validate_chain_id(request.require("chain"))
    if REGISTRY.evm_chain(chain_id) is None:
        logger.info("Signing for unlisted EVM chain", extra={"event": "evm.unlisted_chain", "chain_id": chain_id})
    return chain_id


HANDLERS = build_handlers(selected_chain, with_verify=False)
