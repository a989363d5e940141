"""
Batch execution of workflow items.

A workflow engine hands over a list of items, each naming a resource, an
operation and its parameters. Items run one after another against the same
router; each gets its own device session.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

from hwdispatch.core.exceptions import HardwareDispatchError, InvalidParameterError
from hwdispatch.core.router import OperationRouter

logger = logging.getLogger(__name__)


def _item_fields(item: Mapping[str, Any], position: int) -> tuple[str, str, Dict[str, Any]]:
    resource = item.get("resource")
    operation = item.get("operation")
    if not resource or not operation:
        raise InvalidParameterError(f"Item {position} must name a resource and an operation")
    params = item.get("params") or {}
    if not isinstance(params, Mapping):
        raise InvalidParameterError(f"Item {position} params must be an object")
    return str(resource), str(operation), dict(params)


def execute_items(
    router: OperationRouter, items: Sequence[Mapping[str, Any]], continue_on_fail: bool = False
) -> List[Dict[str, Any]]:
    """
    Dispatch every item in order.

    Args:
        router: Router used for each item
        items: Dicts with ``resource``, ``operation`` and optional ``params``
        continue_on_fail: Record failures and keep going instead of raising

    Returns:
        One output per item. Successful items yield their payload; failed
        items yield ``{"error": message, "pairedItem": index}`` when
        ``continue_on_fail`` is set.

    Raises:
        HardwareDispatchError: The first failure, unless ``continue_on_fail``
    """
    outputs: List[Dict[str, Any]] = []
    for position, item in enumerate(items):
        try:
            resource, operation, params = _item_fields(item, position)
            payload = router.dispatch(resource, operation, params).unwrap()
        except HardwareDispatchError as exc:
            if not continue_on_fail:
                raise
            logger.warning(
                "Item failed, continuing",
                extra={"event": "executor.item_failed", "item": position, "kind": exc.kind, "error": exc.message},
            )
            outputs.append({"error": exc.message, "pairedItem": position})
            continue
        outputs.append(payload)
    return outputs


__all__ = ["execute_items"]
