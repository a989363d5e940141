"""
Operation routing.

Maps a ``(resource, operation)`` pair onto its chain handler, runs the
handler inside a device session scope and converts dispatch errors into
OperationResult failures.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from hwdispatch.core.derivation_path import DerivationPath, parse_path
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import HardwareDispatchError, InvalidParameterError
from hwdispatch.core.results import ErrorKind, OperationResult
from hwdispatch.core.structured_logger import LogContext

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


class ResourceKind(str, Enum):
    ACCOUNT = "account"
    ADDRESS = "address"
    BITCOIN = "bitcoin"
    BITCOIN_LIKE = "bitcoinLike"
    ETHEREUM = "ethereum"
    EVM_CHAINS = "evmChains"
    CARDANO = "cardano"
    SOLANA = "solana"
    RIPPLE = "ripple"
    STELLAR = "stellar"
    TEZOS = "tezos"
    EOS = "eos"
    BINANCE_CHAIN = "binanceChain"
    MULTI_CURRENCY = "multiCurrency"
    TRANSACTION = "transaction"
    SIGNING = "signing"
    PASSPHRASE = "passphrase"
    BACKUP = "backup"
    SECURITY = "security"
    COINJOIN = "coinjoin"
    FIRMWARE = "firmware"
    LABEL = "label"
    WEBAUTHN = "webauthn"
    SUITE = "suite"
    UTILITY = "utility"
    DEVICE = "device"

    @classmethod
    def parse(cls, value: Any) -> Optional["ResourceKind"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


# Resources whose handlers never talk to a device and receive no session.
OFFLINE_RESOURCES = frozenset({ResourceKind.UTILITY})


@dataclass(frozen=True)
class OperationRequest:
    """
    Parsed parameters for one dispatch.

    ``path`` and ``coin`` are lifted out of the raw parameters; everything
    else stays in ``extra`` and is read through the typed accessors, which
    raise InvalidParameterError instead of KeyError/ValueError.
    """

    resource: ResourceKind
    operation: str
    path: Optional[DerivationPath] = None
    coin: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(
        cls, resource: ResourceKind, operation: str, params: Optional[Mapping[str, Any]] = None
    ) -> "OperationRequest":
        """
        Raises:
            PathError: If ``path`` is present but malformed
        """
        extra = dict(params or {})
        raw_path = extra.pop("path", None)
        path = parse_path(raw_path) if raw_path not in (None, "") else None
        raw_coin = extra.pop("coin", None)
        coin = str(raw_coin).strip().lower() if raw_coin not in (None, "") else None
        return cls(resource, operation, path, coin, extra)

    def get(self, name: str, default: Any = None) -> Any:
        value = self.extra.get(name)
        return default if value is None else value

    def require(self, name: str) -> Any:
        value = self.extra.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidParameterError(f"Missing required parameter: {name}")
        return value

    def get_bool(self, name: str, default: bool = False) -> bool:
        value = self.extra.get(name)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise InvalidParameterError(f"Parameter '{name}' must be a boolean")

    def _to_int(self, name: str, value: Any, minimum: Optional[int], maximum: Optional[int]) -> int:
        if isinstance(value, bool):
            raise InvalidParameterError(f"Parameter '{name}' must be an integer")
        try:
            number = int(str(value).strip()) if isinstance(value, str) else int(value)
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError(f"Parameter '{name}' must be an integer") from exc
        if isinstance(value, float) and value != number:
            raise InvalidParameterError(f"Parameter '{name}' must be an integer")
        if minimum is not None and number < minimum:
            raise InvalidParameterError(f"Parameter '{name}' must be at least {minimum}")
        if maximum is not None and number > maximum:
            raise InvalidParameterError(f"Parameter '{name}' must be at most {maximum}")
        return number

    def require_int(self, name: str, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
        return self._to_int(name, self.require(name), minimum, maximum)

    def get_int(
        self, name: str, default: int = 0, minimum: Optional[int] = None, maximum: Optional[int] = None
    ) -> int:
        value = self.extra.get(name)
        if value is None or value == "":
            return default
        return self._to_int(name, value, minimum, maximum)

    def get_json(self, name: str, default: Any = None) -> Any:
        """Read a structured parameter given either as JSON text or as a value."""
        value = self.extra.get(name)
        if value is None or value == "":
            return default
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as exc:
                raise InvalidParameterError(f"Parameter '{name}' must be valid JSON: {exc.msg}") from exc
        return value

    def require_path(self) -> DerivationPath:
        if self.path is None:
            raise InvalidParameterError("Missing required parameter: path")
        return self.path

    def path_param(self, name: str, default: Optional[DerivationPath] = None) -> Optional[DerivationPath]:
        value = self.extra.get(name)
        if value in (None, ""):
            return default
        return parse_path(value)

    def coin_or(self, default: str) -> str:
        return self.coin or default


Handler = Callable[[OperationRequest, Optional[DeviceSession]], Dict[str, Any]]
HandlerTable = Dict[ResourceKind, Dict[str, Handler]]
SessionFactory = Callable[[], DeviceSession]


def default_handler_table() -> HandlerTable:
    """Collect the HANDLERS mapping of every chain module."""
    from hwdispatch.chains import HANDLERS_BY_RESOURCE

    return {ResourceKind(resource): dict(handlers) for resource, handlers in HANDLERS_BY_RESOURCE.items()}


class OperationRouter:
    """
    Dispatches operations to chain handlers.

    Each dispatch gets a fresh DeviceSession from ``session_factory``; the
    session is released when the handler returns or raises. Unknown
    operations are answered without creating a session.
    """

    def __init__(self, session_factory: SessionFactory, handlers: Optional[HandlerTable] = None):
        self._session_factory = session_factory
        self._handlers = handlers if handlers is not None else default_handler_table()

    def operations(self) -> List[Tuple[str, str]]:
        return sorted(
            (resource.value, operation) for resource, table in self._handlers.items() for operation in table
        )

    def has_operation(self, resource: Any, operation: str) -> bool:
        return self._lookup(resource, operation) is not None

    def _lookup(self, resource: Any, operation: str) -> Optional[Handler]:
        kind = ResourceKind.parse(resource)
        if kind is None:
            return None
        return self._handlers.get(kind, {}).get(operation)

    def dispatch(
        self, resource: Any, operation: str, params: Optional[Mapping[str, Any]] = None
    ) -> OperationResult:
        """
        Run one operation.

        Args:
            resource: Resource name or ResourceKind
            operation: Operation name within the resource
            params: Raw caller parameters

        Returns:
            OperationResult; dispatch errors never raise
        """
        with LogContext():
            handler = self._lookup(resource, operation)
            if handler is None:
                logger.warning(
                    "Unknown operation requested",
                    extra={"event": "router.unknown_operation", "resource": str(resource), "operation": operation},
                )
                return OperationResult.failure(ErrorKind.UNKNOWN_OPERATION, f"Unknown operation: {operation}")

            kind = ResourceKind.parse(resource)
            try:
                request = OperationRequest.build(kind, operation, params)
                if kind in OFFLINE_RESOURCES:
                    payload = handler(request, None)
                else:
                    with self._session_factory() as session:
                        payload = handler(request, session)
            except HardwareDispatchError as exc:
                logger.warning(
                    "Operation failed",
                    extra={
                        "event": "router.failure",
                        "resource": kind.value,
                        "operation": operation,
                        "kind": exc.kind,
                        "error": exc.message,
                    },
                )
                return OperationResult.from_exception(exc)

            logger.info(
                "Operation completed",
                extra={"event": "router.dispatch", "resource": kind.value, "operation": operation},
            )
            return OperationResult.success(payload)


__all__ = [
    "ResourceKind",
    "OperationRequest",
    "OperationRouter",
    "Handler",
    "HandlerTable",
    "SessionFactory",
    "OFFLINE_RESOURCES",
    "default_handler_table",
]
