"""
Exception hierarchy for the hardware dispatch layer.

Every failure a dispatch can report carries an ``ErrorKind`` string in
``kind`` so the router can convert it into an ``OperationResult`` without
inspecting messages.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class HardwareDispatchError(Exception):
    """Base exception for all dispatch errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the caller may retry the operation
        kind: ErrorKind value reported in failed results
    """

    kind = "DeviceRejected"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Caller Errors ====================


class InvalidParameterError(HardwareDispatchError, ValueError):
    """Raised when a required parameter is missing or malformed.

    Also a ValueError so plain validators can be caught the usual way.
    """

    kind = "InvalidParameter"


class PathError(InvalidParameterError):
    """Base class for derivation path failures."""
    pass


class MalformedPathError(PathError):
    """Raised when a path string or component cannot be encoded."""
    pass


class PathTooShortError(PathError):
    """Raised when a path lacks the depth an operation needs."""
    pass


class CoinRegistryError(InvalidParameterError):
    """Raised on unknown coins or an inconsistent coin table."""
    pass


class UnknownOperationError(HardwareDispatchError):
    """Raised when a (resource, operation) pair has no handler."""

    kind = "UnknownOperation"


# ==================== Device Errors ====================


class DeviceRejectedError(HardwareDispatchError):
    """Raised when the device reply reports ``success=False``.

    Covers user cancellation on the device, wrong device state and busy
    devices. The device message is surfaced verbatim when present.
    """

    kind = "DeviceRejected"


class MalformedReplyError(HardwareDispatchError):
    """Raised when a successful reply lacks fields a handler requires."""

    kind = "MalformedReply"


class DeviceUnavailableError(HardwareDispatchError):
    """Raised when the device link cannot be opened."""

    kind = "DeviceUnavailable"


class DeviceLinkError(HardwareDispatchError):
    """Raised by link backends for transport-level failures."""

    kind = "DeviceUnavailable"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, recoverable=True)


# ==================== Programmer Errors ====================


class ConfigurationError(Exception):
    """Raised when connection configuration is missing or invalid."""
    pass


class SessionStateError(RuntimeError):
    """Raised when a device session is used after it was released."""
    pass


ERRORS_BY_KIND: Dict[str, type[HardwareDispatchError]] = {
    "InvalidParameter": InvalidParameterError,
    "UnknownOperation": UnknownOperationError,
    "DeviceRejected": DeviceRejectedError,
    "MalformedReply": MalformedReplyError,
    "DeviceUnavailable": DeviceUnavailableError,
}


__all__ = [
    "HardwareDispatchError",
    "InvalidParameterError",
    "PathError",
    "MalformedPathError",
    "PathTooShortError",
    "CoinRegistryError",
    "UnknownOperationError",
    "DeviceRejectedError",
    "MalformedReplyError",
    "DeviceUnavailableError",
    "DeviceLinkError",
    "ConfigurationError",
    "SessionStateError",
    "ERRORS_BY_KIND",
]
