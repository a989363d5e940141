"""
Uniform result envelope and reply projection.

Every dispatch ends in an OperationResult: either ``Ok(payload)`` or
``Err(kind, message)``. ResultProjector turns raw DeviceReply envelopes into
payload dicts so handlers never branch on ``success`` themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.exceptions import (
    ERRORS_BY_KIND,
    DeviceRejectedError,
    DeviceUnavailableError,
    HardwareDispatchError,
    MalformedReplyError,
)


class ErrorKind(str, Enum):
    INVALID_PARAMETER = "InvalidParameter"
    UNKNOWN_OPERATION = "UnknownOperation"
    DEVICE_REJECTED = "DeviceRejected"
    MALFORMED_REPLY = "MalformedReply"
    DEVICE_UNAVAILABLE = "DeviceUnavailable"


@dataclass(frozen=True)
class OperationResult:
    """Tagged union of a successful payload or a typed failure."""

    ok: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, payload: Dict[str, Any]) -> "OperationResult":
        return cls(True, dict(payload))

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "OperationResult":
        return cls(False, {}, ErrorKind(kind), message)

    @classmethod
    def from_exception(cls, exc: HardwareDispatchError) -> "OperationResult":
        return cls.failure(ErrorKind(exc.kind), exc.message)

    def unwrap(self) -> Dict[str, Any]:
        """
        Return the payload of a successful result.

        Raises:
            HardwareDispatchError: The subclass matching ``error_kind``
        """
        if self.ok:
            return self.payload
        error_class = ERRORS_BY_KIND.get(self.error_kind.value, HardwareDispatchError)
        raise error_class(self.message or self.error_kind.value)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "payload": dict(self.payload)}
        return {"ok": False, "error": {"kind": self.error_kind.value, "message": self.message}}


class ResultProjector:
    """Maps device replies onto payloads or typed errors."""

    @staticmethod
    def project(
        reply: DeviceReply,
        *,
        required: Iterable[str] = (),
        default_error: str = "Device request failed",
    ) -> Dict[str, Any]:
        """
        Extract the payload of a successful reply.

        Args:
            reply: Raw device reply
            required: Payload keys the caller relies on
            default_error: Message used when the device gave none

        Returns:
            The reply payload

        Raises:
            DeviceRejectedError: If the device reported failure
            DeviceUnavailableError: If the device could not be reached
            MalformedReplyError: If a required key is missing
        """
        if not reply.success:
            message = reply.error or default_error
            if reply.unavailable:
                raise DeviceUnavailableError(message)
            raise DeviceRejectedError(message)
        missing = [key for key in required if key not in reply.payload]
        if missing:
            raise MalformedReplyError(
                f"Device reply is missing required field(s): {', '.join(missing)}",
                {"missing": missing},
            )
        return reply.payload

    @classmethod
    def to_result(
        cls,
        reply: DeviceReply,
        *,
        required: Iterable[str] = (),
        default_error: str = "Device request failed",
    ) -> OperationResult:
        try:
            return OperationResult.success(cls.project(reply, required=required, default_error=default_error))
        except HardwareDispatchError as exc:
            return OperationResult.from_exception(exc)


__all__ = ["ErrorKind", "OperationResult", "ResultProjector"]
