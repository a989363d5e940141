import pytest

from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.exceptions import (
    DeviceRejectedError,
    DeviceUnavailableError,
    InvalidParameterError,
    MalformedReplyError,
)
from hwdispatch.core.results import ErrorKind, OperationResult, ResultProjector


def test_project_returns_payload_when_required_keys_present():
    reply = DeviceReply.ok({"address": "bc1qmock", "extra": 1})
    assert ResultProjector.project(reply, required=("address",)) == {"address": "bc1qmock", "extra": 1}


def test_project_uses_device_message_or_default():
    with pytest.raises(DeviceRejectedError, match="Action cancelled by user"):
        ResultProjector.project(DeviceReply.fail("Action cancelled by user"), default_error="Failed")
    with pytest.raises(DeviceRejectedError, match="Failed to get address"):
        ResultProjector.project(DeviceReply(False), default_error="Failed to get address")


def test_project_flags_missing_fields():
    with pytest.raises(MalformedReplyError) as exc:
        ResultProjector.project(DeviceReply.ok({"path": "m/0"}), required=("address", "path"))
    assert exc.value.details == {"missing": ["address"]}


def test_project_reports_transport_failures_as_unavailable():
    with pytest.raises(DeviceUnavailableError):
        ResultProjector.project(DeviceReply.transport_failure("Device unavailable: no bridge"))


def test_to_result_never_raises():
    result = ResultProjector.to_result(DeviceReply.fail("busy"))
    assert result.ok is False
    assert result.error_kind is ErrorKind.DEVICE_REJECTED
    assert result.message == "busy"
    assert ResultProjector.to_result(DeviceReply.ok({"a": 1})).payload == {"a": 1}


def test_result_serialization_and_unwrap():
    ok = OperationResult.success({"valid": True})
    assert ok.to_dict() == {"ok": True, "payload": {"valid": True}}
    assert ok.unwrap() == {"valid": True}

    err = OperationResult.from_exception(InvalidParameterError("Missing required parameter: path"))
    assert err.to_dict() == {
        "ok": False,
        "error": {"kind": "InvalidParameter", "message": "Missing required parameter: path"},
    }
    with pytest.raises(InvalidParameterError):
        err.unwrap()
