import pytest

from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import DeviceRejectedError, InvalidParameterError
from hwdispatch.core.executor import execute_items
from hwdispatch.core.router import OperationRouter, ResourceKind


def _echo(request, session):
    if request.get_bool("fail"):
        raise DeviceRejectedError("Action cancelled by user")
    return {"value": request.get("value")}


@pytest.fixture
def router(scripted_link):
    link = scripted_link()
    return OperationRouter(lambda: DeviceSession(link), {ResourceKind.DEVICE: {"echo": _echo}})


def item(value, fail=False):
    return {"resource": "device", "operation": "echo", "params": {"value": value, "fail": fail}}


def test_all_items_succeed_in_order(router):
    assert execute_items(router, [item(1), item(2)]) == [{"value": 1}, {"value": 2}]


def test_first_failure_raises_without_continue(router):
    with pytest.raises(DeviceRejectedError, match="cancelled"):
        execute_items(router, [item(1), item(2, fail=True), item(3)])


def test_continue_on_fail_records_failures(router):
    outputs = execute_items(router, [item(1), item(2, fail=True), item(3)], continue_on_fail=True)
    assert outputs == [
        {"value": 1},
        {"error": "Action cancelled by user", "pairedItem": 1},
        {"value": 3},
    ]


def test_malformed_items_are_parameter_errors(router):
    with pytest.raises(InvalidParameterError, match="Item 0"):
        execute_items(router, [{"operation": "echo"}])
    outputs = execute_items(
        router,
        [{"resource": "device", "operation": "echo", "params": ["not", "a", "mapping"]}],
        continue_on_fail=True,
    )
    assert outputs == [{"error": "Item 0 params must be an object", "pairedItem": 0}]


def test_unknown_operation_fails_the_item(router):
    outputs = execute_items(router, [{"resource": "device", "operation": "nope"}], continue_on_fail=True)
    assert outputs == [{"error": "Unknown operation: nope", "pairedItem": 0}]
