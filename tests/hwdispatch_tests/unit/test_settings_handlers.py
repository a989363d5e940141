import pytest

from hwdispatch.core import device_requests as req
from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.results import ErrorKind
from hwdispatch.core.router import OperationRouter


@pytest.fixture
def recorder(scripted_link, factory_spy):
    link = scripted_link(lambda request: DeviceReply.ok({"message": "ok"}))
    return link, OperationRouter(factory_spy(link))


def test_security_auto_lock_is_minutes(recorder):
    link, router = recorder
    result = router.dispatch("security", "setAutoLock", {"autoLockDelay": 5})
    assert result.payload["autoLockDelayMs"] == 300000
    (sent,) = link.sent
    assert isinstance(sent, req.ApplySettings)
    assert sent.auto_lock_delay_ms == 300000


def test_security_auto_lock_bounds(recorder):
    _, router = recorder
    result = router.dispatch("security", "setAutoLock", {"autoLockDelay": 0})
    assert result.error_kind is ErrorKind.INVALID_PARAMETER


def test_device_auto_lock_is_seconds(recorder):
    link, router = recorder
    router.dispatch("device", "applySettings", {"autoLockDelay": 30, "deviceLabel": "Desk"})
    (sent,) = link.sent
    assert sent.auto_lock_delay_ms == 30000
    assert sent.label == "Desk"
    assert sent.use_passphrase is None


def test_device_apply_settings_needs_a_setting(recorder):
    link, router = recorder
    result = router.dispatch("device", "applySettings", {})
    assert result.error_kind is ErrorKind.INVALID_PARAMETER
    assert link.sent == []


def test_safety_level_is_checked(recorder):
    _, router = recorder
    assert router.dispatch("security", "setSafetyChecks", {"safetyLevel": "Loose"}).error_kind is (
        ErrorKind.INVALID_PARAMETER
    )


@pytest.mark.parametrize(
    "reply,expected",
    [
        (DeviceReply.ok({"model": "T"}), {"connected": True, "bridgeRunning": True}),
        (DeviceReply.transport_failure("Device unavailable: bridge down"), {"connected": False, "bridgeRunning": False}),
        (DeviceReply.fail("Device busy"), {"connected": False, "bridgeRunning": True}),
    ],
)
def test_suite_check_connection_never_fails(scripted_link, factory_spy, reply, expected):
    router = OperationRouter(factory_spy(scripted_link(lambda request: reply)))
    result = router.dispatch("suite", "checkConnection", {})
    assert result.ok
    assert {key: result.payload[key] for key in expected} == expected
