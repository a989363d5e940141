import pytest

from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.device_session import DeviceSession, SessionState
from hwdispatch.core.exceptions import DeviceLinkError, SessionStateError


def test_session_opens_lazily_and_only_once(scripted_link):
    link = scripted_link()
    session = DeviceSession(link)
    assert session.state is SessionState.UNINITIALIZED
    assert link.open_calls == 0

    session.get_features()
    session.ping()
    session.acquire()
    assert session.is_active
    assert link.open_calls == 1
    assert [request.name for request in link.sent] == ["GetFeatures", "Ping"]


def test_release_is_idempotent(scripted_link):
    link = scripted_link()
    session = DeviceSession(link)
    session.get_features()
    session.release()
    session.release()
    assert session.state is SessionState.DISPOSED
    assert link.close_calls == 1


def test_release_without_acquire_does_not_close(scripted_link):
    link = scripted_link()
    with DeviceSession(link):
        pass
    assert link.close_calls == 0


def test_context_manager_releases_on_error(scripted_link):
    link = scripted_link()
    with pytest.raises(RuntimeError):
        with DeviceSession(link) as session:
            session.get_features()
            raise RuntimeError("handler bug")
    assert link.close_calls == 1


def test_disposed_session_cannot_be_reused(scripted_link):
    session = DeviceSession(scripted_link())
    session.release()
    with pytest.raises(SessionStateError):
        session.get_features()
    with pytest.raises(SessionStateError):
        session.acquire()


def test_open_failure_becomes_unavailable_reply():
    class UnreachableLink:
        def open(self):
            raise DeviceLinkError("No Trezor device found.")

        def close(self):
            raise AssertionError("close must not be called for a link that never opened")

        def send(self, request):
            raise AssertionError("send must not be called")

    with DeviceSession(UnreachableLink()) as session:
        reply = session.get_features()
    assert reply.success is False
    assert reply.unavailable is True
    assert "No Trezor device found." in reply.error


def test_device_refusal_is_returned_not_raised(scripted_link):
    link = scripted_link(lambda request: DeviceReply.fail("Action cancelled by user"))
    with DeviceSession(link) as session:
        reply = session.sign_hash(None, b"\x00" * 32)
    assert reply.success is False
    assert reply.unavailable is False
    assert reply.error == "Action cancelled by user"
