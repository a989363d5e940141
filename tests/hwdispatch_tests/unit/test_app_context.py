import logging

from hwdispatch.core.app_context import LICENSE_NOTICE, AppContext
from hwdispatch.core.config import ConnectConfig
from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.event_watcher import DEVICE_CONNECT


def make_context(link, handlers=None):
    config = ConnectConfig("dev@example.com", "https://example.com", backend="mock", allow_mock=True)
    return AppContext(config, link_factory=lambda cfg: link, handlers=handlers)


def test_notice_is_logged_once_per_context(scripted_link, caplog):
    context = make_context(scripted_link(lambda request: DeviceReply.ok({"status": "ok"})))
    with caplog.at_level(logging.WARNING, logger="hwdispatch"):
        context.dispatch("device", "ping")
        context.dispatch("device", "ping")
    notices = [record for record in caplog.records if getattr(record, "event", None) == "app.license_notice"]
    assert len(notices) == 1
    assert notices[0].getMessage() == LICENSE_NOTICE
    assert context.notice_logged


def test_reset_notice_allows_logging_again(scripted_link):
    context = make_context(scripted_link())
    assert context.log_notice_once() is True
    assert context.log_notice_once() is False
    context.reset_notice()
    assert context.log_notice_once() is True


def test_offline_operations_do_not_log_notice(scripted_link):
    link = scripted_link()
    context = make_context(link)
    result = context.dispatch("utility", "generatePath", {"coinType": 60})
    assert result.ok
    assert not context.notice_logged
    assert link.open_calls == 0


def test_from_env_builds_router(manifest_env):
    context = AppContext.from_env(backend="mock", allow_mock=True)
    assert context.config.manifest_email == manifest_env["HWDISPATCH_MANIFEST_EMAIL"]
    assert context.router.has_operation("bitcoin", "getAddress")


def test_watcher_polls_through_context_sessions(scripted_link):
    link = scripted_link(lambda request: DeviceReply.ok({"device_id": "ABC123", "initialized": True}))
    context = make_context(link)
    emitted = []

    watcher = context.watcher(emitted.append, event_type=DEVICE_CONNECT, include_device_info=False)
    watcher.poll_once()

    assert [event["eventType"] for event in emitted] == [DEVICE_CONNECT]
    assert link.open_calls == link.close_calls == 1
    assert context.notice_logged
