"""
Polling watcher that turns device state changes into workflow events.

The watcher asks the device for its features on every poll. An event is
emitted only when the observed state differs from the previous poll, so a
device that stays connected produces a single ``device-connect``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.exceptions import ConfigurationError, HardwareDispatchError
from hwdispatch.core.format_utils import utc_now_iso

logger = logging.getLogger(__name__)

DEVICE_CONNECT = "device-connect"
DEVICE_DISCONNECT = "device-disconnect"
DEVICE_CHANGED = "device-changed"
TRANSPORT_ERROR = "transport-error"

EVENT_TYPES = (DEVICE_CONNECT, DEVICE_DISCONNECT, DEVICE_CHANGED, TRANSPORT_ERROR)

_MESSAGES = {
    DEVICE_CONNECT: "Trezor device connected",
    DEVICE_DISCONNECT: "Trezor device disconnected",
    DEVICE_CHANGED: "Trezor device state changed",
    TRANSPORT_ERROR: "Transport error occurred",
}

EventCallback = Callable[[Dict[str, Any]], None]


def _device_state(features: Dict[str, Any]) -> str:
    if features.get("bootloader_mode"):
        return "bootloader"
    if not features.get("initialized", True):
        return "initialize"
    return "connected"


class DeviceEventWatcher:
    """
    Emit device events of one type while polling in a background thread.

    Args:
        session_factory: Returns a fresh DeviceSession per poll
        emit: Called with each event dict
        event_type: One of EVENT_TYPES
        device_id: Only report the device with this id (empty for any device)
        include_device_info: Attach a ``device`` summary to events
        poll_interval: Seconds between polls
    """

    def __init__(
        self,
        session_factory: Callable[[], DeviceSession],
        emit: EventCallback,
        event_type: str = DEVICE_CONNECT,
        device_id: str = "",
        include_device_info: bool = True,
        poll_interval: float = 5.0,
    ):
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unsupported event type '{event_type}'. Expected one of: {', '.join(EVENT_TYPES)}")
        if poll_interval <= 0:
            raise ValueError("Poll interval must be positive")
        self._session_factory = session_factory
        self._emit = emit
        self.event_type = event_type
        self.device_id = device_id
        self.include_device_info = include_device_info
        self.poll_interval = poll_interval
        self.last_state: Optional[str] = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="hwdispatch-event-watcher", daemon=True)
        self._thread.start()
        logger.info(
            "Device event watcher started",
            extra={"event": "watcher.started", "event_type": self.event_type, "interval": self.poll_interval},
        )

    def stop(self) -> None:
        if not self._thread:
            return
        self._stop_event.set()
        self._thread.join(timeout=5)
        self._thread = None
        logger.info("Device event watcher stopped", extra={"event": "watcher.stopped"})

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except (OSError, ValueError, RuntimeError, HardwareDispatchError) as exc:
                logger.error(
                    "Device event poll failed: %s",
                    exc,
                    extra={"event": "watcher.poll_failed"},
                )
            except (ConfigurationError, ImportError) as exc:
                # retried on the next poll
                logger.error(
                    "Device event watcher cannot open a session: %s",
                    exc,
                    exc_info=True,
                    extra={"event": "watcher.poll_failed", "error_type": type(exc).__name__},
                )
            if self._stop_event.wait(self.poll_interval):
                break

    def _observe(self) -> tuple[str, Dict[str, Any], Optional[str]]:
        with self._session_factory() as session:
            reply = session.get_features()
        if reply.success:
            return _device_state(reply.payload), reply.payload, None
        return "disconnected", {}, reply.error

    def poll_once(self) -> List[Dict[str, Any]]:
        """Poll the device once and emit the resulting events (useful for tests)."""
        state, features, error = self._observe()
        if self.device_id and features and features.get("device_id") != self.device_id:
            logger.debug(
                "Ignoring device outside the filter",
                extra={"event": "watcher.filtered", "device_id": features.get("device_id")},
            )
            return []
        previous = self.last_state
        if state == previous:
            return []
        self.last_state = state

        if self.event_type == DEVICE_CONNECT:
            wanted = state != "disconnected" and previous in (None, "disconnected")
        elif self.event_type == DEVICE_DISCONNECT:
            wanted = state == "disconnected" and previous not in (None, "disconnected")
        elif self.event_type == TRANSPORT_ERROR:
            wanted = error is not None
        else:
            wanted = previous is not None
        if not wanted:
            return []

        event: Dict[str, Any] = {
            "eventType": self.event_type,
            "timestamp": utc_now_iso(),
            "message": _MESSAGES[self.event_type],
        }
        if self.event_type == DEVICE_CHANGED:
            event["previousState"] = previous
            event["currentState"] = state
        if error is not None and self.event_type == TRANSPORT_ERROR:
            event["error"] = error
        if self.include_device_info and features:
            event["device"] = {
                "deviceId": features.get("device_id"),
                "model": features.get("model"),
                "label": features.get("label"),
                "firmwareVersion": "{}.{}.{}".format(
                    features.get("major_version", 0),
                    features.get("minor_version", 0),
                    features.get("patch_version", 0),
                ),
                "status": state,
            }
        logger.info("Device event", extra={"event": "watcher.emit", "event_type": self.event_type, "state": state})
        self._emit(event)
        return [event]


__all__ = [
    "DeviceEventWatcher",
    "EVENT_TYPES",
    "DEVICE_CONNECT",
    "DEVICE_DISCONNECT",
    "DEVICE_CHANGED",
    "TRANSPORT_ERROR",
]
