"""
Application wiring: configuration, device link factory and router.

One ``AppContext`` is created per host process. It logs the licensing
notice the first time a device session is opened and hands out a fresh
DeviceSession for every dispatch.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional

from hwdispatch.core.config import ConnectConfig
from hwdispatch.core.device_link import DeviceLink, create_device_link
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.event_watcher import DeviceEventWatcher, EventCallback
from hwdispatch.core.results import OperationResult
from hwdispatch.core.router import HandlerTable, OperationRouter

logger = logging.getLogger(__name__)

LICENSE_NOTICE = (
    "hwdispatch is licensed under the Business Source License 1.1 (BSL 1.1). "
    "Use by for-profit organizations in production environments requires a commercial license."
)

LinkFactory = Callable[[ConnectConfig], DeviceLink]


class AppContext:
    """
    Holds the process-wide pieces a dispatch needs.

    Attributes:
        config: Validated connection configuration
        router: Router whose session factory is ``new_session``
    """

    def __init__(
        self,
        config: ConnectConfig,
        link_factory: LinkFactory = create_device_link,
        handlers: Optional[HandlerTable] = None,
    ):
        self.config = config
        self._link_factory = link_factory
        self._notice_lock = threading.Lock()
        self._notice_logged = False
        self.router = OperationRouter(self.new_session, handlers)

    @classmethod
    def from_env(cls, **overrides: Any) -> "AppContext":
        return cls(ConnectConfig.from_env(**overrides))

    @property
    def notice_logged(self) -> bool:
        with self._notice_lock:
            return self._notice_logged

    def log_notice_once(self) -> bool:
        """Log the licensing notice unless it was already logged. Returns True if logged now."""
        with self._notice_lock:
            if self._notice_logged:
                return False
            self._notice_logged = True
        logger.warning(LICENSE_NOTICE, extra={"event": "app.license_notice"})
        return True

    def reset_notice(self) -> None:
        with self._notice_lock:
            self._notice_logged = False

    def new_session(self) -> DeviceSession:
        self.log_notice_once()
        return DeviceSession(self._link_factory(self.config))

    def watcher(self, emit: EventCallback, **options: Any) -> DeviceEventWatcher:
        """Event watcher that polls through this context's sessions. ``options`` go to DeviceEventWatcher."""
        return DeviceEventWatcher(self.new_session, emit, **options)

    def dispatch(
        self, resource: Any, operation: str, params: Optional[Mapping[str, Any]] = None
    ) -> OperationResult:
        return self.router.dispatch(resource, operation, params)


__all__ = ["AppContext", "LICENSE_NOTICE"]
