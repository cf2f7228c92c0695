from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Dict, Optional

from plyer import notification as plyer_notification  # type: ignore[import-not-found]

from .errors import DeliveryDenied

logger = logging.getLogger(__name__)


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


class DeliveryHandle:
    """Returned by ``deliver``; desktop notifications expire on their own."""

    def __init__(self, thread: Optional[threading.Thread] = None) -> None:
        self.thread = thread

    def close(self) -> None:
        pass


class DesktopNotifier:
    """Delivery surface backed by plyer's desktop notifications.

    Desktops do not ask the user for permission, so ``request_permission``
    reports GRANTED when a notification backend is available and UNSUPPORTED
    otherwise. ``revoke()`` lets the app model a user turning notifications off.
    """

    def __init__(self, app_name: str = "StudyTrack", timeout_s: int = 10, background: bool = True) -> None:
        self.app_name = app_name
        self.timeout_s = timeout_s
        self.background = background
        self._state: Optional[PermissionState] = None

    def request_permission(self) -> PermissionState:
        if self._state is None:
            notify_func = getattr(plyer_notification, "notify", None)
            self._state = PermissionState.GRANTED if callable(notify_func) else PermissionState.UNSUPPORTED
            logger.info("Notification permission: %s", self._state.value)
        return self._state

    def has_permission(self) -> bool:
        return self._state == PermissionState.GRANTED

    def revoke(self) -> None:
        self._state = PermissionState.DENIED

    def deliver(self, title: str, body: str, options: Optional[Dict[str, Any]] = None) -> DeliveryHandle:
        """Send a desktop notification; non-blocking unless ``background`` is off."""
        if not self.has_permission():
            raise DeliveryDenied(title)
        opts = options or {}
        timeout = int(opts.get("timeout", self.timeout_s))

        def _do() -> None:
            try:
                plyer_notification.notify(title=title, message=body, timeout=timeout, app_name=self.app_name)  # type: ignore[no-untyped-call]
            except Exception as e:
                # Avoid crashing on platforms where notifications are not available
                logger.warning("Notification backend error: %s", e)

        if not self.background:
            _do()
            return DeliveryHandle()
        t = threading.Thread(target=_do, daemon=True)
        t.start()
        return DeliveryHandle(t)


__all__ = ["PermissionState", "DeliveryHandle", "DesktopNotifier"]
