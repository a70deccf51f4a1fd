"""
Native Notification Bridge

DESIGN DECISION: Reading device notifications is platform code we do not
own. The capture pipeline sees it through this narrow contract only:
1. Is notification access granted?
2. What is pending? (a JSON list of {title, text, package, time})
3. Acknowledge everything pending

CRITICAL: Pending notifications stay queued on the device until
``clear_notifications`` is called. The trigger scheduler only clears after
a batch has been fully reconciled, so a dropped or aborted run loses
nothing.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional


class NotificationBridge(ABC):
    """Abstract interface to the device notification listener."""

    @abstractmethod
    async def has_notification_access(self) -> bool:
        """Whether the user granted notification-listener access."""
        pass

    @abstractmethod
    async def get_pending_notifications(self) -> str:
        """
        Return the pending notifications as a JSON array string.

        Each element carries ``title`` and ``text`` and, on Android,
        ``package`` and ``time``.
        """
        pass

    @abstractmethod
    async def clear_notifications(self) -> None:
        """Acknowledge (drop) every pending notification."""
        pass


class InMemoryNotificationBridge(NotificationBridge):
    """
    Bridge backed by a Python list.

    Used by tests and by local runs where no device is attached.
    """

    def __init__(
        self,
        notifications: Optional[list[dict[str, Any]]] = None,
        access_granted: bool = True,
    ):
        self._pending: list[dict[str, Any]] = list(notifications or [])
        self.access_granted = access_granted
        self.clear_count = 0

    @property
    def pending(self) -> list[dict[str, Any]]:
        return list(self._pending)

    def post(self, title: str, text: str, package: Optional[str] = None) -> None:
        """Simulate the device posting a notification."""
        notification: dict[str, Any] = {"title": title, "text": text}
        if package:
            notification["package"] = package
        self._pending.append(notification)

    async def has_notification_access(self) -> bool:
        return self.access_granted

    async def get_pending_notifications(self) -> str:
        return json.dumps(self._pending, ensure_ascii=False)

    async def clear_notifications(self) -> None:
        self._pending.clear()
        self.clear_count += 1
