"""Native notification bridge package."""

from autoledger.services.bridge.interface import (
    InMemoryNotificationBridge,
    NotificationBridge,
)

__all__ = ["InMemoryNotificationBridge", "NotificationBridge"]
