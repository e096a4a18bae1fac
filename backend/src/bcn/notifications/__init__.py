"""Notifications for BCN.

Durable, user-addressed records of state changes, pushed to the user's live
sessions when any are connected:
- Booking, payment, team and order status messages
- Listing and read tracking
- WebSocket subscriber hub
"""

from bcn.notifications.hub import WebSocketHub, hub
from bcn.notifications.models import Notification, NotificationType
from bcn.notifications.service import NotificationService, notification_service

__all__ = [
    "Notification",
    "NotificationService",
    "NotificationType",
    "WebSocketHub",
    "hub",
    "notification_service",
]
