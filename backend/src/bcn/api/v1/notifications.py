"""Notifications API endpoints and the live notification socket."""

from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from bcn.auth.middleware import require_auth, require_ws_user
from bcn.auth.models import UserAccount
from bcn.logging_config import get_logger
from bcn.notifications.hub import WebSocketHub, get_hub
from bcn.notifications.service import NotificationService, get_notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = get_logger(__name__)


@router.get("")
async def list_notifications(
    limit: int = Query(default=50, ge=1, le=50),
    current_user: UserAccount = Depends(require_auth),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    """Most recent notifications, newest first."""
    items = notifications.list_notifications(current_user.id, limit=limit)
    return {"notifications": [n.to_dict() for n in items]}


@router.get("/unread-count")
async def unread_count(
    current_user: UserAccount = Depends(require_auth),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, int]:
    return {"count": notifications.unread_count(current_user.id)}


# Registered before /{notification_id}/read so "read-all" is not taken for an id
@router.patch("/read-all")
async def mark_all_read(
    current_user: UserAccount = Depends(require_auth),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    updated = notifications.mark_all_read(current_user.id)
    return {"success": True, "updated": updated}


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    current_user: UserAccount = Depends(require_auth),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    notification = notifications.mark_read(notification_id, current_user.id)
    return {"notification": notification.to_dict()}


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    user: UserAccount = Depends(require_ws_user),
    hub: WebSocketHub = Depends(get_hub),
):
    """Live feed of the current user's notifications.

    Every open session of a user joins the same group and receives
    ``{"event": "new_notification", "data": {...}}`` frames.
    """
    group_id = str(user.id)
    await websocket.accept()
    hub.subscribe(group_id, websocket)

    try:
        while True:
            # Client frames are ignored; reading keeps the disconnect observable
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("notification_socket_closed", user_id=user.id)
    finally:
        hub.unsubscribe(group_id, websocket)
