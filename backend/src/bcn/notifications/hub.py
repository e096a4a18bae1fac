"""In-process subscriber hub for live notification delivery.

Each user's open WebSocket sessions form one subscriber group keyed by the
user id. Publishing gives no delivery acknowledgment; it only reports how
many sockets accepted the frame.
"""

from collections import defaultdict
from typing import Any, Protocol

from fastapi import WebSocket

from bcn.errors import NotificationUndelivered
from bcn.logging_config import get_logger

logger = get_logger(__name__)


class Publisher(Protocol):
    """Anything that can push an event to a subscriber group."""

    async def publish(self, group_id: str, event: str, payload: dict[str, Any]) -> int:
        ...


class WebSocketHub:
    """Maps subscriber groups to their live WebSocket sessions."""

    def __init__(self):
        self._groups: dict[str, set[WebSocket]] = defaultdict(set)

    def subscribe(self, group_id: str, websocket: WebSocket) -> None:
        """Attach a session to a group for the session's lifetime."""
        self._groups[group_id].add(websocket)
        logger.info("subscriber_attached", group=group_id, sessions=len(self._groups[group_id]))

    def unsubscribe(self, group_id: str, websocket: WebSocket) -> None:
        """Detach a session; empty groups are dropped."""
        sockets = self._groups.get(group_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._groups[group_id]
        logger.info("subscriber_detached", group=group_id)

    def subscriber_count(self, group_id: str) -> int:
        return len(self._groups.get(group_id, ()))

    async def publish(self, group_id: str, event: str, payload: dict[str, Any]) -> int:
        """Send an event to every session in the group.

        Returns:
            Number of sessions the frame was written to

        Raises:
            NotificationUndelivered: If nobody is listening or every send failed
        """
        sockets = list(self._groups.get(group_id, ()))
        if not sockets:
            raise NotificationUndelivered(f"No live sessions for group {group_id}")

        delivered = 0
        for websocket in sockets:
            try:
                await websocket.send_json({"event": event, "data": payload})
                delivered += 1
            except Exception as e:
                # Dead connection; forget it so later publishes skip it
                logger.warning("subscriber_send_failed", group=group_id, error=str(e))
                self.unsubscribe(group_id, websocket)

        if not delivered:
            raise NotificationUndelivered(f"All sessions in group {group_id} failed")

        return delivered


# Process-wide hub, passed explicitly to the services that publish
hub = WebSocketHub()


def get_hub() -> WebSocketHub:
    """FastAPI dependency returning the process-wide hub."""
    return hub
