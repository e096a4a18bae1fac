"""Notification store and publisher."""

import asyncio

from bcn.errors import NotFoundError, NotificationUndelivered
from bcn.logging_config import get_logger
from bcn.notifications.hub import Publisher, hub
from bcn.notifications.messages import render_message
from bcn.notifications.models import Notification, NotificationType
from bcn.settings import settings
from bcn.storage.db import Database, db

logger = get_logger(__name__)

NEW_NOTIFICATION_EVENT = "new_notification"


def coerce_type(value: str | NotificationType) -> NotificationType:
    """Map a type string to a NotificationType, defaulting to SYSTEM."""
    try:
        return NotificationType(value)
    except ValueError:
        logger.warning("notification_type_invalid", type=value)
        return NotificationType.SYSTEM


class NotificationService:
    """Persists notifications and pushes them to live sessions.

    A notification is successful once stored. Live delivery runs as a
    background task so a slow socket never holds up the caller; missing
    subscribers, transport errors and timeouts are logged and dropped.
    """

    def __init__(
        self,
        database: Database | None = None,
        publisher: Publisher | None = None,
        publish_timeout: float | None = None,
    ):
        self.db = database or db
        self.publisher = publisher or hub
        self.publish_timeout = publish_timeout or settings.publish_timeout_seconds
        self.logger = get_logger(__name__)
        # Strong references keep in-flight deliveries from being collected
        self._deliveries: set[asyncio.Task] = set()

    async def notify(
        self,
        user_id: int,
        template_key: str,
        notification_type: str | NotificationType,
        message: str | None = None,
        **context,
    ) -> Notification:
        """Create a notification and publish it to the user's group.

        Args:
            user_id: Target user
            template_key: Key in the per-type message table (e.g. "success")
            notification_type: booking, payment, team or order_status;
                anything else is stored as system
            message: Explicit text, bypasses the message table
            **context: Template values (team_name, amount, member_name)

        Returns:
            The stored notification
        """
        ntype = coerce_type(notification_type)
        text = message or render_message(ntype, template_key, **context)

        with self.db.session() as session:
            notification = Notification(
                user_id=user_id,
                message=text,
                type=ntype.value,
                seen=False,
            )
            session.add(notification)
            session.commit()

        self.logger.info(
            "notification_created",
            notification_id=notification.id,
            user_id=user_id,
            type=ntype.value,
            key=template_key,
        )

        task = asyncio.create_task(self._publish(notification))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)
        return notification

    async def drain(self) -> None:
        """Wait for in-flight live deliveries to finish."""
        if self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)

    async def _publish(self, notification: Notification) -> None:
        group_id = str(notification.user_id)
        try:
            await asyncio.wait_for(
                self.publisher.publish(group_id, NEW_NOTIFICATION_EVENT, notification.to_dict()),
                timeout=self.publish_timeout,
            )
        except NotificationUndelivered as e:
            self.logger.info("notification_undelivered", notification_id=notification.id, reason=str(e))
        except asyncio.TimeoutError:
            self.logger.warning("notification_undelivered", notification_id=notification.id, reason="timeout")
        except Exception as e:
            self.logger.error(
                "notification_publish_error",
                notification_id=notification.id,
                error=str(e),
            )

    def list_notifications(self, user_id: int, limit: int | None = None) -> list[Notification]:
        """Get the most recent notifications for a user, newest first."""
        with self.db.session() as session:
            return (
                session.query(Notification)
                .filter(Notification.user_id == user_id)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(limit or settings.notification_list_limit)
                .all()
            )

    def unread_count(self, user_id: int) -> int:
        with self.db.session() as session:
            return session.query(Notification).filter(
                Notification.user_id == user_id,
                Notification.seen == False,  # noqa: E712
            ).count()

    def mark_read(self, notification_id: int, user_id: int) -> Notification:
        """Mark one of the user's notifications as seen.

        Raises:
            NotFoundError: If the notification does not exist or belongs to someone else
        """
        with self.db.session() as session:
            notification = session.query(Notification).filter(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            ).first()

            if not notification:
                raise NotFoundError("Notification not found")

            notification.seen = True
            session.commit()

            return notification

    def mark_all_read(self, user_id: int) -> int:
        """Mark every unseen notification of the user as seen.

        Returns:
            Number of notifications updated
        """
        with self.db.session() as session:
            updated = session.query(Notification).filter(
                Notification.user_id == user_id,
                Notification.seen == False,  # noqa: E712
            ).update({Notification.seen: True}, synchronize_session=False)
            session.commit()

        self.logger.info("notifications_marked_read", user_id=user_id, count=updated)
        return updated


# Singleton instance
notification_service = NotificationService()


def get_notification_service() -> NotificationService:
    """FastAPI dependency returning the notification service."""
    return notification_service
