"""Tests for the notification store, message table and hub."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from bcn.errors import NotFoundError, NotificationUndelivered
from bcn.notifications.hub import WebSocketHub
from bcn.notifications.messages import format_amount, render_message
from bcn.notifications.models import NotificationType
from bcn.notifications.service import NEW_NOTIFICATION_EVENT, coerce_type

pytestmark = pytest.mark.unit


class TestMessages:
    """Per-type message table."""

    def test_known_key(self):
        message = render_message(NotificationType.TEAM, "invited", team_name="Crew")
        assert message == 'You have been invited to join team "Crew"'

    def test_unknown_key_falls_back_to_domain_text(self):
        assert render_message(NotificationType.BOOKING, "teleported") == "Booking status updated"
        assert render_message(NotificationType.ORDER_STATUS, "lost") == "Order status updated"

    def test_missing_context_uses_defaults(self):
        assert render_message(NotificationType.TEAM, "removed") == 'You have been removed from team "your team"'

    def test_format_amount(self):
        assert format_amount(1250) == "12.50"
        assert format_amount(5) == "0.05"

    def test_coerce_type(self):
        assert coerce_type("payment") == NotificationType.PAYMENT
        assert coerce_type("carrier_pigeon") == NotificationType.SYSTEM


@pytest.mark.asyncio
async def test_notify_persists_and_publishes(notification_service, publisher, make_user):
    user = make_user()

    notification = await notification_service.notify(user.id, "success", "payment", amount="10.00")
    await notification_service.drain()

    assert notification.id is not None
    assert notification.seen is False
    assert notification.message == "Payment of $10.00 has been processed successfully"
    publisher.publish.assert_awaited_once()
    group_id, event, payload = publisher.publish.await_args.args
    assert group_id == str(user.id)
    assert event == NEW_NOTIFICATION_EVENT
    assert payload["id"] == notification.id
    assert payload["message"] == notification.message


@pytest.mark.asyncio
async def test_unknown_type_still_persists_as_system(notification_service, make_user, notifications_for):
    user = make_user()

    notification = await notification_service.notify(user.id, "anything", "carrier_pigeon")

    assert notification.type == NotificationType.SYSTEM.value
    assert notification.message == "New notification"
    assert [n.id for n in notifications_for(user.id)] == [notification.id]


@pytest.mark.asyncio
async def test_explicit_message_overrides_table(notification_service, make_user):
    user = make_user()

    notification = await notification_service.notify(user.id, "created", "team", message="Welcome aboard")

    assert notification.message == "Welcome aboard"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure",
    [NotificationUndelivered("no sessions"), ConnectionResetError("socket closed"), asyncio.TimeoutError()],
)
async def test_publish_failure_is_swallowed(notification_service, publisher, make_user, notifications_for, failure):
    user = make_user()
    publisher.publish.side_effect = failure

    notification = await notification_service.notify(user.id, "created", "booking")
    await notification_service.drain()

    assert [n.id for n in notifications_for(user.id)] == [notification.id]


@pytest.mark.asyncio
async def test_slow_publisher_times_out(database, make_user, notifications_for):
    from bcn.notifications.service import NotificationService

    async def hang(*args):
        await asyncio.sleep(10)

    slow = MagicMock()
    slow.publish = AsyncMock(side_effect=hang)
    service = NotificationService(database=database, publisher=slow, publish_timeout=0.05)
    user = make_user()

    notification = await service.notify(user.id, "created", "booking")
    await service.drain()

    assert notifications_for(user.id)[0].id == notification.id
    slow.publish.assert_awaited_once()


@pytest.mark.asyncio
async def test_slow_publisher_does_not_delay_notify(database, make_user, notifications_for):
    from bcn.notifications.service import NotificationService

    release = asyncio.Event()

    async def slow_publish(*args):
        await release.wait()
        return 1

    slow = MagicMock()
    slow.publish = AsyncMock(side_effect=slow_publish)
    service = NotificationService(database=database, publisher=slow, publish_timeout=5.0)
    user = make_user()

    notification = await asyncio.wait_for(service.notify(user.id, "created", "booking"), timeout=0.5)

    assert notifications_for(user.id)[0].id == notification.id
    release.set()
    await service.drain()
    slow.publish.assert_awaited_once()


@pytest.mark.asyncio
async def test_list_is_newest_first_and_limited(notification_service, make_user):
    user = make_user()
    other = make_user()
    for key in ("created", "confirmed", "cancelled", "completed"):
        await notification_service.notify(user.id, key, "booking")
    await notification_service.notify(other.id, "created", "booking")

    items = notification_service.list_notifications(user.id, limit=3)

    assert [n.message for n in items] == [
        "Your delivery has been completed",
        "Your delivery booking has been cancelled",
        "Your delivery booking has been confirmed",
    ]
    assert all(n.user_id == user.id for n in items)
    assert len(notification_service.list_notifications(user.id)) == 4


@pytest.mark.asyncio
async def test_mark_read(notification_service, make_user):
    user = make_user()
    intruder = make_user()
    notification = await notification_service.notify(user.id, "created", "booking")

    with pytest.raises(NotFoundError):
        notification_service.mark_read(notification.id, intruder.id)
    with pytest.raises(NotFoundError):
        notification_service.mark_read(9999, user.id)

    marked = notification_service.mark_read(notification.id, user.id)

    assert marked.seen is True
    assert notification_service.unread_count(user.id) == 0


@pytest.mark.asyncio
async def test_mark_all_read(notification_service, make_user):
    user = make_user()
    other = make_user()
    for _ in range(3):
        await notification_service.notify(user.id, "created", "booking")
    await notification_service.notify(other.id, "created", "booking")

    assert notification_service.unread_count(user.id) == 3
    assert notification_service.mark_all_read(user.id) == 3
    assert notification_service.mark_all_read(user.id) == 0
    assert notification_service.unread_count(other.id) == 1


class TestWebSocketHub:
    """Subscriber group fan-out."""

    @pytest.mark.asyncio
    async def test_publish_to_empty_group_is_undelivered(self):
        hub = WebSocketHub()

        with pytest.raises(NotificationUndelivered):
            await hub.publish("1", "new_notification", {"id": 1})

    @pytest.mark.asyncio
    async def test_publish_reaches_every_session(self):
        hub = WebSocketHub()
        first, second = AsyncMock(), AsyncMock()
        hub.subscribe("7", first)
        hub.subscribe("7", second)
        hub.subscribe("8", AsyncMock())

        delivered = await hub.publish("7", "new_notification", {"id": 1})

        assert delivered == 2
        first.send_json.assert_awaited_once_with({"event": "new_notification", "data": {"id": 1}})
        second.send_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dead_session_is_dropped(self):
        hub = WebSocketHub()
        alive, dead = AsyncMock(), AsyncMock()
        dead.send_json.side_effect = RuntimeError("closed")
        hub.subscribe("7", alive)
        hub.subscribe("7", dead)

        assert await hub.publish("7", "new_notification", {}) == 1
        assert hub.subscriber_count("7") == 1

    @pytest.mark.asyncio
    async def test_all_sessions_dead_is_undelivered(self):
        hub = WebSocketHub()
        dead = AsyncMock()
        dead.send_json.side_effect = RuntimeError("closed")
        hub.subscribe("7", dead)

        with pytest.raises(NotificationUndelivered):
            await hub.publish("7", "new_notification", {})
        assert hub.subscriber_count("7") == 0

    def test_unsubscribe_drops_empty_group(self):
        hub = WebSocketHub()
        session = AsyncMock()
        hub.subscribe("7", session)

        hub.unsubscribe("7", session)
        hub.unsubscribe("7", session)

        assert hub.subscriber_count("7") == 0
