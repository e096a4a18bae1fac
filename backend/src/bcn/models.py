"""Import every model module so the metadata knows all tables."""

from bcn.auth.models import InvitationStatus, UserAccount
from bcn.bookings.models import Booking, OrderStatus, PaymentStatus
from bcn.notifications.models import Notification, NotificationType
from bcn.storage.models import Base
from bcn.teams.models import Team, TeamMember, TeamRole

__all__ = [
    "Base",
    "Booking",
    "InvitationStatus",
    "Notification",
    "NotificationType",
    "OrderStatus",
    "PaymentStatus",
    "Team",
    "TeamMember",
    "TeamRole",
    "UserAccount",
]
