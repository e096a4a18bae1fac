"""Fixed per-type notification message table."""

from bcn.notifications.models import NotificationType

MESSAGE_TEMPLATES: dict[NotificationType, dict[str, str]] = {
    NotificationType.BOOKING: {
        "created": "New delivery booking has been created",
        "confirmed": "Your delivery booking has been confirmed",
        "cancelled": "Your delivery booking has been cancelled",
        "completed": "Your delivery has been completed",
    },
    NotificationType.PAYMENT: {
        "success": "Payment of ${amount} has been processed successfully",
        "failed": "Payment of ${amount} has failed",
        "pending": "Payment of ${amount} is pending",
        "delegated": "Your card was used by {member_name} to pay ${amount}",
    },
    NotificationType.TEAM: {
        "created": 'You have been added to team "{team_name}"',
        "invited": 'You have been invited to join team "{team_name}"',
        "member_added": 'New member has been added to team "{team_name}"',
        "member_removed": 'A member has been removed from team "{team_name}"',
        "removed": 'You have been removed from team "{team_name}"',
        "invitation_declined": 'An invitation to team "{team_name}" was declined',
        "updated": 'Team "{team_name}" has been updated',
        "deleted": 'Team "{team_name}" has been deleted',
    },
    NotificationType.ORDER_STATUS: {
        "processing": "Your order is being processed",
        "in_transit": "Your order is in transit",
        "delivered": "Your order has been delivered",
        "cancelled": "Your order has been cancelled",
    },
}

FALLBACK_MESSAGES: dict[NotificationType, str] = {
    NotificationType.BOOKING: "Booking status updated",
    NotificationType.PAYMENT: "Payment status updated",
    NotificationType.TEAM: "Team status updated",
    NotificationType.ORDER_STATUS: "Order status updated",
    NotificationType.SYSTEM: "New notification",
}

# Used when a template placeholder is not supplied by the caller
DEFAULT_CONTEXT = {
    "team_name": "your team",
    "amount": "0.00",
    "member_name": "a teammate",
}


def format_amount(amount_cents: int) -> str:
    """Render minor units as a dollar figure, e.g. 1250 -> '12.50'."""
    return f"{amount_cents / 100:.2f}"


def render_message(notification_type: NotificationType, template_key: str, **context) -> str:
    """Pick and fill the message for a type/key pair.

    Unknown keys fall back to the generic "<domain> status updated" text.
    """
    template = MESSAGE_TEMPLATES.get(notification_type, {}).get(template_key)
    if template is None:
        return FALLBACK_MESSAGES[notification_type]

    values = {**DEFAULT_CONTEXT, **{k: v for k, v in context.items() if v is not None}}
    return template.format(**values)
