"""User accounts and bearer-token authentication for BCN."""

from bcn.auth.models import InvitationStatus, UserAccount

__all__ = ["InvitationStatus", "UserAccount"]
