"""User account model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Enum as SQLEnum, ForeignKey, Integer, String

from bcn.storage.db import Base


class InvitationStatus(str, Enum):
    """Status of a user's membership in a team.

    A user with no team has no status at all (NULL).
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class UserAccount(Base):
    """User account for the BCN platform.

    Holds only a back-reference to its team; the team owns the member rows.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)

    # Identity
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)
    external_id = Column(String(255), nullable=True, unique=True)  # identity provider subject

    # Team membership (mirrors the user's row in team_members)
    team_id = Column(
        Integer,
        ForeignKey("teams.id", use_alter=True, name="fk_users_team_id"),
        nullable=True,
        index=True,
    )
    invitation_status = Column(SQLEnum(InvitationStatus), nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)

    # Payment provider customer
    stripe_customer_id = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UserAccount(id={self.id}, email={self.email}, team={self.team_id})>"

    def clear_team(self) -> None:
        """Drop the team back-reference."""
        self.team_id = None
        self.invitation_status = None
        self.is_admin = False
