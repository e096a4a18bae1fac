"""Team database models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from bcn.auth.models import InvitationStatus
from bcn.storage.db import Base


class TeamRole(str, Enum):
    """Team member roles."""
    ADMIN = "admin"      # Manages members; the owner is always an admin
    MEMBER = "member"    # Books deliveries, may pay with the team's cards


class Team(Base):
    """A named group of users with one owner.

    The owner is always present in ``members`` as an accepted admin.
    """
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)

    # Owner (always the creator)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    owner = relationship("UserAccount", foreign_keys=[owner_id], lazy="selectin")
    members = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="TeamMember.id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Team(id={self.id}, name={self.name}, members={len(self.members)})>"

    def find_member(self, user_id: int) -> "TeamMember | None":
        """Return the member row for a user, if any."""
        return next((m for m in self.members if m.user_id == user_id), None)

    def is_manager(self, user_id: int) -> bool:
        """True for the owner and admin members."""
        if self.owner_id == user_id:
            return True
        member = self.find_member(user_id)
        return member is not None and member.role == TeamRole.ADMIN

    def has_joined(self, user_id: int) -> bool:
        """True once the user's invitation has been accepted."""
        member = self.find_member(user_id)
        return member is not None and member.invitation_status == InvitationStatus.ACCEPTED

    @property
    def joined_members(self) -> list["TeamMember"]:
        """Accepted member rows in stored order. Pending and declined invitees are left out."""
        return [m for m in self.members if m.invitation_status == InvitationStatus.ACCEPTED]


class TeamMember(Base):
    """Team membership record.

    Links a user to a team with a role and invitation status. A user has at
    most one row across all teams.
    """
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    role = Column(SQLEnum(TeamRole), default=TeamRole.MEMBER, nullable=False)
    invitation_status = Column(SQLEnum(InvitationStatus), default=InvitationStatus.PENDING, nullable=False)

    # Invitation
    invited_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    responded_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    team = relationship("Team", back_populates="members")
    user = relationship("UserAccount", foreign_keys=[user_id], lazy="selectin")

    def __repr__(self):
        return f"<TeamMember(team={self.team_id}, user={self.user_id}, role={self.role})>"
