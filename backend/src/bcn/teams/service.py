"""Team service: membership state machine.

Every operation that touches both a team and a user commits both in one
transaction. Notifications and invitation emails go out only after commit
and never undo it.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from bcn.auth.models import InvitationStatus, UserAccount
from bcn.email.service import EmailService, email_service
from bcn.errors import (
    ConflictError,
    DeliveryFailedError,
    ForbiddenError,
    InvalidOperationError,
    InvalidStateError,
    NotFoundError,
)
from bcn.logging_config import get_logger
from bcn.notifications.models import NotificationType
from bcn.notifications.service import NotificationService, notification_service
from bcn.storage.db import Database, db
from bcn.teams.models import Team, TeamMember, TeamRole

logger = get_logger(__name__)


@dataclass
class InvitationResult:
    """Outcome of an invite.

    ``member`` is None when the email has no account yet; in that case only
    the email went out.
    """
    team_id: int
    email: str
    member: TeamMember | None
    email_sent: bool

    @property
    def message(self) -> str:
        if self.member is None:
            return "Invitation sent successfully"
        if self.email_sent:
            return "User added to team and invitation sent"
        return "User added to team but invitation email failed to send"


def _load_team(session: Session, team_id: int, lock: bool = False) -> Team | None:
    query = session.query(Team).filter(Team.id == team_id)
    if lock:
        # Serializes concurrent membership changes on the same team
        query = query.with_for_update()
    return query.first()


def _find_user_by_email(session: Session, email: str) -> UserAccount | None:
    return session.query(UserAccount).filter(
        func.lower(UserAccount.email) == email.strip().lower()
    ).first()


class TeamService:
    """Service for managing teams and invitations."""

    def __init__(
        self,
        database: Database | None = None,
        notifications: NotificationService | None = None,
        email: EmailService | None = None,
    ):
        self.db = database or db
        self.notifications = notifications or notification_service
        self.email = email or email_service
        self.logger = get_logger(__name__)

    async def create_team(self, requester_id: int, name: str) -> Team:
        """Create a new team owned by the requester.

        Raises:
            NotFoundError: If the requester does not exist
            ConflictError: If the requester already belongs to a team
        """
        with self.db.session() as session:
            owner = session.query(UserAccount).filter(
                UserAccount.id == requester_id
            ).with_for_update().first()

            if not owner:
                raise NotFoundError("User not found")

            if owner.team_id is not None:
                raise ConflictError("You already belong to a team")

            team = Team(name=name, owner=owner)
            team.members.append(
                TeamMember(
                    user=owner,
                    role=TeamRole.ADMIN,
                    invitation_status=InvitationStatus.ACCEPTED,
                    responded_at=datetime.utcnow(),
                )
            )
            session.add(team)
            session.flush()  # Get team ID

            owner.team_id = team.id
            owner.invitation_status = InvitationStatus.ACCEPTED
            owner.is_admin = True
            session.commit()

        self.logger.info("team_created", team_id=team.id, owner_id=requester_id, name=name)

        await self.notifications.notify(requester_id, "created", NotificationType.TEAM, team_name=team.name)
        return team

    def get_team(self, team_id: int, requester_id: int) -> Team:
        """Get a team the requester is listed in.

        Raises:
            NotFoundError: If the team does not exist
            ForbiddenError: If the requester is not in the member list
        """
        with self.db.session() as session:
            team = _load_team(session, team_id)
            if not team:
                raise NotFoundError("Team not found")

            if team.find_member(requester_id) is None:
                raise ForbiddenError("Not authorized to access this team")

            return team

    def get_my_team(self, requester_id: int) -> Team:
        """Get the requester's team, repairing a stale back-reference first."""
        self.repair_membership(requester_id)

        with self.db.session() as session:
            user = session.get(UserAccount, requester_id)
            if not user or user.team_id is None:
                raise NotFoundError("You do not belong to any team")

            team = _load_team(session, user.team_id)
            if not team:
                raise NotFoundError("Team not found")

            return team

    async def invite(
        self,
        team_id: int,
        requester_id: int,
        email: str,
        name: str | None = None,
    ) -> InvitationResult:
        """Invite someone to the team by email.

        An existing account gets a pending member row right away; an unknown
        email only receives the invitation message.

        Raises:
            NotFoundError: If the team does not exist
            ForbiddenError: If the requester is neither owner nor admin
            ConflictError: If the user is already a member here or elsewhere
            DeliveryFailedError: If no account exists and the email could not be sent
        """
        email = email.strip()
        member = None

        with self.db.session() as session:
            team = _load_team(session, team_id, lock=True)
            if not team:
                raise NotFoundError("Team not found")

            if not team.is_manager(requester_id):
                raise ForbiddenError("Not authorized to invite members")

            requester = session.get(UserAccount, requester_id)
            inviter_name = (requester.name or requester.email) if requester else "A teammate"
            team_name = team.name

            invitee = _find_user_by_email(session, email)
            if invitee:
                existing = team.find_member(invitee.id)
                if existing:
                    raise ConflictError(
                        f"User is already a member with status: {existing.invitation_status.value}"
                    )

                if invitee.team_id is not None:
                    raise ConflictError("User already belongs to another team")

                member = TeamMember(
                    user=invitee,
                    role=TeamRole.MEMBER,
                    invitation_status=InvitationStatus.PENDING,
                    invited_by_id=requester_id,
                )
                team.members.append(member)

                invitee.team_id = team.id
                invitee.invitation_status = InvitationStatus.PENDING
                session.commit()

                self.logger.info("team_member_invited", team_id=team_id, user_id=invitee.id, email=email)

        email_sent = await self.email.send_team_invitation(
            to_email=email,
            name=name,
            team_name=team_name,
            inviter_name=inviter_name,
            invitation_link=self.email.invitation_link(team_id, email),
        )

        if member is None:
            if not email_sent:
                raise DeliveryFailedError("Failed to send invitation email")
            self.logger.info("team_invitation_emailed", team_id=team_id, email=email)
        else:
            if not email_sent:
                self.logger.warning("team_invitation_email_failed", team_id=team_id, user_id=member.user_id)
            await self.notifications.notify(member.user_id, "invited", NotificationType.TEAM, team_name=team_name)

        return InvitationResult(team_id=team_id, email=email, member=member, email_sent=email_sent)

    def _respond(self, session: Session, team_id: int, invitee_email: str, status: InvitationStatus) -> tuple[Team, TeamMember]:
        team = _load_team(session, team_id, lock=True)
        if not team:
            raise NotFoundError("Team not found")

        user = _find_user_by_email(session, invitee_email)
        if not user:
            raise NotFoundError("User not found")

        member = team.find_member(user.id)
        if member is None:
            raise InvalidStateError("No pending invitation found")

        if member.invitation_status != InvitationStatus.PENDING:
            raise InvalidStateError(
                f"Invitation status is {member.invitation_status.value}, not pending"
            )

        member.invitation_status = status
        member.responded_at = datetime.utcnow()
        user.invitation_status = status
        user.team_id = team.id  # Ensure team is set
        session.commit()

        return team, member

    async def accept_invitation(self, team_id: int, invitee_email: str) -> TeamMember:
        """Accept a pending invitation.

        Raises:
            NotFoundError: If the team or user does not exist
            InvalidStateError: If there is no row, or it is not pending
        """
        with self.db.session() as session:
            team, member = self._respond(session, team_id, invitee_email, InvitationStatus.ACCEPTED)

        self.logger.info("team_invitation_accepted", team_id=team_id, user_id=member.user_id)

        await self.notifications.notify(member.user_id, "created", NotificationType.TEAM, team_name=team.name)
        await self.notifications.notify(team.owner_id, "member_added", NotificationType.TEAM, team_name=team.name)
        return member

    async def reject_invitation(self, team_id: int, invitee_email: str) -> TeamMember:
        """Decline a pending invitation.

        The row stays in the team as rejected until an admin removes it.
        """
        with self.db.session() as session:
            team, member = self._respond(session, team_id, invitee_email, InvitationStatus.REJECTED)

        self.logger.info("team_invitation_rejected", team_id=team_id, user_id=member.user_id)

        await self.notifications.notify(
            team.owner_id, "invitation_declined", NotificationType.TEAM, team_name=team.name
        )
        return member

    async def remove_member(self, team_id: int, requester_id: int, target_user_id: int) -> Team:
        """Remove a member from the team.

        Raises:
            NotFoundError: If the team or the member row does not exist
            InvalidOperationError: If the target is the owner, whoever asks
            ForbiddenError: If the requester is neither owner nor admin
        """
        with self.db.session() as session:
            team = _load_team(session, team_id, lock=True)
            if not team:
                raise NotFoundError("Team not found")

            # Can't remove the owner
            if team.owner_id == target_user_id:
                raise InvalidOperationError("Cannot remove the team owner")

            if not team.is_manager(requester_id):
                raise ForbiddenError("Not authorized to remove members")

            member = team.find_member(target_user_id)
            if member is None:
                raise NotFoundError("Member not found in team")

            team.members.remove(member)

            target = session.get(UserAccount, target_user_id)
            if target and target.team_id == team.id:
                target.clear_team()

            session.commit()

        self.logger.info(
            "team_member_removed",
            team_id=team_id,
            user_id=target_user_id,
            removed_by=requester_id,
        )

        await self.notifications.notify(target_user_id, "removed", NotificationType.TEAM, team_name=team.name)
        await self.notifications.notify(team.owner_id, "member_removed", NotificationType.TEAM, team_name=team.name)
        return team

    async def delete_team(self, team_id: int, requester_id: int) -> None:
        """Delete a team and release all its members.

        Raises:
            NotFoundError: If the team does not exist
            ForbiddenError: If the requester is not the owner
        """
        with self.db.session() as session:
            team = _load_team(session, team_id, lock=True)
            if not team:
                raise NotFoundError("Team not found")

            if team.owner_id != requester_id:
                raise ForbiddenError("Not authorized to delete this team")

            team_name = team.name
            member_ids = [m.user_id for m in team.members]

            users = session.query(UserAccount).filter(
                (UserAccount.team_id == team.id) | (UserAccount.id.in_(member_ids))
            ).all()
            for user in users:
                user.clear_team()
            session.flush()  # Release the back-references before the team row goes

            session.delete(team)
            session.commit()

        self.logger.info("team_deleted", team_id=team_id, members=len(member_ids))

        for user_id in member_ids:
            await self.notifications.notify(user_id, "deleted", NotificationType.TEAM, team_name=team_name)

    def repair_membership(self, user_id: int) -> bool:
        """Reconcile a user's back-reference with the member rows.

        Returns:
            True if the user record had to be fixed
        """
        with self.db.session() as session:
            user = session.query(UserAccount).filter(
                UserAccount.id == user_id
            ).with_for_update().first()

            if not user:
                raise NotFoundError("User not found")

            row = session.query(TeamMember).filter(TeamMember.user_id == user_id).first()

            if row is None:
                expected = (None, None, False)
            else:
                expected = (row.team_id, row.invitation_status, row.role == TeamRole.ADMIN)

            actual = (user.team_id, user.invitation_status, bool(user.is_admin))
            if actual == expected:
                return False

            user.team_id, user.invitation_status, user.is_admin = expected
            session.commit()

        self.logger.warning(
            "team_membership_repaired",
            user_id=user_id,
            was_team_id=actual[0],
            team_id=expected[0],
        )
        return True

    def repair_all_memberships(self) -> int:
        """Run ``repair_membership`` for every user.

        Returns:
            Number of users fixed
        """
        with self.db.session() as session:
            user_ids = [row.id for row in session.query(UserAccount.id).all()]

        return sum(1 for user_id in user_ids if self.repair_membership(user_id))


# Singleton instance
team_service = TeamService()


def get_team_service() -> TeamService:
    """FastAPI dependency returning the team service."""
    return team_service
