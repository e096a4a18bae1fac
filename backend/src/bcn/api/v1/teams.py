"""Team accounts API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field

from bcn.api.rate_limit import invitation_limit, limiter
from bcn.auth.middleware import require_auth
from bcn.auth.models import UserAccount
from bcn.logging_config import get_logger
from bcn.teams.models import Team, TeamMember
from bcn.teams.service import TeamService, get_team_service

router = APIRouter(prefix="/teams", tags=["teams"])
logger = get_logger(__name__)


# ─── Request/Response Models ─────────────────────────────────────────────────

class CreateTeamRequest(BaseModel):
    """Request to create a new team."""
    name: str = Field(..., min_length=1, max_length=255)


class InviteMemberRequest(BaseModel):
    """Request to invite a team member."""
    email: EmailStr
    name: str | None = Field(default=None, max_length=255)


class InvitationResponseRequest(BaseModel):
    """Accept or decline an invitation received by email.

    The email is optional and, when sent, must be the signed-in user's.
    """
    email: EmailStr | None = None


class TeamMemberResponse(BaseModel):
    """Team member information."""
    user_id: int
    email: str
    name: str | None
    role: str
    invitation_status: str
    created_at: datetime | None


class TeamResponse(BaseModel):
    """Team information response."""
    id: int
    name: str
    owner_id: int
    owner_email: str | None
    is_owner: bool
    members: list[TeamMemberResponse]
    created_at: datetime | None


class InviteResponse(BaseModel):
    team_id: int
    email: str
    user_id: int | None
    email_sent: bool
    message: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def _member_response(member: TeamMember) -> TeamMemberResponse:
    return TeamMemberResponse(
        user_id=member.user_id,
        email=member.user.email,
        name=member.user.name,
        role=member.role.value,
        invitation_status=member.invitation_status.value,
        created_at=member.created_at,
    )


def _team_response(team: Team, user_id: int) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        owner_id=team.owner_id,
        owner_email=team.owner.email if team.owner else None,
        is_owner=team.owner_id == user_id,
        members=[_member_response(m) for m in team.members],
        created_at=team.created_at,
    )


def _invitee_email(current_user: UserAccount, body: InvitationResponseRequest | None) -> str:
    """Users answer only their own invitations."""
    if body is not None and body.email and body.email.lower() != current_user.email.lower():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This invitation was sent to a different email address",
        )
    return current_user.email


# ─── Endpoints ───────────────────────────────────────────────────────────────

@router.post("", response_model=TeamResponse, status_code=201)
async def create_team(
    request: CreateTeamRequest,
    current_user: UserAccount = Depends(require_auth),
    teams: TeamService = Depends(get_team_service),
):
    """Create a new team.

    The current user becomes the team owner.
    """
    team = await teams.create_team(current_user.id, request.name)
    return _team_response(team, current_user.id)


@router.get("/my-team", response_model=TeamResponse)
async def get_my_team(
    current_user: UserAccount = Depends(require_auth),
    teams: TeamService = Depends(get_team_service),
):
    """Get the team the current user belongs to."""
    team = teams.get_my_team(current_user.id)
    return _team_response(team, current_user.id)


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: int,
    current_user: UserAccount = Depends(require_auth),
    teams: TeamService = Depends(get_team_service),
):
    """Get team details.

    User must be a member of the team.
    """
    team = teams.get_team(team_id, current_user.id)
    return _team_response(team, current_user.id)


@router.post("/{team_id}/invite", response_model=InviteResponse)
async def invite_member(
    team_id: int,
    request: InviteMemberRequest,
    current_user: UserAccount = Depends(require_auth),
    teams: TeamService = Depends(get_team_service),
):
    """Invite a user to the team by email.

    Only the owner and admins can invite.
    """
    result = await teams.invite(team_id, current_user.id, request.email, request.name)
    return InviteResponse(
        team_id=result.team_id,
        email=result.email,
        user_id=result.member.user_id if result.member else None,
        email_sent=result.email_sent,
        message=result.message,
    )


@router.post("/{team_id}/accept-invitation", response_model=MessageResponse)
@limiter.limit(invitation_limit)
async def accept_invitation(
    request: Request,
    team_id: int,
    body: InvitationResponseRequest | None = None,
    current_user: UserAccount = Depends(require_auth),
    teams: TeamService = Depends(get_team_service),
):
    """Accept an invitation from the emailed link."""
    await teams.accept_invitation(team_id, _invitee_email(current_user, body))
    return MessageResponse(message="Invitation accepted successfully")


@router.post("/{team_id}/reject-invitation", response_model=MessageResponse)
@limiter.limit(invitation_limit)
async def reject_invitation(
    request: Request,
    team_id: int,
    body: InvitationResponseRequest | None = None,
    current_user: UserAccount = Depends(require_auth),
    teams: TeamService = Depends(get_team_service),
):
    """Decline an invitation from the emailed link."""
    await teams.reject_invitation(team_id, _invitee_email(current_user, body))
    return MessageResponse(message="Invitation declined")


@router.delete("/{team_id}/members/{user_id}", response_model=TeamResponse)
async def remove_member(
    team_id: int,
    user_id: int,
    current_user: UserAccount = Depends(require_auth),
    teams: TeamService = Depends(get_team_service),
):
    """Remove a member from the team.

    Only the owner and admins can remove members; the owner cannot be removed.
    """
    team = await teams.remove_member(team_id, current_user.id, user_id)
    return _team_response(team, current_user.id)


@router.delete("/{team_id}", response_model=MessageResponse)
async def delete_team(
    team_id: int,
    current_user: UserAccount = Depends(require_auth),
    teams: TeamService = Depends(get_team_service),
):
    """Delete the team. Owner only."""
    await teams.delete_team(team_id, current_user.id)
    return MessageResponse(message="Team deleted successfully")
