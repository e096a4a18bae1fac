"""Team accounts module for BCN.

Enables team collaboration:
- One owner, ordered members with roles (admin, member)
- Email invitations with pending / accepted / rejected status
- Shared payment methods (see bcn.payments.resolver)
"""

from bcn.teams.models import Team, TeamMember, TeamRole
from bcn.teams.service import InvitationResult, TeamService, team_service

__all__ = ["InvitationResult", "Team", "TeamMember", "TeamRole", "TeamService", "team_service"]
