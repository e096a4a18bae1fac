"""Email service for BCN using SendGrid."""

import html
from typing import Optional
from urllib.parse import urlencode

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from bcn.logging_config import get_logger
from bcn.settings import settings

logger = get_logger(__name__)


class EmailService:
    """Email service using SendGrid API.

    Handles transactional emails:
    - Team invitations

    Sending never raises; failures are logged and reported as ``False``.
    """

    SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"

    def __init__(self, api_key: str | None = None, timeout: float = 30.0):
        """Initialize email service."""
        self.api_key = api_key or settings.sendgrid_api_key
        self.from_email = settings.sendgrid_from_email
        self.from_name = settings.sendgrid_from_name
        self.timeout = timeout
        self.enabled = bool(self.api_key)

        if not self.enabled:
            logger.warning("email_service_disabled", reason="SENDGRID_API_KEY not set")

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """Send an email via SendGrid API.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body
            text_content: Plain text body (optional)

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.warning("email_not_sent", reason="service_disabled", to=to_email)
            return False

        payload = {
            "personalizations": [
                {
                    "to": [{"email": to_email}],
                    "subject": subject,
                }
            ],
            "from": {
                "email": self.from_email,
                "name": self.from_name,
            },
            "reply_to": {"email": self.from_email, "name": self.from_name},
            "content": [
                {"type": "text/html", "value": html_content},
            ],
        }

        if text_content:
            payload["content"].insert(0, {"type": "text/plain", "value": text_content})

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._post(payload, headers)
        except httpx.HTTPError as e:
            logger.error("email_send_error", to=to_email, error=str(e))
            return False

        if response.status_code in (200, 201, 202):
            logger.info("email_sent", to=to_email, subject=subject)
            return True

        logger.error(
            "email_send_failed",
            to=to_email,
            status=response.status_code,
            body=response.text[:200],
        )
        return False

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, payload: dict, headers: dict[str, str]) -> httpx.Response:
        """POST to SendGrid, retrying connection-level failures."""
        async with httpx.AsyncClient() as client:
            return await client.post(
                self.SENDGRID_API_URL,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )

    def invitation_link(self, team_id: int, email: str) -> str:
        """Build the link the invitee follows to accept."""
        base_url = settings.frontend_url or settings.allowed_origins.split(",")[0].strip()
        query = urlencode({"teamId": team_id, "email": email})
        return f"{base_url}/team-invitation?{query}"

    async def send_team_invitation(
        self,
        to_email: str,
        name: Optional[str],
        team_name: str,
        inviter_name: str,
        invitation_link: str,
    ) -> bool:
        """Send a team invitation.

        Args:
            to_email: Invitee email address
            name: Invitee name (optional)
            team_name: Name of the inviting team
            inviter_name: Who sent the invitation
            invitation_link: Link to accept the invitation

        Returns:
            True if sent successfully
        """
        greeting_name = name or to_email
        subject = f"Invitation to join {team_name} team"

        # Team and person names are user input
        safe_greeting = html.escape(greeting_name)
        safe_inviter = html.escape(inviter_name)
        safe_team = html.escape(team_name)
        safe_link = html.escape(invitation_link, quote=True)

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .button {{ display: inline-block; background-color: #4CAF50; color: white; padding: 12px 20px; text-decoration: none; border-radius: 4px; font-weight: bold; }}
                .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #eee; font-size: 12px; color: #666; }}
            </style>
        </head>
        <body>
            <div class="container">
                <h2>Team Invitation</h2>

                <p>Hello {safe_greeting},</p>

                <p>{safe_inviter} has invited you to join the {safe_team} team.</p>

                <p>To accept this invitation and gain access to the team's resources, please click the button below:</p>

                <p style="text-align: center; margin: 30px 0;">
                    <a href="{safe_link}" class="button">Accept Invitation</a>
                </p>

                <p>If you don't have an account yet, you'll be guided through the sign-up process.</p>

                <p>If you did not expect this invitation, you can safely ignore this email.</p>

                <div class="footer">
                    <p>Thank you,<br>The BCN App Team</p>
                </div>
            </div>
        </body>
        </html>
        """

        text_content = f"""
Hello {greeting_name},

{inviter_name} has invited you to join the {team_name} team.

To accept this invitation, please visit:
{invitation_link}

If you did not expect this invitation, you can safely ignore this email.

---
The BCN App Team
        """

        return await self.send_email(to_email, subject, html_content, text_content)


# Singleton instance
email_service = EmailService()


def get_email_service() -> EmailService:
    """FastAPI dependency returning the email service."""
    return email_service
