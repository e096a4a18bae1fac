"""JWT access tokens.

Sign-in itself lives with the identity provider; this module issues and
verifies the bearer tokens the API accepts.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from bcn.auth.models import UserAccount
from bcn.logging_config import get_logger
from bcn.settings import settings
from bcn.storage.db import Database

logger = get_logger(__name__)


class TokenService:
    """Issues and verifies bearer tokens."""

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        expire_hours: int | None = None,
    ):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.expire_hours = expire_hours or settings.jwt_expire_hours
        self.logger = get_logger(__name__)

    def create_access_token(
        self,
        user: UserAccount,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create JWT access token.

        Args:
            user: User account
            expires_delta: Optional expiration time

        Returns:
            JWT token string
        """
        if expires_delta is None:
            expires_delta = timedelta(hours=self.expire_hours)

        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "exp": now + expires_delta,
            "iat": now,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """Verify and decode JWT token.

        Args:
            token: JWT token string

        Returns:
            Token payload or None if invalid
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            self.logger.debug("token_verification_failed", error=str(e))
            return None

    def get_user_from_token(self, token: str, database: Database) -> UserAccount | None:
        """Get user from JWT token.

        Args:
            token: JWT token string
            database: Database to load the user from

        Returns:
            User account or None
        """
        payload = self.verify_token(token)
        if not payload:
            return None

        email = payload.get("email")
        if not email:
            return None

        with database.session() as session:
            return session.query(UserAccount).filter(UserAccount.email == email).first()


# Singleton instance
token_service = TokenService()
