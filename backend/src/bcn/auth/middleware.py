"""Authentication dependencies for FastAPI."""

from fastapi import Depends, HTTPException, Query, Request, WebSocketException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bcn.auth.models import UserAccount
from bcn.auth.tokens import token_service
from bcn.logging_config import get_logger
from bcn.storage.db import Database, get_database

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    database: Database = Depends(get_database),
) -> UserAccount | None:
    """Get current authenticated user.

    Args:
        request: FastAPI request
        credentials: Bearer token
        database: Database holding user accounts

    Returns:
        User account or None if not authenticated
    """
    if not credentials:
        return None

    user = token_service.get_user_from_token(credentials.credentials, database)
    if user:
        request.state.user = user

    return user


def require_auth(user: UserAccount | None = Depends(get_current_user)) -> UserAccount:
    """Require authentication - raises 401 if not authenticated.

    Args:
        user: Current user from get_current_user

    Returns:
        Authenticated user

    Raises:
        HTTPException: 401 if not authenticated
    """
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_ws_user(
    token: str | None = Query(default=None),
    database: Database = Depends(get_database),
) -> UserAccount:
    """Authenticate a WebSocket handshake from its ``token`` query parameter.

    Browsers cannot set headers on WebSocket upgrades.

    Raises:
        WebSocketException: Policy violation close if the token is missing or invalid
    """
    user = token_service.get_user_from_token(token, database) if token else None
    if not user:
        logger.info("websocket_auth_rejected")
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Not authenticated")
    return user
