"""Simple API token authentication."""

from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..utils.logging import get_structured_logger
from .types import APIError

logger = get_structured_logger(__name__)

# API token security
security = HTTPBearer(auto_error=False)


class AuthError(APIError):
    """Authentication related errors."""

    pass


def setup_auth(app, settings) -> None:
    """Store the accepted API tokens on the application."""
    app.state.api_tokens = list(settings.api.api_tokens)


def verify_api_token(token: Optional[str], valid_tokens: list[str]) -> bool:
    """Verify API token."""
    if not token:
        return False

    result = token in valid_tokens
    logger.debug(
        "Token verification result",
        token=token[:8] + "..." if len(token) > 8 else token,
        token_valid=result,
    )
    return result


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, Any]:
    """Resolve the API caller from the bearer token."""
    valid_tokens = getattr(request.app.state, "api_tokens", [])

    try:
        if credentials is None:
            raise AuthError("Not authenticated")
        if not verify_api_token(credentials.credentials, valid_tokens):
            raise AuthError("Invalid API token")
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
            if credentials is not None
            else str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "id": "api-user",
        "username": "api",
        "permissions": ["read", "write"],
    }


def require_permission(permission: str):
    """Dependency factory requiring a specific permission."""

    def permission_checker(
        current_user: dict[str, Any] = Depends(get_current_user)
    ) -> dict[str, Any]:
        if permission not in current_user.get("permissions", []):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: requires '{permission}'",
            )
        return current_user

    return permission_checker
