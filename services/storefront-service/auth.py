"""Authentication utilities."""
from typing import Dict, Optional
from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel
import logging

from config import USER_CREDENTIALS
from monitoring import auth_failures_counter, auth_attempts_counter

logger = logging.getLogger(__name__)

TOKEN_INDEX: Dict[str, Dict[str, str]] = {
    credentials["token"]: credentials for credentials in USER_CREDENTIALS.values()
}


class CurrentUser(BaseModel):
    """Identity of the caller, passed explicitly to cart and admin operations."""
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def verify_token(authorization: Optional[str] = Header(None)) -> str:
    """
    Verify authentication token.

    Args:
        authorization: Authorization header value

    Returns:
        Valid token

    Raises:
        HTTPException: If token is invalid or missing
    """
    # Record authentication attempt
    auth_attempts_counter.add(1, {"type": "bearer_token"})

    if authorization is None:
        auth_failures_counter.add(1, {"reason": "missing_header"})
        logger.warning("Authentication failed: Missing authorization header")
        raise HTTPException(status_code=401, detail="Missing authorization header")

    # Extract token (Bearer <token>)
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        auth_failures_counter.add(1, {"reason": "invalid_format"})
        logger.warning("Authentication failed: Invalid authorization header format", extra={
            "auth_header": authorization[:20] + "..." if len(authorization) > 20 else authorization
        })
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = parts[1]
    if token not in TOKEN_INDEX:
        auth_failures_counter.add(1, {"reason": "invalid_token"})
        logger.warning("Authentication failed: Invalid token", extra={
            "token_prefix": token[:8] + "..." if len(token) > 8 else token
        })
        raise HTTPException(status_code=401, detail="Invalid token")

    return token


def user_from_token(token: str) -> CurrentUser:
    """
    Resolve the identity behind a verified token.

    Args:
        token: Authentication token

    Returns:
        Caller identity and role
    """
    credentials = TOKEN_INDEX[token]
    return CurrentUser(user_id=credentials["user_id"], role=credentials["role"])


def get_current_user(token: str = Depends(verify_token)) -> CurrentUser:
    """Dependency returning the authenticated caller."""
    user = user_from_token(token)
    logger.debug("Authentication successful", extra={
        "user_id": user.user_id,
        "role": user.role
    })
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Dependency rejecting callers without the admin role."""
    if not user.is_admin:
        auth_failures_counter.add(1, {"reason": "forbidden"})
        logger.warning("Authorization failed: Admin role required", extra={
            "user_id": user.user_id,
            "role": user.role
        })
        raise HTTPException(status_code=403, detail="Admin role required")
    return user
