"""Authentication API router."""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
import logging

from auth import CurrentUser, get_current_user
from config import USER_CREDENTIALS
from monitoring import auth_attempts_counter, auth_failures_counter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


class LoginRequest(BaseModel):
    """Login request model."""
    username: str
    password: str


class LoginResponse(BaseModel):
    """Login response model."""
    token: str
    token_type: str = "bearer"
    user_id: str
    role: str


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """
    Authenticate user and return token.

    Demo credentials:
    - username: admin@glamup.com, password: admin123 (admin)
    - username: user@example.com, password: password123
    - username: test@example.com, password: test123
    """
    # Record authentication attempt
    auth_attempts_counter.add(1, {"type": "login"})

    user_data = USER_CREDENTIALS.get(request.username)
    if user_data is None or request.password != user_data["password"]:
        reason = "invalid_username" if user_data is None else "invalid_password"
        auth_failures_counter.add(1, {"reason": reason})
        logger.warning("Login failed", extra={
            "username": request.username,
            "reason": reason
        })
        raise HTTPException(status_code=401, detail="Invalid username or password")

    logger.info("User logged in successfully", extra={
        "username": request.username,
        "user_id": user_data["user_id"],
        "role": user_data["role"]
    })

    return LoginResponse(
        token=user_data["token"],
        user_id=user_data["user_id"],
        role=user_data["role"]
    )


@router.get("/me", response_model=CurrentUser)
async def me(user: CurrentUser = Depends(get_current_user)):
    """Identity behind the bearer token."""
    return user
