from fastapi import APIRouter, Depends, Request
from typing import Optional
from sqlalchemy.orm import Session

from nebula.config import get_settings
from nebula.database import get_db
from nebula.middleware.security import limiter
from nebula.models.user import User
from nebula.schemas.common import success_response
from nebula.schemas.user import (
    ChangePasswordRequest, LoginRequest, LogoutRequest, RefreshRequest, UserResponse
)
from nebula.services.auth import AuthService, get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


def serialize_user(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(by_alias=True, mode="json")


@router.post("/login")
@limiter.limit(settings.login_rate_limit)
def login(
    request: Request,
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    user, access_token, refresh_token = AuthService.login(db, credentials.email, credentials.password)
    return success_response(
        data={
            "user": serialize_user(user),
            "accessToken": access_token,
            "refreshToken": refresh_token
        },
        message="Login successful"
    )


@router.post("/refresh")
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)):
    access_token = AuthService.refresh_access_token(db, payload.refresh_token)
    return success_response(data={"accessToken": access_token})


@router.post("/logout")
def logout(payload: Optional[LogoutRequest] = None, db: Session = Depends(get_db)):
    AuthService.logout(db, payload.refresh_token if payload else None)
    return success_response(message="Logged out successfully")


@router.get("/profile")
def profile(user: User = Depends(get_current_user)):
    return success_response(data=serialize_user(user))


@router.put("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    AuthService.change_password(db, user, payload.current_password, payload.new_password)
    return success_response(message="Password changed successfully")
