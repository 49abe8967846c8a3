"""
Authentication routes: registration, login, logout and password recovery.

Login returns a bearer token and also sets it as an httponly session cookie
so that server-rendered pages and the JSON API share one credential.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import OAuth2PasswordRequestForm

from portal.api.deps import SessionDep
from portal.core.config import settings
from portal.core.logging import get_logger
from portal.schemas.auth import (
    ForgotPasswordRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    Token,
)
from portal.schemas.user import UserSummary
from portal.services.auth_service import FORGOT_PASSWORD_MESSAGE, AuthService
from portal.services.session_service import client_ip, extract_token
from portal.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse)
def register(user_in: RegisterRequest, session: SessionDep) -> RegisterResponse:
    """
    Self-service registration. Always creates a CLIENT with a client profile.

    Raises:
        ValidationFailed: missing fields, short password, duplicate email
    """
    user = UserService.register(session, name=user_in.name, email=user_in.email, password=user_in.password)
    return RegisterResponse(
        message="Registration successful. Please sign in.",
        user=UserSummary(id=user.id, name=user.full_name, email=user.email, role=user.role),  # type: ignore[arg-type]
    )


@router.post("/login", response_model=Token)
def login(
    request: Request,
    response: Response,
    session: SessionDep,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
) -> Token:
    """
    OAuth2 compatible token login.

    Args:
        request: Incoming request (user agent and client address are recorded)
        response: Outgoing response, receives the session cookie
        session: Database session
        form_data: OAuth2 form with username (email) and password

    Returns:
        Access token
    """
    _, access_token = AuthService.login(
        session,
        email=form_data.username,
        password=form_data.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    return Token(access_token=access_token)


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, response: Response, session: SessionDep) -> MessageResponse:
    AuthService.logout(session, extract_token(request))
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return MessageResponse(message="Signed out")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(payload: ForgotPasswordRequest, session: SessionDep) -> MessageResponse:
    """Same response whether or not the email belongs to an account."""
    AuthService.request_password_reset(session, payload.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(payload: ResetPasswordRequest, session: SessionDep) -> MessageResponse:
    AuthService.reset_password(session, token=payload.token, password=payload.password)
    return MessageResponse(message="Password has been reset. Please sign in with your new password.")
