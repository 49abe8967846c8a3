"""
Profile routes for the signed-in user.
"""

from fastapi import APIRouter
from sqlmodel import Session

from portal.api.deps import CurrentUser, SessionDep
from portal.models.user import User
from portal.schemas.auth import MessageResponse
from portal.schemas.user import ClientProfileResponse, PasswordChange, ProfileUpdate, UserDetailResponse
from portal.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


def _detail(session: Session, user: User) -> UserDetailResponse:
    profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
    detail = UserDetailResponse.model_validate(user)
    if profile is not None:
        detail.client = ClientProfileResponse.model_validate(profile)
    return detail


@router.get("/me", response_model=UserDetailResponse)
def get_current_user_profile(current_user: CurrentUser, session: SessionDep) -> UserDetailResponse:
    """
    Get current user's profile.

    Args:
        current_user: Current authenticated user
        session: Database session

    Returns:
        User profile data, with the client profile for CLIENT accounts
    """
    return _detail(session, current_user)


@router.patch("/me", response_model=UserDetailResponse)
def update_current_user_profile(
    payload: ProfileUpdate, current_user: CurrentUser, session: SessionDep
) -> UserDetailResponse:
    return _detail(session, UserService.update_profile(session, current_user, payload))


@router.put("/me/password", response_model=MessageResponse)
def change_password(payload: PasswordChange, current_user: CurrentUser, session: SessionDep) -> MessageResponse:
    UserService.change_password(session, current_user, payload.current_password, payload.new_password)
    return MessageResponse(message="Password updated")
