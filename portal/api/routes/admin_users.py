"""
Admin user management.

ADMINs work on STAFF and CLIENT accounts only; SUPER_ADMIN accounts are
invisible to them.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from portal.api.deps import SessionDep, require_roles
from portal.core.access import ADMINS
from portal.models.user import User, UserRole
from portal.schemas.auth import MessageResponse
from portal.schemas.user import (
    AdminUserCreate,
    AdminUserUpdate,
    ClientProfileResponse,
    UserDetailResponse,
    UserListResponse,
    UserResponse,
)
from portal.services.user_service import UserService

router = APIRouter(prefix="/admin/users", tags=["admin"])

AdminUser = Annotated[User, Depends(require_roles(*ADMINS))]


def _detail(session: SessionDep, user: User) -> UserDetailResponse:
    detail = UserDetailResponse.model_validate(user)
    profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
    if profile is not None:
        detail.client = ClientProfileResponse.model_validate(profile)
    return detail


@router.get("", response_model=UserListResponse)
def list_users(
    session: SessionDep,
    actor: AdminUser,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
) -> UserListResponse:
    users, total, total_pages = UserService.list_users(
        session, actor, page=page, limit=limit, search=search, role=role
    )
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


@router.post("", response_model=UserDetailResponse)
def create_user(payload: AdminUserCreate, session: SessionDep, actor: AdminUser) -> UserDetailResponse:
    user = UserService.admin_create(session, actor, payload)
    return _detail(session, user)


@router.get("/{user_id}", response_model=UserDetailResponse)
def get_user(user_id: int, session: SessionDep, actor: AdminUser) -> UserDetailResponse:
    return _detail(session, UserService.get_visible(session, actor, user_id))


@router.put("/{user_id}", response_model=UserDetailResponse)
def update_user(user_id: int, payload: AdminUserUpdate, session: SessionDep, actor: AdminUser) -> UserDetailResponse:
    user = UserService.admin_update(session, actor, user_id, payload)
    return _detail(session, user)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(user_id: int, session: SessionDep, actor: AdminUser) -> MessageResponse:
    UserService.soft_delete(session, actor, user_id)
    return MessageResponse(message="User deleted")
