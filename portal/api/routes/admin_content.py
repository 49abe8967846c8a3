"""
Admin CRUD for branches and landing page content.

FAQ, services, team members, testimonials and gallery items share one route
factory; branches have their own routes for staff counts and deletion rules.
"""

from typing import Annotated, Any, Type

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.api.deps import SessionDep, require_roles
from portal.core.access import ADMINS
from portal.models.user import User
from portal.schemas.auth import MessageResponse
from portal.schemas.content import (
    BranchCreate,
    BranchDetailResponse,
    BranchResponse,
    BranchStaffMember,
    BranchUpdate,
    FaqCreate,
    FaqResponse,
    FaqUpdate,
    GalleryItemCreate,
    GalleryItemResponse,
    GalleryItemUpdate,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
    TeamMemberCreate,
    TeamMemberResponse,
    TeamMemberUpdate,
    TestimonialCreate,
    TestimonialResponse,
    TestimonialUpdate,
)
from portal.services import content_service
from portal.services.content_service import ContentRepository

router = APIRouter(prefix="/admin", tags=["admin"])

AdminUser = Annotated[User, Depends(require_roles(*ADMINS))]


def register_content_routes(
    path: str,
    repository: ContentRepository,
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    response_schema: Type[BaseModel],
) -> None:
    """Attach list/create/get/update/delete routes for one content table."""

    def list_items(session: SessionDep, actor: AdminUser) -> list[Any]:
        return [response_schema.model_validate(item) for item in repository.list(session)]

    def create_item(payload: create_schema, session: SessionDep, actor: AdminUser) -> Any:  # type: ignore[valid-type]
        return response_schema.model_validate(repository.create(session, actor, payload))

    def get_item(item_id: int, session: SessionDep, actor: AdminUser) -> Any:
        return response_schema.model_validate(repository.get(session, item_id))

    def update_item(item_id: int, payload: update_schema, session: SessionDep, actor: AdminUser) -> Any:  # type: ignore[valid-type]
        return response_schema.model_validate(repository.update(session, actor, item_id, payload))

    def delete_item(item_id: int, session: SessionDep, actor: AdminUser) -> MessageResponse:
        repository.soft_delete(session, actor, item_id)
        return MessageResponse(message="Deleted")

    name = path.strip("/").replace("-", "_")
    router.add_api_route(path, list_items, methods=["GET"], response_model=list[response_schema], name=f"list_{name}")  # type: ignore[valid-type]
    router.add_api_route(path, create_item, methods=["POST"], response_model=response_schema, name=f"create_{name}")
    router.add_api_route(f"{path}/{{item_id}}", get_item, methods=["GET"], response_model=response_schema, name=f"get_{name}")
    router.add_api_route(f"{path}/{{item_id}}", update_item, methods=["PUT"], response_model=response_schema, name=f"update_{name}")
    router.add_api_route(f"{path}/{{item_id}}", delete_item, methods=["DELETE"], response_model=MessageResponse, name=f"delete_{name}")


register_content_routes("/faq", content_service.faqs, FaqCreate, FaqUpdate, FaqResponse)
register_content_routes("/services", content_service.services, ServiceCreate, ServiceUpdate, ServiceResponse)
register_content_routes("/team", content_service.team_members, TeamMemberCreate, TeamMemberUpdate, TeamMemberResponse)
register_content_routes(
    "/testimonials", content_service.testimonials, TestimonialCreate, TestimonialUpdate, TestimonialResponse
)
register_content_routes("/gallery", content_service.gallery, GalleryItemCreate, GalleryItemUpdate, GalleryItemResponse)


# ---- branches ----

branches = content_service.branches


def _branch_response(session: SessionDep, branch) -> BranchResponse:
    response = BranchResponse.model_validate(branch)
    response.staff_count = branches.staff_count(session, branch.id)
    return response


@router.get("/branches", response_model=list[BranchResponse])
def list_branches(session: SessionDep, actor: AdminUser) -> list[BranchResponse]:
    return [_branch_response(session, branch) for branch in branches.list(session)]


@router.post("/branches", response_model=BranchResponse)
def create_branch(payload: BranchCreate, session: SessionDep, actor: AdminUser) -> BranchResponse:
    return _branch_response(session, branches.create(session, actor, payload))


@router.get("/branches/{branch_id}", response_model=BranchDetailResponse)
def get_branch(branch_id: int, session: SessionDep, actor: AdminUser) -> BranchDetailResponse:
    branch = branches.get(session, branch_id)
    staff = branches.staff(session, branch_id)
    detail = BranchDetailResponse.model_validate(branch)
    detail.staff = [BranchStaffMember.model_validate(member) for member in staff]
    detail.staff_count = len(staff)
    return detail


@router.put("/branches/{branch_id}", response_model=BranchResponse)
def update_branch(branch_id: int, payload: BranchUpdate, session: SessionDep, actor: AdminUser) -> BranchResponse:
    return _branch_response(session, branches.update(session, actor, branch_id, payload))


@router.delete("/branches/{branch_id}", response_model=MessageResponse)
def delete_branch(branch_id: int, session: SessionDep, actor: AdminUser) -> MessageResponse:
    """SUPER_ADMIN only; refused while staff are assigned."""
    branches.soft_delete(session, actor, branch_id)
    return MessageResponse(message="Branch deleted")
