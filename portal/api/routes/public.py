"""
Unauthenticated content for the landing page.
"""

from fastapi import APIRouter

from portal.api.deps import SessionDep
from portal.schemas.content import (
    FaqResponse,
    GalleryItemResponse,
    PublicContentResponse,
    ServiceResponse,
    TeamMemberResponse,
    TestimonialResponse,
)
from portal.services.content_service import public_content

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/content", response_model=PublicContentResponse)
def get_public_content(session: SessionDep) -> PublicContentResponse:
    content = public_content(session)
    return PublicContentResponse(
        faqs=[FaqResponse.model_validate(item) for item in content["faqs"]],
        services=[ServiceResponse.model_validate(item) for item in content["services"]],
        team_members=[TeamMemberResponse.model_validate(item) for item in content["team_members"]],
        testimonials=[TestimonialResponse.model_validate(item) for item in content["testimonials"]],
        gallery=[GalleryItemResponse.model_validate(item) for item in content["gallery"]],
    )
