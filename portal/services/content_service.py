"""
Admin CRUD for office content: branches, FAQ, services, team members,
testimonials, gallery items and the service fee list.

All of these tables share the soft-delete columns, so one repository class
covers them. Branches add their own deletion rules on top.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlmodel import Session, select

from portal.core.access import SUPER_ADMIN_ONLY, ensure_role
from portal.core.errors import NotFound, ValidationFailed
from portal.core.logging import get_logger
from portal.models.audit import AuditAction
from portal.models.base import SoftDeleteModel, utcnow
from portal.models.content import Branch, Faq, GalleryItem, Service, ServiceFee, TeamMember, Testimonial
from portal.models.user import User, UserRole
from portal.services.audit_service import AuditService

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=SoftDeleteModel)


class ContentRepository(Generic[ModelT]):
    """
    Soft-delete aware CRUD for one content table.

    Args:
        model: SQLModel table class
        resource_type: Name written to the audit log
        not_found_message: Error text for missing or deleted rows
    """

    def __init__(self, model: Type[ModelT], resource_type: str, not_found_message: str):
        self.model = model
        self.resource_type = resource_type
        self.not_found_message = not_found_message

    def _live(self):
        return select(self.model).where(self.model.deleted_at.is_(None))  # type: ignore[union-attr]

    def _ordering(self) -> list[Any]:
        if hasattr(self.model, "order"):
            return [self.model.order, self.model.id]  # type: ignore[attr-defined]
        return [self.model.created_at.desc()]  # type: ignore[union-attr]

    def list(self, session: Session, active_only: bool = False) -> list[ModelT]:
        statement = self._live()
        if active_only and hasattr(self.model, "is_active"):
            statement = statement.where(self.model.is_active.is_(True))  # type: ignore[attr-defined]
        return list(session.exec(statement.order_by(*self._ordering())).all())

    def get(self, session: Session, item_id: int) -> ModelT:
        item = session.get(self.model, item_id)
        if item is None or item.deleted_at is not None:
            raise NotFound(self.not_found_message)
        return item

    def create(self, session: Session, actor: User, data: BaseModel) -> ModelT:
        item = self.model(**data.model_dump())
        session.add(item)
        session.flush()
        AuditService.record(
            session,
            AuditAction.CREATE,
            self.resource_type,
            item.id,  # type: ignore[attr-defined]
            user_id=actor.id,
            details=data.model_dump(mode="json"),
        )
        session.commit()
        session.refresh(item)
        logger.info(f"{self.resource_type} {item.id} created by user {actor.id}")  # type: ignore[attr-defined]
        return item

    def update(self, session: Session, actor: User, item_id: int, data: BaseModel) -> ModelT:
        item = self.get(session, item_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(item, field, value)
        item.updated_at = utcnow()
        session.add(item)
        AuditService.record(
            session,
            AuditAction.UPDATE,
            self.resource_type,
            item_id,
            user_id=actor.id,
            details=data.model_dump(mode="json", exclude_unset=True),
        )
        session.commit()
        session.refresh(item)
        return item

    def soft_delete(self, session: Session, actor: User, item_id: int) -> None:
        item = self.get(session, item_id)
        item.deleted_at = utcnow()
        session.add(item)
        AuditService.record(session, AuditAction.DELETE, self.resource_type, item_id, user_id=actor.id)
        session.commit()
        logger.info(f"{self.resource_type} {item_id} soft-deleted by user {actor.id}")


class BranchRepository(ContentRepository[Branch]):
    """Branches may only be removed by a SUPER_ADMIN and only once no staff remain."""

    def __init__(self):
        super().__init__(Branch, "BRANCH", "Branch not found")

    def _ordering(self) -> list[Any]:
        return [Branch.name]

    @staticmethod
    def _staff_filter(branch_id: int) -> list[Any]:
        return [
            User.branch_id == branch_id,
            User.role == UserRole.STAFF,
            User.deleted_at.is_(None),  # type: ignore[union-attr]
        ]

    def staff(self, session: Session, branch_id: int) -> list[User]:
        statement = select(User).where(*self._staff_filter(branch_id)).order_by(User.full_name)
        return list(session.exec(statement).all())

    def staff_count(self, session: Session, branch_id: int) -> int:
        statement = select(func.count()).select_from(User).where(*self._staff_filter(branch_id))
        return int(session.exec(statement).one())

    def soft_delete(self, session: Session, actor: User, item_id: int) -> None:
        ensure_role(actor, SUPER_ADMIN_ONLY, "Only SUPER_ADMIN can delete branches")
        branch = self.get(session, item_id)
        assigned = self.staff_count(session, item_id)
        if assigned > 0:
            raise ValidationFailed(
                f"Cannot delete branch with {assigned} active staff. Reassign staff first."
            )
        branch.is_active = False
        super().soft_delete(session, actor, item_id)


class ServiceFeeRepository(ContentRepository[ServiceFee]):
    """Tariff list, grouped by category. Staff read it; admins maintain it."""

    def __init__(self):
        super().__init__(ServiceFee, "SERVICE_FEE", "Service fee not found")

    def _ordering(self) -> list[Any]:
        return [ServiceFee.category, ServiceFee.name]

    def search(self, session: Session, search: Optional[str] = None, category: Optional[str] = None) -> list[ServiceFee]:
        statement = self._live()
        if category:
            statement = statement.where(ServiceFee.category == category)
        if search:
            pattern = f"%{search.lower()}%"
            statement = statement.where(
                or_(func.lower(ServiceFee.name).like(pattern), func.lower(ServiceFee.description).like(pattern))
            )
        return list(session.exec(statement.order_by(*self._ordering())).all())


branches = BranchRepository()
faqs = ContentRepository(Faq, "FAQ", "FAQ not found")
services = ContentRepository(Service, "SERVICE", "Service not found")
team_members = ContentRepository(TeamMember, "TEAM_MEMBER", "Team member not found")
testimonials = ContentRepository(Testimonial, "TESTIMONIAL", "Testimonial not found")
gallery = ContentRepository(GalleryItem, "GALLERY", "Gallery item not found")
service_fees = ServiceFeeRepository()


def public_content(session: Session) -> dict[str, list]:
    """Everything the landing page shows: active, non-deleted rows only."""
    return {
        "faqs": faqs.list(session, active_only=True),
        "services": services.list(session, active_only=True),
        "team_members": team_members.list(session, active_only=True),
        "testimonials": testimonials.list(session, active_only=True),
        "gallery": gallery.list(session, active_only=True),
    }

