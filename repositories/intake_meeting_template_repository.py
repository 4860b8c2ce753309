"""
Repository for IntakeMeetingTemplate entities.

Scope-aware queries: a template belongs to an organization or, when
organization_id is None, to the global scope.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, func
from sqlmodel import Session, select

from models.intake_meeting_template import IntakeMeetingTemplate
from repositories.base_repository import BaseRepository


def _scope_clause(organization_id: Optional[str]):
    if organization_id is None:
        return IntakeMeetingTemplate.organization_id.is_(None)
    return IntakeMeetingTemplate.organization_id == organization_id


class IntakeMeetingTemplateRepository(BaseRepository[IntakeMeetingTemplate]):
    """Repository for intake meeting templates and their ordered questions."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, IntakeMeetingTemplate)

    def list_templates(
        self,
        organization_id: Optional[str] = None,
        include_global: bool = True,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[IntakeMeetingTemplate]:
        """
        List templates visible to a scope.

        Args:
            organization_id: Organization scope (None lists global templates only)
            include_global: Also include global templates for an organization
            is_active: Optional filter on the active flag
            search: Case-insensitive match on name or description
            limit: Maximum results (max 100)
            offset: Offset for pagination

        Returns:
            Templates, defaults first, then by name
        """
        if limit > 100:
            limit = 100

        statement = select(IntakeMeetingTemplate)

        if organization_id is not None and include_global:
            statement = statement.where(
                or_(
                    IntakeMeetingTemplate.organization_id == organization_id,
                    IntakeMeetingTemplate.organization_id.is_(None),
                )
            )
        else:
            statement = statement.where(_scope_clause(organization_id))

        if is_active is not None:
            statement = statement.where(IntakeMeetingTemplate.is_active == is_active)

        if search:
            pattern = f"%{search.strip().lower()}%"
            statement = statement.where(
                or_(
                    func.lower(IntakeMeetingTemplate.name).like(pattern),
                    func.lower(func.coalesce(IntakeMeetingTemplate.description, "")).like(pattern),
                )
            )

        statement = (
            statement.order_by(
                IntakeMeetingTemplate.is_default.desc(),
                IntakeMeetingTemplate.name,
            )
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.exec(statement).all())

    def get_default(self, organization_id: Optional[str] = None) -> Optional[IntakeMeetingTemplate]:
        """
        Get the active default template of exactly one scope.

        Args:
            organization_id: Organization scope, None for global

        Returns:
            Default template if the scope has one
        """
        statement = select(IntakeMeetingTemplate).where(
            _scope_clause(organization_id),
            IntakeMeetingTemplate.is_default == True,  # noqa: E712
            IntakeMeetingTemplate.is_active == True,  # noqa: E712
        )
        return self.db.exec(statement).first()

    def demote_defaults(self, organization_id: Optional[str], exclude_id: Optional[UUID] = None) -> int:
        """
        Clear the default flag on every template of a scope.

        The current default rows are locked, and the demotion is flushed
        before the caller stages the promotion; the caller commits both
        together. The partial unique indexes on the table reject a second
        default from a concurrent promotion.

        Args:
            organization_id: Organization scope, None for global
            exclude_id: Template to leave untouched (the one being promoted)

        Returns:
            Number of templates demoted
        """
        statement = (
            select(IntakeMeetingTemplate)
            .where(
                _scope_clause(organization_id),
                IntakeMeetingTemplate.is_default == True,  # noqa: E712
            )
            .with_for_update()
        )
        demoted = 0
        for template in self.db.exec(statement).all():
            if exclude_id is not None and template.id == exclude_id:
                continue
            template.is_default = False
            self.db.add(template)
            demoted += 1
        if demoted:
            self.db.flush()
        return demoted
