from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel, Relationship
from typing import Optional, List
from datetime import datetime
from uuid import UUID, uuid4

from utils.clock import utc_now


class IntakeMeetingTemplate(SQLModel, table=True):
    """
    A reusable intake meeting questionnaire.

    Scoped to an organization, or global when organization_id is None.
    Only one template may be the default per scope at a time.
    """
    __tablename__ = "intake_meeting_templates"
    __table_args__ = (
        # One default per organization, and one global default
        Index(
            "uq_intake_meeting_templates_org_default",
            "organization_id",
            unique=True,
            postgresql_where=text("is_default AND organization_id IS NOT NULL"),
            sqlite_where=text("is_default AND organization_id IS NOT NULL"),
        ),
        Index(
            "uq_intake_meeting_templates_global_default",
            "is_default",
            unique=True,
            postgresql_where=text("is_default AND organization_id IS NULL"),
            sqlite_where=text("is_default AND organization_id IS NULL"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(index=True)  # e.g., "Role Discussion | Intake Meeting"
    description: Optional[str] = Field(default=None)
    organization_id: Optional[str] = Field(default=None, index=True)  # None = global scope
    is_default: bool = Field(default=False, index=True)  # At most one per scope
    is_active: bool = Field(default=True, index=True)  # Soft-delete flag
    usage_count: int = Field(default=0)  # Sessions created from this template
    last_used_at: Optional[datetime] = Field(default=None)
    created_by: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationships
    questions: List["IntakeMeetingQuestion"] = Relationship(
        back_populates="template",
        cascade_delete=True,
        sa_relationship_kwargs={"order_by": "IntakeMeetingQuestion.order"},
    )
