from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlmodel import SQLModel, Field, Column, JSON
from sqlalchemy import Text

from models.intake_meeting_snapshot import TemplateSnapshot
from utils.clock import utc_now


class SessionStatus(str, Enum):
    """Lifecycle states of an intake meeting session"""
    DRAFT = "draft"
    COMPLETED = "completed"
    FOLLOW_UP_NEEDED = "follow_up_needed"


class IntakeMeetingSession(SQLModel, table=True):
    """
    One intake meeting conducted with a client from a template.

    Owns its question snapshot, captured responses, generated artifacts and
    invitation history. `template_id` records provenance only; validation
    always runs against `template_snapshot`.
    """
    __tablename__ = "intake_meeting_sessions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    template_id: Optional[UUID] = Field(default=None, index=True)
    template_snapshot: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    client_id: str = Field(index=True)
    conducted_by: str

    # Session state
    status: SessionStatus = Field(default=SessionStatus.DRAFT, index=True)
    scheduled_at: Optional[datetime] = Field(default=None, index=True)
    completed_at: Optional[datetime] = None

    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    follow_up_actions: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    attendees: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    # question id -> {"kind": ..., "value": ...}
    responses: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    # Generated artifacts (GeneratedArtifact envelopes)
    job_description: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    interview_templates: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    # In-flight generation guard (compare-and-set on this row)
    generation_token: Optional[str] = Field(default=None)
    generation_started_at: Optional[datetime] = Field(default=None)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def snapshot(self) -> TemplateSnapshot:
        return TemplateSnapshot.model_validate(self.template_snapshot)

    @property
    def has_artifacts(self) -> bool:
        return bool(self.job_description) or bool(self.interview_templates)
