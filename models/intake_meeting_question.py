from sqlmodel import Field, SQLModel, Relationship, Column, JSON
from typing import Optional, List
from datetime import datetime
from uuid import UUID, uuid4
from enum import Enum

from utils.clock import utc_now


class QuestionKind(str, Enum):
    """Input kinds an intake question can take"""
    SHORT_TEXT = "text"
    LONG_TEXT = "textarea"
    SINGLE_SELECT = "select"
    MULTI_SELECT = "multiselect"
    NUMERIC = "number"
    DATE = "date"

    @property
    def needs_options(self) -> bool:
        return self in (QuestionKind.SINGLE_SELECT, QuestionKind.MULTI_SELECT)


class IntakeMeetingQuestion(SQLModel, table=True):
    """
    Individual question within an intake meeting template.
    Ordering is contiguous (1..N) inside its template.
    """
    __tablename__ = "intake_meeting_questions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    template_id: UUID = Field(foreign_key="intake_meeting_templates.id", index=True)
    question: str  # The prompt the recruiter asks
    kind: QuestionKind = Field(default=QuestionKind.LONG_TEXT)
    category: str = Field(index=True)  # e.g., "Team Structure", "Compensation"
    section: str  # e.g., "Role Discussion", "Logistics"
    required: bool = Field(default=False)
    order: int = Field(default=0, index=True)  # Sequence within the template
    placeholder: Optional[str] = Field(default=None)
    help_text: Optional[str] = Field(default=None)
    options: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))  # select / multiselect only
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationships
    template: "IntakeMeetingTemplate" = Relationship(back_populates="questions")
