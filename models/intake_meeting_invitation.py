from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import SQLModel, Field

from utils.clock import utc_now


class InvitationStatus(str, Enum):
    """Outcome of one invitation dispatch"""
    SENT = "sent"
    FAILED = "failed"
    AUTH_SCOPE_ERROR = "auth_scope_error"


class IntakeMeetingInvitation(SQLModel, table=True):
    """
    Delivery record for one invitation sent to one recipient.

    Rows are keyed by the session's scheduled time at send time, so a
    rescheduled meeting can be re-sent while repeats for the same slot
    are skipped.
    """
    __tablename__ = "intake_meeting_invitations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    session_id: UUID = Field(foreign_key="intake_meeting_sessions.id", index=True)
    email: str = Field(index=True)
    scheduled_for: datetime
    meeting_link: Optional[str] = None
    status: InvitationStatus = Field(index=True)
    error: Optional[str] = None
    provider_message_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
