from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, List
from uuid import UUID
from datetime import datetime
from models.intake_meeting_session import SessionStatus
from models.intake_meeting_invitation import InvitationStatus


# ============ Session Schemas ============

class IntakeSessionCreate(BaseModel):
    """Schema for starting an intake meeting session"""
    template_id: UUID = Field(..., description="Template to run; its questions are copied into the session")
    client_id: str = Field(..., description="Client the meeting is held with")
    conducted_by: str = Field(..., description="Recruiter running the meeting")
    scheduled_at: Optional[datetime] = None
    notes: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "template_id": "550e8400-e29b-41d4-a716-446655440000",
                "client_id": "acme-corp",
                "conducted_by": "dana@agency.example",
                "scheduled_at": "2026-11-02T15:00:00Z",
                "attendees": ["hiring.manager@acme.example"]
            }
        }


class IntakeSessionUpdate(BaseModel):
    """Metadata edits; only fields that are sent are changed"""
    notes: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    follow_up_actions: Optional[List[str]] = None
    conducted_by: Optional[str] = None
    attendees: Optional[List[str]] = None


class ResponseValue(BaseModel):
    value: Any = Field(None, description="Answer as entered; blank clears the answer")
    administrative: bool = Field(False, description="Allow edits on completed / follow-up sessions")


class ResponseBatch(BaseModel):
    responses: Dict[str, Any] = Field(..., description="Question id -> answer as entered")
    administrative: bool = False


class FollowUpRequest(BaseModel):
    actions: List[str] = Field(..., description="Open items to resolve with the client")


class IntakeSessionResponse(BaseModel):
    id: UUID
    template_id: Optional[UUID]
    template_snapshot: Dict[str, Any]
    client_id: str
    conducted_by: str
    status: SessionStatus
    scheduled_at: Optional[datetime]
    completed_at: Optional[datetime]
    notes: Optional[str]
    follow_up_actions: List[str]
    attendees: List[str]
    responses: Dict[str, Any]
    job_description: Optional[Dict[str, Any]]
    interview_templates: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class IntakeSessionSummary(BaseModel):
    id: UUID
    template_id: Optional[UUID]
    client_id: str
    conducted_by: str
    status: SessionStatus
    scheduled_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class BatchResponseResult(BaseModel):
    session: IntakeSessionResponse
    errors: Dict[str, str] = Field(default_factory=dict)


# ============ Generation Schemas ============

class GenerateJobDescriptionRequest(BaseModel):
    additional_instructions: Optional[str] = None


class GenerateInterviewTemplateRequest(BaseModel):
    interview_type: str = Field(..., description="Phone Screen, Technical, Behavioral, Final, Panel, Culture Fit, Case Study or Presentation")
    additional_instructions: Optional[str] = None


class ArtifactPatch(BaseModel):
    content: Dict[str, Any] = Field(..., description="Fields merged over the stored artifact content")


# ============ Invitation Schemas ============

class AttendeeRequest(BaseModel):
    email: str


class SendInvitationsRequest(BaseModel):
    emails: Optional[List[str]] = Field(None, description="Recipients; defaults to the session attendees")
    meeting_link: Optional[str] = None
    resend: bool = False


class InvitationRecordResponse(BaseModel):
    id: UUID
    session_id: UUID
    email: str
    scheduled_for: datetime
    meeting_link: Optional[str]
    status: InvitationStatus
    error: Optional[str]
    provider_message_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
