from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session
from typing import List, Optional
from uuid import UUID

from api.auth import verify_api_key
from api.dependencies import get_generator, get_mailer, get_session_service
from api.models.intake_session_schemas import (
    IntakeSessionCreate,
    IntakeSessionUpdate,
    IntakeSessionResponse,
    IntakeSessionSummary,
    ResponseValue,
    ResponseBatch,
    BatchResponseResult,
    FollowUpRequest,
    GenerateJobDescriptionRequest,
    GenerateInterviewTemplateRequest,
    ArtifactPatch,
    AttendeeRequest,
    SendInvitationsRequest,
    InvitationRecordResponse,
)
from models.intake_artifacts import GeneratedArtifact
from services import (
    IntakeGenerationService,
    IntakeInvitationService,
    IntakeMeetingSessionService,
    InvitationReport,
)
from services.intake_generation_service import StructuredGenerator
from services.intake_invitation_service import InviteMailer
from utils.database import get_db

router = APIRouter(
    prefix="/intake/sessions",
    tags=["Intake Sessions"],
    dependencies=[Depends(verify_api_key)]
)


def get_generation_service(
    db: Session = Depends(get_db),
    generator: StructuredGenerator = Depends(get_generator),
) -> IntakeGenerationService:
    return IntakeGenerationService(db, generator=generator)


def get_invitation_service(
    db: Session = Depends(get_db),
    mailer: InviteMailer = Depends(get_mailer),
) -> IntakeInvitationService:
    return IntakeInvitationService(db, mailer=mailer)


# ============ SESSION ENDPOINTS ============

@router.post("", response_model=IntakeSessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: IntakeSessionCreate,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """
    Start an intake meeting from a template.

    The template's questions are copied into the session, so later template
    edits never change what this session is validated against.
    """
    return service.create_session(
        template_id=payload.template_id,
        client_id=payload.client_id,
        conducted_by=payload.conducted_by,
        scheduled_at=payload.scheduled_at,
        notes=payload.notes,
        attendees=payload.attendees,
    )


@router.get("", response_model=List[IntakeSessionSummary])
def list_sessions(
    client_id: Optional[str] = None,
    status: Optional[str] = None,
    template_id: Optional[UUID] = None,
    skip: int = 0,
    limit: int = 50,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """
    List sessions, newest first.

    **Filters:**
    - `client_id`: Sessions held with one client
    - `status`: draft, completed or follow_up_needed
    - `template_id`: Sessions created from one template
    """
    return service.list_sessions(
        client_id=client_id,
        status=status,
        template_id=template_id,
        limit=limit,
        offset=skip,
    )


@router.get("/{session_id}", response_model=IntakeSessionResponse)
def get_session(
    session_id: UUID,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    return service.get_session(session_id)


@router.patch("/{session_id}", response_model=IntakeSessionResponse)
def update_session(
    session_id: UUID,
    payload: IntakeSessionUpdate,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """Edit notes, schedule, follow-up actions, conductor or attendees"""
    return service.update_session(session_id, payload.model_dump(exclude_unset=True))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: UUID,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """Delete a session in any state together with its invitation history"""
    service.delete_session(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============ RESPONSE ENDPOINTS ============

@router.put("/{session_id}/responses/{question_id}", response_model=IntakeSessionResponse)
def record_response(
    session_id: UUID,
    question_id: str,
    payload: ResponseValue,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """Record one answer. A blank value clears it."""
    return service.record_response(
        session_id, question_id, payload.value, administrative=payload.administrative
    )


@router.post("/{session_id}/responses", response_model=BatchResponseResult)
def record_responses(
    session_id: UUID,
    payload: ResponseBatch,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """
    Record many answers at once. Valid answers are saved; invalid ones are
    returned in `errors`, keyed by question id.
    """
    session, errors = service.record_responses(
        session_id, payload.responses, administrative=payload.administrative
    )
    return BatchResponseResult(
        session=IntakeSessionResponse.model_validate(session),
        errors=errors,
    )


# ============ LIFECYCLE ENDPOINTS ============

@router.post("/{session_id}/complete", response_model=IntakeSessionResponse)
def complete_session(
    session_id: UUID,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """Complete a draft session. Fails with the missing question ids when required answers are absent."""
    return service.complete_session(session_id)


@router.post("/{session_id}/follow-up", response_model=IntakeSessionResponse)
def mark_follow_up(
    session_id: UUID,
    payload: FollowUpRequest,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """Park a draft session until open items are resolved with the client"""
    return service.mark_follow_up(session_id, payload.actions)


@router.post("/{session_id}/reopen", response_model=IntakeSessionResponse)
def reopen_session(
    session_id: UUID,
    service: IntakeMeetingSessionService = Depends(get_session_service),
):
    """Return a completed or follow-up session to draft"""
    return service.reopen_session(session_id)


# ============ GENERATION ENDPOINTS ============

@router.post("/{session_id}/job-description", response_model=GeneratedArtifact)
def generate_job_description(
    session_id: UUID,
    payload: Optional[GenerateJobDescriptionRequest] = None,
    service: IntakeGenerationService = Depends(get_generation_service),
):
    """
    Generate the job description from a completed session.

    Returns 409 while another generation for the session runs and 502 once
    all generation attempts have failed.
    """
    instructions = payload.additional_instructions if payload else None
    return service.generate_job_description(session_id, extra_instructions=instructions)


@router.patch("/{session_id}/job-description", response_model=GeneratedArtifact)
def update_job_description(
    session_id: UUID,
    payload: ArtifactPatch,
    db: Session = Depends(get_db),
):
    """Edit the job description directly (creates it when generation failed)"""
    return IntakeGenerationService(db).update_artifact(session_id, payload.content)


@router.post("/{session_id}/interview-templates", response_model=GeneratedArtifact)
def generate_interview_template(
    session_id: UUID,
    payload: GenerateInterviewTemplateRequest,
    service: IntakeGenerationService = Depends(get_generation_service),
):
    """Generate the interview template for one interview type"""
    return service.generate_interview_template(
        session_id,
        payload.interview_type,
        extra_instructions=payload.additional_instructions,
    )


@router.patch("/{session_id}/interview-templates/{interview_type}", response_model=GeneratedArtifact)
def update_interview_template(
    session_id: UUID,
    interview_type: str,
    payload: ArtifactPatch,
    db: Session = Depends(get_db),
):
    """Edit one interview type's template directly"""
    return IntakeGenerationService(db).update_artifact(
        session_id, payload.content, interview_type=interview_type
    )


# ============ INVITATION ENDPOINTS ============

@router.post("/{session_id}/attendees", response_model=IntakeSessionResponse)
def add_attendee(
    session_id: UUID,
    payload: AttendeeRequest,
    service: IntakeInvitationService = Depends(get_invitation_service),
):
    return service.add_attendee(session_id, payload.email)


@router.delete("/{session_id}/attendees/{email}", response_model=IntakeSessionResponse)
def remove_attendee(
    session_id: UUID,
    email: str,
    service: IntakeInvitationService = Depends(get_invitation_service),
):
    return service.remove_attendee(session_id, email)


@router.post("/{session_id}/invitations")
def send_invitations(
    session_id: UUID,
    payload: Optional[SendInvitationsRequest] = None,
    service: IntakeInvitationService = Depends(get_invitation_service),
):
    """
    Send calendar invitations for the scheduled meeting.

    Returns one result per recipient. Recipients already invited for the
    same slot are skipped unless `resend` is set. Responds 409 when the
    meeting has no scheduled time.
    """
    payload = payload or SendInvitationsRequest()
    report: InvitationReport = service.send_invitations(
        session_id,
        emails=payload.emails,
        meeting_link=payload.meeting_link,
        resend=payload.resend,
    )
    return {
        **report.model_dump(mode="json"),
        "delivered": report.delivered,
        "requires_reauthorization": report.requires_reauthorization,
    }


@router.get("/{session_id}/invitations", response_model=List[InvitationRecordResponse])
def list_invitations(
    session_id: UUID,
    service: IntakeInvitationService = Depends(get_invitation_service),
):
    """Invitation delivery history"""
    return service.list_invitations(session_id)
