"""
Intake Meeting Session Service - Business Logic Layer.

Owns the intake meeting lifecycle:
- Session creation from a template snapshot (usage tracked in the same transaction)
- Response capture into the session's response map
- State machine: draft -> completed | follow_up_needed, and reopen back to draft
- Metadata edits and deletion

Allowed transitions:
    draft            --complete_session-->  completed
    draft            --mark_follow_up-->    follow_up_needed
    completed        --reopen_session-->    draft
    follow_up_needed --reopen_session-->    draft
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlmodel import Session

from models.intake_meeting_session import IntakeMeetingSession, SessionStatus
from models.intake_meeting_snapshot import TemplateSnapshot
from repositories import IntakeMeetingSessionRepository, IntakeMeetingInvitationRepository
from services.intake_template_service import IntakeMeetingTemplateService
from services.response_capture import (
    answer_to_json,
    capture_email,
    capture_response,
    capture_responses,
    missing_required_questions,
)
from utils.clock import to_naive_utc, utc_now
from utils.exceptions import (
    IncompleteSessionError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SESSION_PATCH_FIELDS = {"notes", "scheduled_at", "follow_up_actions", "conducted_by", "attendees"}


def normalize_emails(emails: List[Any]) -> List[str]:
    """
    Validate and deduplicate email addresses (case-insensitive), keeping first-seen order.

    Raises:
        ValidationError: Any address is invalid; all offenders are listed
    """
    normalized: List[str] = []
    errors: Dict[str, str] = {}
    for index, raw in enumerate(emails or []):
        try:
            email = capture_email(raw)
        except ValidationError as e:
            errors[f"attendees[{index}]"] = e.message
            continue
        if email not in normalized:
            normalized.append(email)
    if errors:
        raise ValidationError("Invalid attendee email address(es)", details=errors)
    return normalized


def _clean_actions(actions: Any) -> List[str]:
    if actions is None:
        return []
    if not isinstance(actions, (list, tuple)):
        raise ValidationError("Follow-up actions must be a list", details={"follow_up_actions": "must be a list"})
    return [str(action).strip() for action in actions if action is not None and str(action).strip()]


def mark_artifacts_stale(session: IntakeMeetingSession) -> None:
    """Flag every generated artifact of the session as out of date with its responses."""
    if session.job_description:
        session.job_description = {**session.job_description, "stale": True}
    if session.interview_templates:
        session.interview_templates = {
            interview_type: {**artifact, "stale": True}
            for interview_type, artifact in session.interview_templates.items()
        }


class IntakeMeetingSessionService:
    """
    Application service for intake meeting sessions.

    Responsibilities:
    - Create sessions bound to a template snapshot and a client
    - Capture and merge responses, validated against the snapshot
    - Enforce lifecycle transitions and the completion invariant
    - Mark generated artifacts stale when answers change
    """

    def __init__(
        self,
        db_session: Session,
        template_service: Optional[IntakeMeetingTemplateService] = None,
    ):
        self.db = db_session
        self.template_service = template_service or IntakeMeetingTemplateService(db_session)

        # Repositories
        self.session_repo = IntakeMeetingSessionRepository(db_session)
        self.invitation_repo = IntakeMeetingInvitationRepository(db_session)

    # ============ QUERIES ============

    def get_session(self, session_id: Any) -> IntakeMeetingSession:
        session = self.session_repo.get_by_id(session_id)
        if not session:
            raise NotFoundError("Intake meeting session", session_id)
        return session

    def list_sessions(
        self,
        client_id: Optional[str] = None,
        status: Optional[Any] = None,
        template_id: Optional[Any] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[IntakeMeetingSession]:
        parsed_status = None
        if status is not None:
            try:
                parsed_status = SessionStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown session status '{status}'", details={"status": "invalid"})

        parsed_template_id = None
        if template_id is not None:
            try:
                parsed_template_id = template_id if isinstance(template_id, UUID) else UUID(str(template_id))
            except ValueError:
                raise ValidationError("Invalid template id", details={"template_id": "invalid"})

        return self.session_repo.list_sessions(
            client_id=client_id,
            status=parsed_status,
            template_id=parsed_template_id,
            limit=limit,
            offset=offset,
        )

    # ============ CREATE ============

    def create_session(
        self,
        template_id: Any,
        client_id: str,
        conducted_by: str,
        scheduled_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        attendees: Optional[List[str]] = None,
    ) -> IntakeMeetingSession:
        """
        Start a draft session from a template.

        The template's questions are copied into the session, and the
        template's usage is incremented in the same transaction.

        Raises:
            NotFoundError: Unknown template
            PreconditionError: Template is disabled
            ValidationError: Blank client/conductor or invalid attendee emails
        """
        template = self.template_service.get_template(template_id)
        if not template.is_active:
            raise PreconditionError(
                "Cannot start a session from a disabled template",
                details={"template_id": str(template.id)},
            )

        errors: Dict[str, str] = {}
        if not client_id or not client_id.strip():
            errors["client_id"] = "required"
        if not conducted_by or not conducted_by.strip():
            errors["conducted_by"] = "required"
        try:
            normalized_attendees = normalize_emails(attendees or [])
        except ValidationError as e:
            errors.update(e.details)
            normalized_attendees = []
        if errors:
            raise ValidationError("Invalid intake meeting session", details=errors)

        snapshot = TemplateSnapshot.from_template(template)
        session = IntakeMeetingSession(
            template_id=template.id,
            template_snapshot=snapshot.model_dump(mode="json"),
            client_id=client_id.strip(),
            conducted_by=conducted_by.strip(),
            status=SessionStatus.DRAFT,
            scheduled_at=to_naive_utc(scheduled_at),
            notes=notes,
            attendees=normalized_attendees,
        )

        self.session_repo.create(session, commit=False)
        self.template_service.increment_usage(template)
        self.db.commit()
        self.db.refresh(session)

        logger.info("Created intake session %s from template %s for client %s", session.id, template.id, session.client_id)
        return session

    # ============ RESPONSES ============

    def record_response(
        self,
        session_id: Any,
        question_id: str,
        value: Any,
        administrative: bool = False,
    ) -> IntakeMeetingSession:
        """
        Capture one answer and merge it into the session.

        A blank value clears the answer. Sessions that are no longer drafts
        only accept administrative edits, and an administrative edit may not
        leave a completed session without a required answer.

        Raises:
            NotFoundError: Unknown session
            PreconditionError: Non-draft session without `administrative`, or
                the edit would break a completed session
            ValidationError: Unknown question or invalid value
        """
        session = self._lock_session(session_id)
        self._check_editable(session, administrative)

        answer = capture_response(session.snapshot, question_id, value)
        responses = dict(session.responses or {})
        if answer is None:
            responses.pop(str(question_id), None)
        else:
            responses[str(question_id)] = answer_to_json(answer)

        self._apply_responses(session, responses)
        return session

    def record_responses(
        self,
        session_id: Any,
        values: Dict[str, Any],
        administrative: bool = False,
    ) -> Tuple[IntakeMeetingSession, Dict[str, str]]:
        """
        Capture many answers; valid ones are merged, invalid ones reported per question.

        Returns:
            (session, errors keyed by question id)
        """
        session = self._lock_session(session_id)
        self._check_editable(session, administrative)

        result = capture_responses(session.snapshot, values or {})
        responses = dict(session.responses or {})
        for question_id, answer in result.accepted.items():
            if answer is None:
                responses.pop(question_id, None)
            else:
                responses[question_id] = answer_to_json(answer)

        self._apply_responses(session, responses)
        return session, result.errors

    # ============ METADATA ============

    def update_session(self, session_id: Any, patch: Dict[str, Any]) -> IntakeMeetingSession:
        """
        Edit session metadata: notes, scheduled_at, follow_up_actions, conducted_by, attendees.

        Raises:
            ValidationError: Unknown keys or invalid values
        """
        unknown = set(patch) - SESSION_PATCH_FIELDS
        if unknown:
            raise ValidationError(
                "Unsupported session fields",
                details={field: "not updatable" for field in sorted(unknown)},
            )

        # Validate the whole patch before touching the row
        changes: Dict[str, Any] = {}
        if "notes" in patch:
            changes["notes"] = patch["notes"]
        if "scheduled_at" in patch:
            changes["scheduled_at"] = to_naive_utc(patch["scheduled_at"])
        if "follow_up_actions" in patch:
            changes["follow_up_actions"] = _clean_actions(patch["follow_up_actions"])
        if "conducted_by" in patch:
            conducted_by = patch["conducted_by"]
            if not conducted_by or not str(conducted_by).strip():
                raise ValidationError("conducted_by is required", details={"conducted_by": "required"})
            changes["conducted_by"] = str(conducted_by).strip()
        if "attendees" in patch:
            changes["attendees"] = normalize_emails(patch["attendees"] or [])

        session = self._lock_session(session_id)
        for field, value in changes.items():
            setattr(session, field, value)

        session.updated_at = utc_now()
        return self.session_repo.update(session)

    # ============ LIFECYCLE ============

    def complete_session(self, session_id: Any) -> IntakeMeetingSession:
        """
        draft -> completed.

        Raises:
            PreconditionError: Session is not a draft
            IncompleteSessionError: Required questions are unanswered
        """
        session = self._lock_session(session_id)
        if session.status != SessionStatus.DRAFT:
            raise PreconditionError(
                "Only draft sessions can be completed",
                details={"status": SessionStatus(session.status).value},
            )

        missing = missing_required_questions(session.snapshot, session.responses or {})
        if missing:
            raise IncompleteSessionError(missing)

        now = utc_now()
        session.status = SessionStatus.COMPLETED
        session.completed_at = now
        session.updated_at = now
        self.session_repo.update(session)
        logger.info("Completed intake session %s", session.id)
        return session

    def mark_follow_up(self, session_id: Any, actions: List[str]) -> IntakeMeetingSession:
        """
        draft -> follow_up_needed. Allowed while required answers are missing.

        Raises:
            PreconditionError: Session is not a draft
            ValidationError: No non-blank follow-up action given
        """
        cleaned = _clean_actions(actions)
        if not cleaned:
            raise ValidationError(
                "At least one follow-up action is required",
                details={"follow_up_actions": "required"},
            )

        session = self._lock_session(session_id)
        if session.status != SessionStatus.DRAFT:
            raise PreconditionError(
                "Only draft sessions can be marked for follow-up",
                details={"status": SessionStatus(session.status).value},
            )

        session.status = SessionStatus.FOLLOW_UP_NEEDED
        session.follow_up_actions = cleaned
        session.completed_at = None
        session.updated_at = utc_now()
        self.session_repo.update(session)
        logger.info("Intake session %s needs follow-up (%d action(s))", session.id, len(cleaned))
        return session

    def reopen_session(self, session_id: Any) -> IntakeMeetingSession:
        """
        completed | follow_up_needed -> draft. Generated artifacts stay attached.

        Raises:
            PreconditionError: Session is already a draft
        """
        session = self._lock_session(session_id)
        if session.status == SessionStatus.DRAFT:
            raise PreconditionError("Session is already a draft", details={"status": SessionStatus.DRAFT.value})

        session.status = SessionStatus.DRAFT
        session.completed_at = None
        session.updated_at = utc_now()
        self.session_repo.update(session)
        logger.info("Reopened intake session %s", session.id)
        return session

    def delete_session(self, session_id: Any) -> None:
        """Delete a session in any state together with its invitation history."""
        session = self.get_session(session_id)
        removed = self.invitation_repo.delete_by_session(session.id)
        self.session_repo.delete(session, commit=False)
        self.db.commit()
        logger.info("Deleted intake session %s (%d invitation record(s))", session_id, removed)

    # ============ HELPERS ============

    def _lock_session(self, session_id: Any) -> IntakeMeetingSession:
        session = self.get_session(session_id)
        return self.session_repo.get_for_update(session.id)

    def _check_editable(self, session: IntakeMeetingSession, administrative: bool) -> None:
        if session.status != SessionStatus.DRAFT and not administrative:
            raise PreconditionError(
                "Responses of a non-draft session can only be changed administratively",
                details={"status": SessionStatus(session.status).value},
            )

    def _apply_responses(self, session: IntakeMeetingSession, responses: Dict[str, Any]) -> None:
        if session.status == SessionStatus.COMPLETED:
            missing = missing_required_questions(session.snapshot, responses)
            if missing:
                self.db.rollback()
                raise PreconditionError(
                    "Edit would leave a completed session without required answers",
                    details={"missing_question_ids": missing},
                )

        if responses == (session.responses or {}):
            self.db.commit()
            return

        session.responses = responses
        mark_artifacts_stale(session)
        session.updated_at = utc_now()
        self.session_repo.update(session)
