"""
Intake Invitation Service - calendar invitations for scheduled intake meetings.

- Attendee list maintenance (validated, case-insensitive dedupe)
- Per-recipient invitation dispatch with recorded outcomes
- Idempotent re-sends for the same meeting slot
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field
from sqlmodel import Session

from models.intake_meeting_invitation import IntakeMeetingInvitation, InvitationStatus
from models.intake_meeting_session import IntakeMeetingSession
from repositories import IntakeMeetingInvitationRepository, IntakeMeetingSessionRepository
from services.response_capture import capture_email
from utils.clock import utc_now
from utils.exceptions import (
    AuthScopeError,
    DeliveryError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from utils.mail_service import DeliveryResult

logger = logging.getLogger(__name__)


class InviteMailer(Protocol):
    """Mail/invite backend (see utils.mail_service.SMTPInviteMailer)."""

    def send_invite(
        self,
        to_email: str,
        session_metadata: Dict[str, Any],
        meeting_link: Optional[str] = None,
    ) -> DeliveryResult:
        ...


class RecipientStatus(str, Enum):
    SENT = "sent"
    ALREADY_SENT = "already_sent"
    INVALID = "invalid"
    FAILED = "failed"
    AUTH_SCOPE_ERROR = "auth_scope_error"


class RecipientResult(BaseModel):
    email: str
    status: RecipientStatus
    error: Optional[str] = None
    provider_message_id: Optional[str] = None


class InvitationReport(BaseModel):
    """Per-recipient outcome of one send_invitations call"""
    session_id: str
    results: List[RecipientResult] = Field(default_factory=list)

    @property
    def delivered(self) -> List[str]:
        return [r.email for r in self.results if r.status == RecipientStatus.SENT]

    @property
    def requires_reauthorization(self) -> bool:
        return any(r.status == RecipientStatus.AUTH_SCOPE_ERROR for r in self.results)

    def raise_for_status(self) -> None:
        """
        Raise when nothing reached anyone.

        Raises:
            AuthScopeError: At least one recipient failed on credentials
            DeliveryError: Recipients failed for other reasons
        """
        if any(r.status in (RecipientStatus.SENT, RecipientStatus.ALREADY_SENT) for r in self.results):
            return
        failures = {r.email: r.error for r in self.results if r.error}
        if self.requires_reauthorization:
            raise AuthScopeError("Mail account needs reauthorization", details={"recipients": failures})
        if failures:
            raise DeliveryError("No invitation could be delivered", details={"recipients": failures})


class IntakeInvitationService:
    """
    Application service for intake meeting invitations.

    One mailer call per recipient, no automatic retry. Auth-scope and
    delivery failures are recorded per recipient and never abort the rest
    of the batch.
    """

    def __init__(self, db_session: Session, mailer: Optional[InviteMailer] = None):
        self.db = db_session
        if mailer is None:
            from utils.mail_service import SMTPInviteMailer

            mailer = SMTPInviteMailer()
        self.mailer = mailer

        # Repositories
        self.session_repo = IntakeMeetingSessionRepository(db_session)
        self.invitation_repo = IntakeMeetingInvitationRepository(db_session)

    # ============ ATTENDEES ============

    def add_attendee(self, session_id: Any, email: str) -> IntakeMeetingSession:
        """
        Raises:
            ValidationError: Invalid address
        """
        normalized = capture_email(email)
        session = self._lock_session(session_id)
        attendees = list(session.attendees or [])
        if normalized not in attendees:
            attendees.append(normalized)
            session.attendees = attendees
            session.updated_at = utc_now()
        return self.session_repo.update(session)

    def remove_attendee(self, session_id: Any, email: str) -> IntakeMeetingSession:
        """
        Raises:
            NotFoundError: Address is not an attendee
        """
        normalized = email.strip().lower() if isinstance(email, str) else email
        session = self._lock_session(session_id)
        attendees = list(session.attendees or [])
        if normalized not in attendees:
            self.db.rollback()
            raise NotFoundError("Attendee", email)
        attendees.remove(normalized)
        session.attendees = attendees
        session.updated_at = utc_now()
        return self.session_repo.update(session)

    # ============ DISPATCH ============

    def send_invitations(
        self,
        session_id: Any,
        emails: Optional[List[str]] = None,
        meeting_link: Optional[str] = None,
        resend: bool = False,
    ) -> InvitationReport:
        """
        Invite recipients to the session's scheduled meeting.

        Args:
            session_id: Session identifier
            emails: Recipients (defaults to the session's attendees)
            meeting_link: Optional video call link for the invitation
            resend: Send again to recipients already invited for this slot

        Returns:
            One result per distinct requested address

        Raises:
            NotFoundError: Unknown session
            PreconditionError: The meeting is not scheduled
            ValidationError: No recipients
        """
        session = self._get_session(session_id)
        if session.scheduled_at is None:
            raise PreconditionError(
                "Cannot invite to an unscheduled meeting",
                details={"session_id": str(session.id)},
            )

        requested = list(emails) if emails is not None else list(session.attendees or [])
        if not requested:
            raise ValidationError("No invitation recipients", details={"emails": "required"})

        scheduled_for = session.scheduled_at
        already_sent = set() if resend else self.invitation_repo.sent_emails(session.id, scheduled_for)
        metadata = {
            "session_id": str(session.id),
            "client_id": session.client_id,
            "conducted_by": session.conducted_by,
            "scheduled_at": scheduled_for,
            "attendees": list(session.attendees or []),
        }

        report = InvitationReport(session_id=str(session.id))
        seen: List[str] = []

        for raw in requested:
            try:
                email = capture_email(raw)
            except ValidationError as e:
                key = str(raw).strip().lower()
                if key not in seen:
                    seen.append(key)
                    report.results.append(RecipientResult(email=str(raw), status=RecipientStatus.INVALID, error=e.message))
                continue

            if email in seen:
                continue
            seen.append(email)

            if email in already_sent:
                report.results.append(RecipientResult(email=email, status=RecipientStatus.ALREADY_SENT))
                continue

            report.results.append(self._dispatch(session, email, metadata, meeting_link))

        delivered = report.delivered
        if delivered:
            attendees = list(session.attendees or [])
            attendees.extend(email for email in delivered if email not in attendees)
            session.attendees = attendees
            session.updated_at = utc_now()
            self.db.add(session)
        self.db.commit()

        logger.info(
            "Invitations for session %s: %d sent, %d skipped, %d failed",
            session.id,
            len(delivered),
            sum(1 for r in report.results if r.status == RecipientStatus.ALREADY_SENT),
            sum(1 for r in report.results if r.status in (
                RecipientStatus.FAILED, RecipientStatus.AUTH_SCOPE_ERROR, RecipientStatus.INVALID,
            )),
        )
        return report

    def list_invitations(self, session_id: Any) -> List[IntakeMeetingInvitation]:
        session = self._get_session(session_id)
        return self.invitation_repo.list_by_session(session.id)

    # ============ HELPERS ============

    def _dispatch(
        self,
        session: IntakeMeetingSession,
        email: str,
        metadata: Dict[str, Any],
        meeting_link: Optional[str],
    ) -> RecipientResult:
        record = IntakeMeetingInvitation(
            session_id=session.id,
            email=email,
            scheduled_for=metadata["scheduled_at"],
            meeting_link=meeting_link,
            status=InvitationStatus.FAILED,
        )
        try:
            delivery = self.mailer.send_invite(email, metadata, meeting_link=meeting_link)
        except AuthScopeError as e:
            logger.warning("Invitation to %s needs reauthorization: %s", email, e.message)
            record.status = InvitationStatus.AUTH_SCOPE_ERROR
            record.error = e.message
            result = RecipientResult(email=email, status=RecipientStatus.AUTH_SCOPE_ERROR, error=e.message)
        except DeliveryError as e:
            logger.warning("Invitation to %s failed: %s", email, e.message)
            record.error = e.message
            result = RecipientResult(email=email, status=RecipientStatus.FAILED, error=e.message)
        else:
            record.status = InvitationStatus.SENT
            record.provider_message_id = delivery.provider_message_id if delivery else None
            result = RecipientResult(
                email=email,
                status=RecipientStatus.SENT,
                provider_message_id=record.provider_message_id,
            )

        self.invitation_repo.create(record, commit=False)
        return result

    def _get_session(self, session_id: Any) -> IntakeMeetingSession:
        session = self.session_repo.get_by_id(session_id)
        if not session:
            raise NotFoundError("Intake meeting session", session_id)
        return session

    def _lock_session(self, session_id: Any) -> IntakeMeetingSession:
        session = self._get_session(session_id)
        return self.session_repo.get_for_update(session.id)
