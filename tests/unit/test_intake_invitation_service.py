"""
Unit tests for IntakeInvitationService: attendee maintenance, per-recipient
dispatch outcomes and idempotent re-sends.

Run: pytest tests/unit/test_intake_invitation_service.py -v
"""

import sys
from datetime import datetime
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest

from models.intake_meeting_invitation import InvitationStatus
from services import IntakeInvitationService
from services.intake_invitation_service import InvitationReport, RecipientResult, RecipientStatus
from conftest import FakeMailer
from utils.exceptions import (
    AuthScopeError,
    DeliveryError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)


# ----------------------------------------------------------------------
# Attendees
# ----------------------------------------------------------------------

class TestAttendees:
    """Attendee list maintenance"""

    def test_add_normalizes_and_dedupes(self, invitation_service, draft_session):
        invitation_service.add_attendee(draft_session.id, " Lee@Example.com ")
        session = invitation_service.add_attendee(draft_session.id, "lee@example.com")
        assert session.attendees == ["lee@example.com"]

    def test_add_invalid(self, invitation_service, draft_session):
        with pytest.raises(ValidationError):
            invitation_service.add_attendee(draft_session.id, "not-an-email")

    def test_remove(self, invitation_service, draft_session):
        invitation_service.add_attendee(draft_session.id, "lee@example.com")
        session = invitation_service.remove_attendee(draft_session.id, "LEE@example.com")
        assert session.attendees == []

    def test_remove_absent(self, invitation_service, draft_session):
        with pytest.raises(NotFoundError):
            invitation_service.remove_attendee(draft_session.id, "ghost@example.com")


# ----------------------------------------------------------------------
# Dispatch
# ----------------------------------------------------------------------

class TestSendInvitations:
    """Per-recipient invitation dispatch"""

    def test_unscheduled_meeting_rejected_before_sending(self, db, session_service, template):
        session = session_service.create_session(template.id, "acme", "dana")
        mailer = FakeMailer()
        service = IntakeInvitationService(db, mailer=mailer)

        with pytest.raises(PreconditionError) as exc_info:
            service.send_invitations(session.id, emails=["lee@example.com"])
        assert exc_info.value.message == "Cannot invite to an unscheduled meeting"
        assert mailer.sent == []

    def test_no_recipients(self, invitation_service, draft_session):
        with pytest.raises(ValidationError):
            invitation_service.send_invitations(draft_session.id)

    def test_auth_failure_does_not_abort_batch(self, db, draft_session):
        mailer = FakeMailer(failures={
            "b@example.com": AuthScopeError("Mail account needs reauthorization", email="b@example.com"),
        })
        service = IntakeInvitationService(db, mailer=mailer)

        report = service.send_invitations(
            draft_session.id,
            emails=["a@example.com", "b@example.com", "c@example.com"],
        )

        assert [r.email for r in report.results] == ["a@example.com", "b@example.com", "c@example.com"]
        assert [r.status for r in report.results] == [
            RecipientStatus.SENT,
            RecipientStatus.AUTH_SCOPE_ERROR,
            RecipientStatus.SENT,
        ]
        assert report.delivered == ["a@example.com", "c@example.com"]
        assert report.requires_reauthorization
        assert len(mailer.sent) == 3

        history = service.list_invitations(draft_session.id)
        assert sorted((r.email, r.status) for r in history) == [
            ("a@example.com", InvitationStatus.SENT),
            ("b@example.com", InvitationStatus.AUTH_SCOPE_ERROR),
            ("c@example.com", InvitationStatus.SENT),
        ]

    def test_delivered_recipients_join_attendees(self, invitation_service, session_service, draft_session):
        invitation_service.send_invitations(draft_session.id, emails=["Lee@Example.com"])
        assert session_service.get_session(draft_session.id).attendees == ["lee@example.com"]

    def test_invalid_and_duplicate_addresses(self, invitation_service, mailer, draft_session):
        report = invitation_service.send_invitations(
            draft_session.id,
            emails=["lee@example.com", "LEE@example.com", "nope"],
        )
        assert [(r.email, r.status) for r in report.results] == [
            ("lee@example.com", RecipientStatus.SENT),
            ("nope", RecipientStatus.INVALID),
        ]
        assert len(mailer.sent) == 1

    def test_delivery_error_recorded(self, db, draft_session):
        mailer = FakeMailer(failures={"a@example.com": DeliveryError("Mailbox full", email="a@example.com")})
        service = IntakeInvitationService(db, mailer=mailer)
        report = service.send_invitations(draft_session.id, emails=["a@example.com"])

        assert report.results[0].status == RecipientStatus.FAILED
        assert report.results[0].error == "Mailbox full"
        with pytest.raises(DeliveryError):
            report.raise_for_status()

    def test_metadata_passed_to_mailer(self, invitation_service, mailer, draft_session):
        invitation_service.send_invitations(
            draft_session.id, emails=["lee@example.com"], meeting_link="https://meet.example.com/abc"
        )
        sent = mailer.sent[0]
        assert sent["metadata"]["client_id"] == "acme-corp"
        assert sent["metadata"]["scheduled_at"] == datetime(2026, 11, 2, 15, 0)
        assert sent["meeting_link"] == "https://meet.example.com/abc"


# ----------------------------------------------------------------------
# Idempotency
# ----------------------------------------------------------------------

class TestIdempotency:
    """Re-sends for the same meeting slot"""

    def test_second_send_skips_delivered(self, invitation_service, mailer, draft_session):
        invitation_service.send_invitations(draft_session.id, emails=["lee@example.com"])
        report = invitation_service.send_invitations(draft_session.id, emails=["lee@example.com", "kim@example.com"])

        assert [(r.email, r.status) for r in report.results] == [
            ("lee@example.com", RecipientStatus.ALREADY_SENT),
            ("kim@example.com", RecipientStatus.SENT),
        ]
        assert [s["email"] for s in mailer.sent] == ["lee@example.com", "kim@example.com"]

    def test_resend_flag_sends_again(self, invitation_service, mailer, draft_session):
        invitation_service.send_invitations(draft_session.id, emails=["lee@example.com"])
        report = invitation_service.send_invitations(draft_session.id, emails=["lee@example.com"], resend=True)
        assert report.results[0].status == RecipientStatus.SENT
        assert len(mailer.sent) == 2

    def test_reschedule_sends_again(self, invitation_service, session_service, mailer, draft_session):
        invitation_service.send_invitations(draft_session.id, emails=["lee@example.com"])
        session_service.update_session(draft_session.id, {"scheduled_at": datetime(2026, 11, 9, 15, 0)})
        report = invitation_service.send_invitations(draft_session.id, emails=["lee@example.com"])
        assert report.results[0].status == RecipientStatus.SENT
        assert len(mailer.sent) == 2

    def test_failed_recipient_retried_next_time(self, db, draft_session):
        mailer = FakeMailer(failures={"a@example.com": DeliveryError("Temporary failure", email="a@example.com")})
        service = IntakeInvitationService(db, mailer=mailer)
        service.send_invitations(draft_session.id, emails=["a@example.com"])

        mailer.failures = {}
        report = service.send_invitations(draft_session.id, emails=["a@example.com"])
        assert report.results[0].status == RecipientStatus.SENT


class TestInvitationReport:
    """Report helpers"""

    def test_raise_for_status_prefers_auth_error(self):
        report = InvitationReport(session_id="s", results=[
            RecipientResult(email="a@x.io", status=RecipientStatus.AUTH_SCOPE_ERROR, error="reauthorize"),
            RecipientResult(email="b@x.io", status=RecipientStatus.FAILED, error="refused"),
        ])
        with pytest.raises(AuthScopeError):
            report.raise_for_status()

    def test_partial_success_does_not_raise(self):
        report = InvitationReport(session_id="s", results=[
            RecipientResult(email="a@x.io", status=RecipientStatus.SENT),
            RecipientResult(email="b@x.io", status=RecipientStatus.FAILED, error="refused"),
        ])
        report.raise_for_status()
        assert report.delivered == ["a@x.io"]
