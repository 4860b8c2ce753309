"""
Unit tests for IntakeMeetingSessionService: snapshotting, response capture,
the draft/completed/follow-up state machine and artifact staleness.

Run: pytest tests/unit/test_intake_session_service.py -v
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest

from models.intake_meeting_session import SessionStatus
from services.intake_session_service import normalize_emails
from conftest import question_ids
from utils.exceptions import (
    IncompleteSessionError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)


def _snapshot_ids(session):
    return [q.id for q in session.snapshot.questions]


# ----------------------------------------------------------------------
# Creation
# ----------------------------------------------------------------------

class TestCreateSession:
    """Session creation from a template"""

    def test_starts_as_draft_with_snapshot(self, draft_session, template):
        assert draft_session.status == SessionStatus.DRAFT
        assert draft_session.completed_at is None
        assert draft_session.responses == {}
        assert _snapshot_ids(draft_session) == question_ids(template)
        assert draft_session.snapshot.name == template.name

    def test_snapshot_survives_template_edits(self, session_service, template_service, template, draft_session):
        before = _snapshot_ids(draft_session)
        template_service.remove_question(template.id, question_ids(template)[0])
        template_service.update_template(template.id, {"name": "Renamed"})

        reloaded = session_service.get_session(draft_session.id)
        assert _snapshot_ids(reloaded) == before
        assert reloaded.snapshot.name == "Role Discussion | Intake Meeting"

    def test_disabled_template_cannot_start_session(self, session_service, template_service, template):
        template_service.disable_template(template.id)
        with pytest.raises(PreconditionError):
            session_service.create_session(template.id, "acme", "dana")

    def test_unknown_template(self, session_service):
        with pytest.raises(NotFoundError):
            session_service.create_session("00000000-0000-0000-0000-000000000000", "acme", "dana")

    def test_blank_client_and_bad_attendee_reported_together(self, session_service, template):
        with pytest.raises(ValidationError) as exc_info:
            session_service.create_session(template.id, " ", "dana", attendees=["ok@example.com", "nope"])
        assert "client_id" in exc_info.value.details
        assert "attendees[1]" in exc_info.value.details

    def test_attendees_normalized(self, session_service, template):
        session = session_service.create_session(
            template.id, "acme", "dana", attendees=["Dana@Example.com", "dana@example.com ", "lee@example.com"]
        )
        assert session.attendees == ["dana@example.com", "lee@example.com"]

    def test_aware_schedule_stored_as_utc(self, session_service, template):
        tz = timezone(timedelta(hours=7))
        session = session_service.create_session(
            template.id, "acme", "dana", scheduled_at=datetime(2026, 11, 2, 22, 0, tzinfo=tz)
        )
        assert session.scheduled_at == datetime(2026, 11, 2, 15, 0)


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------

class TestRecordResponses:
    """Answer capture on a draft session"""

    def test_record_and_clear(self, session_service, draft_session):
        qid = _snapshot_ids(draft_session)[1]
        session = session_service.record_response(draft_session.id, qid, "  Jane  ")
        assert session.responses[qid] == {"kind": "text", "value": "Jane"}

        session = session_service.record_response(draft_session.id, qid, "")
        assert qid not in session.responses

    def test_invalid_value_leaves_responses_untouched(self, session_service, draft_session):
        ids = _snapshot_ids(draft_session)
        session_service.record_response(draft_session.id, ids[5], "4")
        with pytest.raises(ValidationError) as exc_info:
            session_service.record_response(draft_session.id, ids[5], "four")
        assert ids[5] in exc_info.value.details
        assert session_service.get_session(draft_session.id).responses[ids[5]]["value"] == 4

    def test_unknown_question(self, session_service, draft_session):
        with pytest.raises(ValidationError):
            session_service.record_response(draft_session.id, "not-a-question", "x")

    def test_batch_keeps_valid_answers(self, session_service, draft_session):
        ids = _snapshot_ids(draft_session)
        session, errors = session_service.record_responses(draft_session.id, {
            ids[0]: "Growth",
            ids[3]: "Mars",
            ids[4]: ["Go"],
        })
        assert set(errors) == {ids[3]}
        assert set(session.responses) == {ids[0], ids[4]}


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

class TestLifecycle:
    """draft -> completed | follow_up_needed, and back"""

    def test_role_discussion_scenario(self, session_service, draft_session):
        ids = _snapshot_ids(draft_session)

        session_service.record_response(draft_session.id, ids[0], "Backfill after a promotion")
        with pytest.raises(IncompleteSessionError) as exc_info:
            session_service.complete_session(draft_session.id)
        assert exc_info.value.missing_question_ids == [ids[1], ids[2]]

        session_service.record_response(draft_session.id, ids[1], "Jane Doe")
        session_service.record_response(draft_session.id, ids[2], "2026-12-01")
        completed = session_service.complete_session(draft_session.id)

        assert completed.status == SessionStatus.COMPLETED
        assert completed.completed_at is not None

    def test_incomplete_session_stays_draft(self, session_service, draft_session):
        with pytest.raises(IncompleteSessionError):
            session_service.complete_session(draft_session.id)
        session = session_service.get_session(draft_session.id)
        assert session.status == SessionStatus.DRAFT
        assert session.completed_at is None

    def test_complete_twice_fails(self, session_service, completed_session):
        with pytest.raises(PreconditionError):
            session_service.complete_session(completed_session.id)

    def test_follow_up_allowed_with_missing_answers(self, session_service, draft_session):
        session = session_service.mark_follow_up(draft_session.id, ["Confirm budget", "  "])
        assert session.status == SessionStatus.FOLLOW_UP_NEEDED
        assert session.follow_up_actions == ["Confirm budget"]
        assert session.completed_at is None

    def test_follow_up_needs_an_action(self, session_service, draft_session):
        with pytest.raises(ValidationError):
            session_service.mark_follow_up(draft_session.id, ["   "])

    def test_follow_up_only_from_draft(self, session_service, completed_session):
        with pytest.raises(PreconditionError):
            session_service.mark_follow_up(completed_session.id, ["Confirm budget"])

    def test_reopen_clears_completed_at(self, session_service, completed_session):
        reopened = session_service.reopen_session(completed_session.id)
        assert reopened.status == SessionStatus.DRAFT
        assert reopened.completed_at is None

    def test_reopen_draft_fails(self, session_service, draft_session):
        with pytest.raises(PreconditionError):
            session_service.reopen_session(draft_session.id)

    def test_delete_in_any_state(self, session_service, completed_session):
        session_id = completed_session.id
        session_service.delete_session(session_id)
        with pytest.raises(NotFoundError):
            session_service.get_session(session_id)


# ----------------------------------------------------------------------
# Edits after completion
# ----------------------------------------------------------------------

class TestAdministrativeEdits:
    """Non-draft sessions accept only administrative response edits"""

    def test_plain_edit_rejected(self, session_service, completed_session):
        ids = _snapshot_ids(completed_session)
        with pytest.raises(PreconditionError):
            session_service.record_response(completed_session.id, ids[1], "Someone else")

    def test_admin_edit_allowed(self, session_service, completed_session):
        ids = _snapshot_ids(completed_session)
        session = session_service.record_response(
            completed_session.id, ids[1], "Someone else", administrative=True
        )
        assert session.responses[ids[1]]["value"] == "Someone else"
        assert session.status == SessionStatus.COMPLETED

    def test_admin_edit_cannot_clear_required_answer(self, session_service, completed_session):
        ids = _snapshot_ids(completed_session)
        with pytest.raises(PreconditionError):
            session_service.record_response(completed_session.id, ids[0], "", administrative=True)
        session = session_service.get_session(completed_session.id)
        assert ids[0] in session.responses
        assert session.status == SessionStatus.COMPLETED
        assert session.completed_at is not None


class TestArtifactStaleness:
    """Changing answers marks stored artifacts stale"""

    def test_response_change_marks_artifacts_stale(
        self, session_service, generation_service, completed_session
    ):
        generation_service.generate_job_description(completed_session.id)
        ids = _snapshot_ids(completed_session)

        session = session_service.record_response(
            completed_session.id, ids[1], "New manager", administrative=True
        )
        assert session.job_description["stale"] is True

    def test_identical_answer_keeps_artifacts_fresh(
        self, session_service, generation_service, completed_session
    ):
        generation_service.generate_job_description(completed_session.id)
        ids = _snapshot_ids(completed_session)

        session = session_service.record_response(
            completed_session.id, ids[3], "Hybrid", administrative=True
        )
        assert session.job_description["stale"] is False


# ----------------------------------------------------------------------
# Metadata and listing
# ----------------------------------------------------------------------

class TestMetadata:
    """Session metadata edits and listing"""

    def test_update_notes_and_actions(self, session_service, draft_session):
        session = session_service.update_session(draft_session.id, {
            "notes": "Client prefers async interviews",
            "follow_up_actions": ["Send salary bands", ""],
        })
        assert session.notes == "Client prefers async interviews"
        assert session.follow_up_actions == ["Send salary bands"]

    def test_update_rejects_status(self, session_service, draft_session):
        with pytest.raises(ValidationError):
            session_service.update_session(draft_session.id, {"status": "completed"})

    def test_rejected_patch_leaves_row_untouched(self, db, session_service, draft_session):
        with pytest.raises(ValidationError):
            session_service.update_session(draft_session.id, {"notes": "half applied", "conducted_by": ""})
        db.commit()
        db.expire_all()

        session = session_service.get_session(draft_session.id)
        assert session.notes is None
        assert session.conducted_by == "dana"

    def test_list_filters(self, session_service, template, draft_session, completed_session):
        other = session_service.create_session(template.id, "globex", "lee")

        assert [s.id for s in session_service.list_sessions(client_id="globex")] == [other.id]
        completed = session_service.list_sessions(status="completed")
        assert [s.id for s in completed] == [completed_session.id]
        assert len(session_service.list_sessions(template_id=str(template.id))) == 2

    def test_list_rejects_unknown_status(self, session_service):
        with pytest.raises(ValidationError):
            session_service.list_sessions(status="archived")


class TestNormalizeEmails:
    """Attendee email normalization"""

    def test_dedupes_case_insensitively(self):
        assert normalize_emails(["A@x.io", "a@x.io", "b@x.io"]) == ["a@x.io", "b@x.io"]

    def test_lists_every_offender(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_emails(["bad", "ok@x.io", "worse@"])
        assert set(exc_info.value.details) == {"attendees[0]", "attendees[2]"}
