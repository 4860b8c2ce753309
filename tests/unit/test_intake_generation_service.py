"""
Unit tests for IntakeGenerationService: preconditions, the bounded retry
loop, the per-session in-flight guard and direct artifact edits.

Run: pytest tests/unit/test_intake_generation_service.py -v
"""

import sys
from datetime import timedelta
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from sqlmodel import Session

from config.settings import settings
from models.intake_artifacts import ArtifactType, GeneratedJobDescription, InterviewType
from models.intake_meeting_session import SessionStatus
from repositories import IntakeMeetingSessionRepository
from services import IntakeGenerationService, IntakeMeetingSessionService, MAX_GENERATION_ATTEMPTS
from services.intake_generation_service import build_intake_context, generate_with_retries
from conftest import VALID_INTERVIEW_TEMPLATE, VALID_JOB_DESCRIPTION, FakeGenerator
from utils.clock import utc_now
from utils.exceptions import (
    ConflictError,
    GenerationBackendError,
    GenerationFailedError,
    PreconditionError,
    ValidationError,
)


def _service(db, sleeps, *outputs):
    generator = FakeGenerator(*outputs)
    return IntakeGenerationService(db, generator=generator, sleep=sleeps.append), generator


# ----------------------------------------------------------------------
# Retry loop
# ----------------------------------------------------------------------

class TestGenerateWithRetries:
    """Bounded retries around one structured generation"""

    def test_first_valid_output_wins(self, sleeps):
        generator = FakeGenerator(VALID_JOB_DESCRIPTION)
        model, raw, attempts = generate_with_retries(
            generator, GeneratedJobDescription, "prompt", "system", sleep=sleeps.append
        )
        assert attempts == 1
        assert model.title == VALID_JOB_DESCRIPTION["title"]
        assert raw == VALID_JOB_DESCRIPTION
        assert sleeps == []

    def test_schema_sent_to_backend(self, sleeps):
        generator = FakeGenerator(VALID_JOB_DESCRIPTION)
        generate_with_retries(generator, GeneratedJobDescription, "prompt", "system", sleep=sleeps.append)
        assert generator.calls[0]["json_schema"] == GeneratedJobDescription.model_json_schema()

    def test_recovers_after_failures(self, sleeps):
        too_few_skills = {**VALID_JOB_DESCRIPTION, "skills": ["Python"]}
        generator = FakeGenerator(
            GenerationBackendError("Model returned malformed JSON"),
            too_few_skills,
            VALID_JOB_DESCRIPTION,
        )
        _, _, attempts = generate_with_retries(
            generator, GeneratedJobDescription, "prompt", "system", sleep=sleeps.append
        )
        assert attempts == 3
        assert len(generator.calls) == 3
        assert sleeps == [settings.GENERATION_BACKOFF_SECONDS, settings.GENERATION_BACKOFF_SECONDS * 2]

    def test_exactly_three_attempts_then_fail(self, sleeps):
        generator = FakeGenerator(TimeoutError("timed out"))
        with pytest.raises(GenerationFailedError) as exc_info:
            generate_with_retries(generator, GeneratedJobDescription, "prompt", "system", sleep=sleeps.append)
        assert len(generator.calls) == MAX_GENERATION_ATTEMPTS == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, TimeoutError)
        assert "TimeoutError" in exc_info.value.details["last_error"]


# ----------------------------------------------------------------------
# Job description
# ----------------------------------------------------------------------

class TestGenerateJobDescription:
    """Job description generation from a session"""

    def test_requires_completed_session(self, db, sleeps, draft_session):
        service, generator = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        with pytest.raises(PreconditionError):
            service.generate_job_description(draft_session.id)
        assert generator.calls == []

    def test_payload_stored_verbatim(self, db, sleeps, session_service, completed_session):
        service, generator = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        artifact = service.generate_job_description(completed_session.id)

        assert artifact.artifact_type == ArtifactType.JOB_DESCRIPTION
        assert artifact.content == VALID_JOB_DESCRIPTION
        assert artifact.attempts == 1

        stored = session_service.get_session(completed_session.id).job_description
        assert stored["content"] == VALID_JOB_DESCRIPTION
        assert stored["stale"] is False
        assert stored["edited"] is False

    def test_prompt_carries_answers_and_instructions(self, db, sleeps, completed_session):
        service, generator = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        service.generate_job_description(completed_session.id, extra_instructions="Emphasize mentoring")

        prompt = generator.calls[0]["prompt"]
        assert "acme-corp" in prompt
        assert "Backfill after a promotion" in prompt
        assert "Python, Go" in prompt
        assert "Emphasize mentoring" in prompt
        assert generator.calls[0]["max_tokens"] == settings.JOB_DESCRIPTION_MAX_TOKENS

    def test_failure_stores_nothing_and_releases_guard(self, db, sleeps, session_service, completed_session):
        service, generator = _service(db, sleeps, {"title": "incomplete"})
        with pytest.raises(GenerationFailedError):
            service.generate_job_description(completed_session.id)

        assert len(generator.calls) == 3
        session = session_service.get_session(completed_session.id)
        assert session.job_description is None
        assert session.generation_token is None

        retry, _ = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        assert retry.generate_job_description(completed_session.id).attempts == 1

    def test_regeneration_replaces_artifact(self, db, sleeps, session_service, completed_session):
        service, _ = _service(db, sleeps, VALID_JOB_DESCRIPTION, {**VALID_JOB_DESCRIPTION, "title": "Staff Engineer"})
        service.generate_job_description(completed_session.id)
        service.generate_job_description(completed_session.id)
        stored = session_service.get_session(completed_session.id).job_description
        assert stored["content"]["title"] == "Staff Engineer"

    def test_regeneration_is_idempotent(self, db, sleeps, session_service, completed_session):
        service, generator = _service(db, sleeps, VALID_JOB_DESCRIPTION)

        service.generate_job_description(completed_session.id)
        first = session_service.get_session(completed_session.id).job_description
        service.generate_job_description(completed_session.id)
        second = session_service.get_session(completed_session.id).job_description

        assert generator.calls[0]["prompt"] == generator.calls[1]["prompt"]
        assert first["content"] == second["content"] == VALID_JOB_DESCRIPTION
        assert second["stale"] is False
        assert second["edited"] is False


class EditingGenerator:
    """Generator that changes the session from another connection while the call is in flight."""

    def __init__(self, engine, edit, payload=VALID_JOB_DESCRIPTION):
        self.engine = engine
        self.edit = edit
        self.payload = payload
        self.calls = 0

    def structured_generate(self, prompt, json_schema, system_prompt, model_id=None, max_tokens=None, temperature=None):
        self.calls += 1
        with Session(self.engine) as other_db:
            self.edit(IntakeMeetingSessionService(other_db))
        return dict(self.payload)


class TestSessionChangedDuringGeneration:
    """Output built from outdated answers is never stored"""

    def _assert_nothing_stored(self, db, session_service, session_id):
        db.expire_all()
        session = session_service.get_session(session_id)
        assert session.job_description is None
        assert session.interview_templates == {}
        assert session.generation_token is None
        return session

    def test_reopened_and_edited_session(self, db, engine, sleeps, session_service, completed_session):
        session_id = completed_session.id
        question_id = completed_session.snapshot.questions[1].id

        def reopen_and_edit(other_sessions):
            other_sessions.reopen_session(session_id)
            other_sessions.record_response(session_id, question_id, "New hiring manager")

        generator = EditingGenerator(engine, reopen_and_edit)
        service = IntakeGenerationService(db, generator=generator, sleep=sleeps.append)
        with pytest.raises(ConflictError) as exc_info:
            service.generate_job_description(session_id)
        assert exc_info.value.details["status"] == "draft"
        assert generator.calls == 1

        session = self._assert_nothing_stored(db, session_service, session_id)
        assert session.status == SessionStatus.DRAFT
        assert session.responses[question_id]["value"] == "New hiring manager"

    def test_administrative_edit_while_generating(self, db, engine, sleeps, session_service, completed_session):
        session_id = completed_session.id
        question_id = completed_session.snapshot.questions[1].id

        def edit_answer(other_sessions):
            other_sessions.record_response(session_id, question_id, "New hiring manager", administrative=True)

        generator = EditingGenerator(engine, edit_answer, payload=VALID_INTERVIEW_TEMPLATE)
        service = IntakeGenerationService(db, generator=generator, sleep=sleeps.append)
        with pytest.raises(ConflictError):
            service.generate_interview_template(session_id, InterviewType.TECHNICAL)

        session = self._assert_nothing_stored(db, session_service, session_id)
        assert session.status == SessionStatus.COMPLETED


# ----------------------------------------------------------------------
# Interview templates
# ----------------------------------------------------------------------

class TestGenerateInterviewTemplate:
    """Interview template generation per interview type"""

    def test_stored_under_its_type(self, db, sleeps, session_service, completed_session):
        service, generator = _service(db, sleeps, VALID_INTERVIEW_TEMPLATE)
        artifact = service.generate_interview_template(completed_session.id, "Technical")

        assert artifact.interview_type == InterviewType.TECHNICAL
        templates = session_service.get_session(completed_session.id).interview_templates
        assert set(templates) == {"Technical"}
        assert templates["Technical"]["content"] == VALID_INTERVIEW_TEMPLATE
        assert "Technical" in generator.calls[0]["prompt"]

    def test_types_are_independent(self, db, sleeps, session_service, completed_session):
        service, _ = _service(db, sleeps, VALID_INTERVIEW_TEMPLATE)
        service.generate_interview_template(completed_session.id, "Technical")
        service.generate_interview_template(completed_session.id, "Phone Screen")
        templates = session_service.get_session(completed_session.id).interview_templates
        assert set(templates) == {"Technical", "Phone Screen"}

    def test_job_description_feeds_prompt(self, db, sleeps, completed_session):
        service, generator = _service(db, sleeps, VALID_JOB_DESCRIPTION, VALID_INTERVIEW_TEMPLATE)
        service.generate_job_description(completed_session.id)
        service.generate_interview_template(completed_session.id, "Behavioral")
        assert "Senior Backend Engineer" in generator.calls[1]["prompt"]

    def test_unknown_type(self, db, sleeps, completed_session):
        service, generator = _service(db, sleeps, VALID_INTERVIEW_TEMPLATE)
        with pytest.raises(ValidationError):
            service.generate_interview_template(completed_session.id, "Karaoke")
        assert generator.calls == []


# ----------------------------------------------------------------------
# In-flight guard
# ----------------------------------------------------------------------

class TestGenerationGuard:
    """At most one generation per session at a time"""

    def test_concurrent_generation_conflicts(self, db, sleeps, completed_session):
        repo = IntakeMeetingSessionRepository(db)
        now = utc_now()
        assert repo.try_acquire_generation(completed_session.id, "other-worker", now, now - timedelta(minutes=10))

        service, generator = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        with pytest.raises(ConflictError):
            service.generate_job_description(completed_session.id)
        assert generator.calls == []

        # The losing call must not release the winner's guard
        db.refresh(completed_session)
        assert completed_session.generation_token == "other-worker"

    def test_stale_guard_taken_over(self, db, sleeps, completed_session):
        repo = IntakeMeetingSessionRepository(db)
        long_ago = utc_now() - timedelta(seconds=settings.GENERATION_LOCK_TTL_SECONDS + 60)
        assert repo.try_acquire_generation(completed_session.id, "crashed", long_ago, long_ago)

        service, _ = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        assert service.generate_job_description(completed_session.id).attempts == 1

    def test_release_requires_matching_token(self, db, completed_session):
        repo = IntakeMeetingSessionRepository(db)
        now = utc_now()
        repo.try_acquire_generation(completed_session.id, "mine", now, now)
        repo.release_generation(completed_session.id, "someone-else")
        db.refresh(completed_session)
        assert completed_session.generation_token == "mine"


# ----------------------------------------------------------------------
# Direct edits
# ----------------------------------------------------------------------

class TestUpdateArtifact:
    """Edits to stored artifacts without the backend"""

    def test_patch_merges_and_marks_edited(self, db, sleeps, session_service, completed_session):
        service, generator = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        service.generate_job_description(completed_session.id)

        ids = [q.id for q in completed_session.snapshot.questions]
        session_service.record_response(completed_session.id, ids[1], "New manager", administrative=True)

        artifact = service.update_artifact(completed_session.id, {"title": "Principal Engineer"})
        assert artifact.content["title"] == "Principal Engineer"
        assert artifact.content["skills"] == VALID_JOB_DESCRIPTION["skills"]
        assert artifact.edited is True
        assert artifact.stale is False
        assert len(generator.calls) == 1

    def test_creates_artifact_after_failed_generation(self, db, sleeps, session_service, completed_session):
        service, _ = _service(db, sleeps, VALID_INTERVIEW_TEMPLATE)
        artifact = service.update_artifact(
            completed_session.id, {"name": "Hand-written plan"}, interview_type="Final"
        )
        assert artifact.artifact_type == ArtifactType.INTERVIEW_TEMPLATE
        assert artifact.attempts == 0
        templates = session_service.get_session(completed_session.id).interview_templates
        assert templates["Final"]["content"] == {"name": "Hand-written plan"}

    def test_empty_patch_rejected(self, db, sleeps, completed_session):
        service, _ = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        with pytest.raises(ValidationError):
            service.update_artifact(completed_session.id, {})

    def test_edit_blocked_while_generating(self, db, sleeps, completed_session):
        repo = IntakeMeetingSessionRepository(db)
        now = utc_now()
        repo.try_acquire_generation(completed_session.id, "busy", now, now)

        service, _ = _service(db, sleeps, VALID_JOB_DESCRIPTION)
        with pytest.raises(ConflictError):
            service.update_artifact(completed_session.id, {"title": "X"})


# ----------------------------------------------------------------------
# Prompt context
# ----------------------------------------------------------------------

class TestIntakeContext:
    """Answers rendered into prompts"""

    def test_grouped_by_category_in_question_order(self, completed_session):
        context = build_intake_context(completed_session)
        assert context.index("**Role Requirements:**") < context.index("**Reporting Structure:**")
        assert "- Who does this person report to?: Jane Doe - VP Engineering" in context
        assert "Team size" not in context

    def test_no_answers(self, draft_session):
        assert build_intake_context(draft_session) == "(no answers recorded)"
