"""
Intake Generation Service - turns a completed intake meeting into artifacts.

- Job description generation
- Interview template generation, one per interview type
- Direct edits of generated artifacts

Every generation runs under a per-session guard (at most one in flight) and
a bounded retry budget of MAX_GENERATION_ATTEMPTS sequential attempts.
Malformed output, backend errors and timeouts all consume an attempt.
"""

import logging
import time
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Type
from uuid import uuid4

from pydantic import BaseModel
from sqlmodel import Session

from config.settings import settings
from models.intake_artifacts import (
    ArtifactType,
    GeneratedArtifact,
    GeneratedInterviewTemplate,
    GeneratedJobDescription,
    InterviewType,
)
from models.intake_meeting_session import IntakeMeetingSession, SessionStatus
from repositories import IntakeMeetingSessionRepository
from utils.clock import utc_now
from utils.exceptions import (
    ConflictError,
    GenerationFailedError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from utils.prompt_loader import PromptLoader

logger = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 3

# Interview rounds that warrant a shorter or longer question list
QUESTION_COUNT_BY_TYPE = {
    InterviewType.PHONE_SCREEN: 5,
    InterviewType.CULTURE_FIT: 6,
    InterviewType.CASE_STUDY: 4,
    InterviewType.PRESENTATION: 4,
}
DEFAULT_QUESTION_COUNT = 8


class StructuredGenerator(Protocol):
    """Schema-constrained text generation backend (see utils.llm_service.LLMService)."""

    def structured_generate(
        self,
        prompt: str,
        json_schema: Dict[str, Any],
        system_prompt: str,
        model_id: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Dict[str, Any]:
        ...


def generate_with_retries(
    generator: StructuredGenerator,
    output_model: Type[BaseModel],
    prompt: str,
    system_prompt: str,
    max_tokens: Optional[int] = None,
    model_id: Optional[str] = None,
    temperature: Optional[float] = None,
    label: str = "generation",
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[BaseModel, Dict[str, Any], int]:
    """
    Call the backend until it returns output that validates against `output_model`.

    Args:
        generator: Structured generation backend
        output_model: Pydantic model; its JSON schema is sent to the backend
        prompt: Human prompt
        system_prompt: System prompt
        max_tokens: Completion token ceiling
        model_id: Model override
        temperature: Sampling temperature
        label: Name used in log lines
        sleep: Backoff sleeper (injectable for tests)

    Returns:
        (validated model, raw payload, attempts used)

    Raises:
        GenerationFailedError: All attempts failed; carries the last cause
    """
    json_schema = output_model.model_json_schema()
    last_error: Optional[BaseException] = None

    for attempt in range(1, MAX_GENERATION_ATTEMPTS + 1):
        try:
            raw = generator.structured_generate(
                prompt,
                json_schema,
                system_prompt,
                model_id=model_id,
                max_tokens=max_tokens,
                temperature=temperature,
            )
            validated = output_model.model_validate(raw)
            if attempt > 1:
                logger.info("%s succeeded on attempt %d", label, attempt)
            return validated, dict(raw), attempt
        except Exception as e:
            last_error = e
            logger.warning(
                "%s attempt %d/%d failed: %s: %s",
                label, attempt, MAX_GENERATION_ATTEMPTS, type(e).__name__, e,
            )
            if attempt < MAX_GENERATION_ATTEMPTS:
                sleep(settings.GENERATION_BACKOFF_SECONDS * (2 ** (attempt - 1)))

    logger.error("%s failed after %d attempts", label, MAX_GENERATION_ATTEMPTS)
    raise GenerationFailedError(MAX_GENERATION_ATTEMPTS, last_error)


# ============ PROMPT CONTEXT ============

def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def build_intake_context(session: IntakeMeetingSession) -> str:
    """
    Render answered questions grouped by category, in snapshot order.

    Unanswered questions are left out. Output is deterministic for a given
    snapshot and response map.
    """
    snapshot = session.snapshot
    responses = session.responses or {}

    grouped: Dict[str, List[str]] = {}
    for question in snapshot.questions:
        entry = responses.get(question.id)
        if not entry:
            continue
        value = entry.get("value") if isinstance(entry, dict) else entry
        if value in (None, "", []):
            continue
        grouped.setdefault(question.category, []).append(
            f"- {question.question}: {_format_value(value)}"
        )

    if not grouped:
        return "(no answers recorded)"

    blocks = [f"**{category}:**\n" + "\n".join(lines) for category, lines in grouped.items()]
    return "\n\n".join(blocks)


def _notes_section(session: IntakeMeetingSession) -> str:
    if not session.notes or not session.notes.strip():
        return ""
    return f"\n**Additional Notes:**\n{session.notes.strip()}\n"


def _follow_up_section(session: IntakeMeetingSession) -> str:
    if not session.follow_up_actions:
        return ""
    lines = "\n".join(f"- {action}" for action in session.follow_up_actions)
    return f"\n**Follow-up Actions:**\n{lines}\n"


def _instructions_section(extra_instructions: Optional[str]) -> str:
    if not extra_instructions or not extra_instructions.strip():
        return "\n"
    return f"\n**Additional Instructions:**\n{extra_instructions.strip()}\n\n"


def _job_context(session: IntakeMeetingSession) -> str:
    if not session.job_description:
        return ""
    content = session.job_description.get("content") or {}
    lines = [f"**Job Description:** {content.get('title', 'Untitled role')}"]
    if content.get("experience_level"):
        lines.append(f"Experience level: {content['experience_level']}")
    requirements = content.get("requirements") or []
    if requirements:
        lines.append("Key requirements:")
        lines.extend(f"- {item}" for item in requirements)
    return "\n".join(lines) + "\n\n"


def _parse_interview_type(value: Any) -> InterviewType:
    try:
        return InterviewType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in InterviewType)
        raise ValidationError(
            f"Unknown interview type '{value}'",
            details={"interview_type": f"must be one of: {allowed}"},
        )


class IntakeGenerationService:
    """
    Application service for intake artifact generation.

    Responsibilities:
    - Enforce the completed-session precondition
    - Hold the per-session in-flight guard around each generation
    - Build prompts from the session snapshot and responses
    - Run the bounded retry loop and persist validated payloads verbatim
    """

    def __init__(
        self,
        db_session: Session,
        generator: Optional[StructuredGenerator] = None,
        prompt_loader: Optional[PromptLoader] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db_session
        self._generator = generator
        self.prompt_loader = prompt_loader or PromptLoader()
        self.sleep = sleep

        self.session_repo = IntakeMeetingSessionRepository(db_session)

    @property
    def generator(self) -> StructuredGenerator:
        # Built on first use so callers that never generate need no LLM credentials
        if self._generator is None:
            from utils.llm_service import LLMService

            self._generator = LLMService.for_intake()
        return self._generator

    # ============ PROMPTS ============

    def build_job_description_prompt(
        self,
        session: IntakeMeetingSession,
        extra_instructions: Optional[str] = None,
    ) -> str:
        return self.prompt_loader.load_intake(
            "job_description",
            client_id=session.client_id,
            intake_context=build_intake_context(session),
            notes_section=_notes_section(session),
            follow_up_section=_follow_up_section(session),
            instructions_section=_instructions_section(extra_instructions),
        )

    def build_interview_template_prompt(
        self,
        session: IntakeMeetingSession,
        interview_type: InterviewType,
        extra_instructions: Optional[str] = None,
    ) -> str:
        return self.prompt_loader.load_intake(
            "interview_template",
            interview_type=interview_type.value,
            client_id=session.client_id,
            job_context=_job_context(session),
            intake_context=build_intake_context(session),
            notes_section=_notes_section(session),
            instructions_section=_instructions_section(extra_instructions),
            question_count=QUESTION_COUNT_BY_TYPE.get(interview_type, DEFAULT_QUESTION_COUNT),
        )

    # ============ GENERATION ============

    def generate_job_description(
        self,
        session_id: Any,
        extra_instructions: Optional[str] = None,
    ) -> GeneratedArtifact:
        """
        Generate (or regenerate) the session's job description.

        Raises:
            NotFoundError: Unknown session
            PreconditionError: Session is not completed
            ConflictError: Another generation for the session is in flight, or
                the session was reopened or its answers changed meanwhile
            GenerationFailedError: All attempts failed; nothing was stored
        """
        session = self._get_completed_session(session_id)
        guarded_id = session.id
        token = self._acquire_guard(session)
        try:
            answered = dict(session.responses or {})
            prompt = self.build_job_description_prompt(session, extra_instructions)
            system_prompt = self.prompt_loader.load_intake("job_description_system")

            _, payload, attempts = generate_with_retries(
                self.generator,
                GeneratedJobDescription,
                prompt,
                system_prompt,
                max_tokens=settings.JOB_DESCRIPTION_MAX_TOKENS,
                model_id=settings.INTAKE_GENERATION_MODEL,
                temperature=settings.GENERATION_TEMPERATURE,
                label=f"Job description for session {session.id}",
                sleep=self.sleep,
            )

            session = self._lock_unchanged(session.id, answered)
            artifact = GeneratedArtifact(
                session_id=str(session.id),
                artifact_type=ArtifactType.JOB_DESCRIPTION,
                content=payload,
                model_id=settings.INTAKE_GENERATION_MODEL,
                attempts=attempts,
            )
            session.job_description = artifact.model_dump(mode="json")
            session.updated_at = utc_now()
            self.session_repo.update(session)

            logger.info("Stored job description for session %s (%d attempt(s))", session.id, attempts)
            return artifact
        finally:
            self.session_repo.release_generation(guarded_id, token)

    def generate_interview_template(
        self,
        session_id: Any,
        interview_type: Any,
        extra_instructions: Optional[str] = None,
    ) -> GeneratedArtifact:
        """
        Generate (or regenerate) the interview template for one interview type.

        Other interview types' templates are left untouched.

        Raises:
            ValidationError: Unknown interview type
            NotFoundError, PreconditionError, ConflictError, GenerationFailedError:
                as for `generate_job_description`
        """
        interview_type = _parse_interview_type(interview_type)
        session = self._get_completed_session(session_id)
        guarded_id = session.id
        token = self._acquire_guard(session)
        try:
            answered = dict(session.responses or {})
            prompt = self.build_interview_template_prompt(session, interview_type, extra_instructions)
            system_prompt = self.prompt_loader.load_intake("interview_template_system")

            _, payload, attempts = generate_with_retries(
                self.generator,
                GeneratedInterviewTemplate,
                prompt,
                system_prompt,
                max_tokens=settings.INTERVIEW_TEMPLATE_MAX_TOKENS,
                model_id=settings.INTAKE_GENERATION_MODEL,
                temperature=settings.GENERATION_TEMPERATURE,
                label=f"{interview_type.value} interview template for session {session.id}",
                sleep=self.sleep,
            )

            session = self._lock_unchanged(session.id, answered)
            artifact = GeneratedArtifact(
                session_id=str(session.id),
                artifact_type=ArtifactType.INTERVIEW_TEMPLATE,
                interview_type=interview_type,
                content=payload,
                model_id=settings.INTAKE_GENERATION_MODEL,
                attempts=attempts,
            )
            templates = dict(session.interview_templates or {})
            templates[interview_type.value] = artifact.model_dump(mode="json")
            session.interview_templates = templates
            session.updated_at = utc_now()
            self.session_repo.update(session)

            logger.info(
                "Stored %s interview template for session %s (%d attempt(s))",
                interview_type.value, session.id, attempts,
            )
            return artifact
        finally:
            self.session_repo.release_generation(guarded_id, token)

    # ============ DIRECT EDITS ============

    def update_artifact(
        self,
        session_id: Any,
        patch: Dict[str, Any],
        interview_type: Any = None,
    ) -> GeneratedArtifact:
        """
        Edit a stored artifact without calling the backend.

        The patch is merged over the stored content; the artifact is marked
        edited and no longer stale. A missing artifact is created from the
        patch, which is how a user recovers after GenerationFailedError.

        Args:
            session_id: Session identifier
            patch: Content fields to overwrite
            interview_type: Edit this interview type's template instead of the job description

        Raises:
            ValidationError: Empty patch or unknown interview type
            ConflictError: A generation for the session is in flight
        """
        if not isinstance(patch, dict) or not patch:
            raise ValidationError("Artifact patch must be a non-empty object", details={"patch": "required"})

        parsed_type = _parse_interview_type(interview_type) if interview_type is not None else None
        session = self._get_session(session_id)

        if self.session_repo.is_generation_in_flight(session, self._stale_before()):
            raise ConflictError(
                "A generation for this session is in progress",
                details={"session_id": str(session.id)},
            )

        now = utc_now()
        if parsed_type is None:
            stored = session.job_description
        else:
            stored = (session.interview_templates or {}).get(parsed_type.value)

        if stored:
            artifact = GeneratedArtifact.model_validate(stored)
            artifact.content = {**artifact.content, **patch}
        else:
            artifact = GeneratedArtifact(
                session_id=str(session.id),
                artifact_type=ArtifactType.JOB_DESCRIPTION if parsed_type is None else ArtifactType.INTERVIEW_TEMPLATE,
                interview_type=parsed_type,
                content=dict(patch),
                generated_at=now,
            )
        artifact.edited = True
        artifact.stale = False
        artifact.updated_at = now

        if parsed_type is None:
            session.job_description = artifact.model_dump(mode="json")
        else:
            templates = dict(session.interview_templates or {})
            templates[parsed_type.value] = artifact.model_dump(mode="json")
            session.interview_templates = templates
        session.updated_at = now
        self.session_repo.update(session)
        return artifact

    # ============ HELPERS ============

    def _get_session(self, session_id: Any) -> IntakeMeetingSession:
        session = self.session_repo.get_by_id(session_id)
        if not session:
            raise NotFoundError("Intake meeting session", session_id)
        return session

    def _get_completed_session(self, session_id: Any) -> IntakeMeetingSession:
        session = self._get_session(session_id)
        if session.status != SessionStatus.COMPLETED:
            raise PreconditionError(
                "Artifacts can only be generated from a completed intake meeting",
                details={"status": SessionStatus(session.status).value},
            )
        return session

    def _lock_unchanged(self, session_id: Any, answered: Dict[str, Any]) -> IntakeMeetingSession:
        # Store only while the session still matches what the prompt described
        session = self.session_repo.get_for_update(session_id)
        if session is None:
            self.db.rollback()
            raise NotFoundError("Intake meeting session", session_id)
        if session.status != SessionStatus.COMPLETED or (session.responses or {}) != answered:
            status = SessionStatus(session.status).value
            self.db.rollback()
            raise ConflictError(
                "The intake meeting changed while generating; nothing was stored",
                details={"session_id": str(session_id), "status": status},
            )
        return session

    def _stale_before(self):
        return utc_now() - timedelta(seconds=settings.GENERATION_LOCK_TTL_SECONDS)

    def _acquire_guard(self, session: IntakeMeetingSession) -> str:
        token = uuid4().hex
        if not self.session_repo.try_acquire_generation(session.id, token, utc_now(), self._stale_before()):
            raise ConflictError(
                "A generation for this session is already in progress",
                details={"session_id": str(session.id)},
            )
        return token
