"""
Intake Meeting Template Service - Business Logic Layer.

Owns intake questionnaire management:
- Template CRUD with full question-set validation
- Question insert / remove / reorder with contiguous 1..N ordering
- Default template per scope (organization or global)
- Cloning, soft delete (disable) and guarded hard delete
- AI-drafted templates (returned unsaved)
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from config.settings import settings
from models.intake_artifacts import GeneratedIntakeTemplate
from models.intake_meeting_question import IntakeMeetingQuestion, QuestionKind
from models.intake_meeting_template import IntakeMeetingTemplate
from repositories import IntakeMeetingTemplateRepository, IntakeMeetingSessionRepository
from services.intake_generation_service import StructuredGenerator, generate_with_retries
from utils.clock import utc_now
from utils.exceptions import ConflictError, NotFoundError, PreconditionError, ValidationError
from utils.prompt_loader import PromptLoader

logger = logging.getLogger(__name__)

QUESTION_FIELDS = ("question", "kind", "category", "section")
TEMPLATE_PATCH_FIELDS = {"name", "description", "questions", "is_active", "is_default"}


class TemplateDraftRequest(BaseModel):
    """Recruiting context an AI-drafted intake template is tailored to"""
    industry: str = Field(..., min_length=1)
    company_size: Optional[str] = None
    hiring_volume: Optional[str] = None
    focus_areas: List[str] = Field(default_factory=list)
    question_count: int = Field(default=20, ge=3, le=40)
    target_seniority: Optional[str] = None
    common_roles: List[str] = Field(default_factory=list)
    additional_instructions: Optional[str] = None


def _as_dict(question: Any) -> Dict[str, Any]:
    if isinstance(question, dict):
        return dict(question)
    if isinstance(question, BaseModel):
        return question.model_dump(exclude_unset=True)
    if isinstance(question, IntakeMeetingQuestion):
        return _question_to_dict(question)
    raise ValidationError("Question must be an object", details={"questions": "invalid item"})


def _question_to_dict(question: IntakeMeetingQuestion) -> Dict[str, Any]:
    return {
        "id": str(question.id),
        "question": question.question,
        "kind": QuestionKind(question.kind).value,
        "category": question.category,
        "section": question.section,
        "required": question.required,
        "placeholder": question.placeholder,
        "help_text": question.help_text,
        "options": list(question.options) if question.options else None,
    }


def validate_questions(questions: Any) -> List[Dict[str, Any]]:
    """
    Validate and normalize a full question set.

    All problems are collected and reported together, keyed by
    `questions[i].field`. Order is taken from list position; any
    caller-supplied `order` is ignored.

    Returns:
        Normalized question dicts, in order

    Raises:
        ValidationError: Empty set or any invalid question
    """
    if not questions:
        raise ValidationError("A template needs at least one question", details={"questions": "required"})

    errors: Dict[str, str] = {}
    normalized: List[Dict[str, Any]] = []
    seen_ids = set()

    for index, raw in enumerate(questions):
        prefix = f"questions[{index}]"
        data = _as_dict(raw)

        if data.get("id"):
            question_id = str(data["id"])
            if question_id in seen_ids:
                errors[f"{prefix}.id"] = "duplicate"
            seen_ids.add(question_id)

        for field in QUESTION_FIELDS:
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[f"{prefix}.{field}"] = "required"

        kind = None
        if data.get("kind") is not None and f"{prefix}.kind" not in errors:
            try:
                kind = QuestionKind(data["kind"])
            except ValueError:
                errors[f"{prefix}.kind"] = f"unknown question type '{data['kind']}'"

        options: Optional[List[str]] = None
        raw_options = data.get("options") or []
        if not isinstance(raw_options, (list, tuple)):
            errors[f"{prefix}.options"] = "must be a list"
            raw_options = []

        if kind is not None and kind.needs_options:
            cleaned: List[str] = []
            for option in raw_options:
                if not isinstance(option, str) or not option.strip():
                    errors[f"{prefix}.options"] = "options cannot be blank"
                    break
                if option.strip() not in cleaned:
                    cleaned.append(option.strip())
            if not cleaned and f"{prefix}.options" not in errors:
                errors[f"{prefix}.options"] = "select questions need at least one option"
            options = cleaned
        elif kind is not None and raw_options:
            errors[f"{prefix}.options"] = "options are only allowed for select questions"

        normalized.append({
            "id": data.get("id"),
            "question": (data.get("question") or "").strip(),
            "kind": kind,
            "category": (data.get("category") or "").strip(),
            "section": (data.get("section") or "").strip(),
            "required": bool(data.get("required", False)),
            "placeholder": data.get("placeholder"),
            "help_text": data.get("help_text"),
            "options": options,
        })

    if errors:
        raise ValidationError(f"{len(errors)} problem(s) in question definitions", details=errors)
    return normalized


class IntakeMeetingTemplateService:
    """
    Application service for intake meeting templates.

    Responsibilities:
    - Validate question sets and keep question order contiguous
    - Maintain the one-default-per-scope invariant
    - Refuse hard deletes of templates that sessions were created from
    - Track template usage
    - Draft new templates through the generation backend
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

        # Repositories
        self.template_repo = IntakeMeetingTemplateRepository(db_session)
        self.session_repo = IntakeMeetingSessionRepository(db_session)

    @property
    def generator(self) -> StructuredGenerator:
        if self._generator is None:
            from utils.llm_service import LLMService

            self._generator = LLMService.for_intake()
        return self._generator

    # ============ QUERIES ============

    def get_template(self, template_id: Any) -> IntakeMeetingTemplate:
        template = self.template_repo.get_by_id(template_id)
        if not template:
            raise NotFoundError("Intake meeting template", template_id)
        return template

    def list_templates(
        self,
        organization_id: Optional[str] = None,
        include_global: bool = True,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[IntakeMeetingTemplate]:
        return self.template_repo.list_templates(
            organization_id=organization_id,
            include_global=include_global,
            is_active=is_active,
            search=search,
            limit=limit,
            offset=offset,
        )

    def get_default_template(self, organization_id: Optional[str] = None) -> IntakeMeetingTemplate:
        """
        Organization default, falling back to the global default.

        Raises:
            NotFoundError: Neither scope has an active default
        """
        template = None
        if organization_id is not None:
            template = self.template_repo.get_default(organization_id)
        if template is None:
            template = self.template_repo.get_default(None)
        if template is None:
            raise NotFoundError("Default intake meeting template")
        return template

    # ============ CREATE / UPDATE ============

    def create_template(
        self,
        name: str,
        description: Optional[str],
        questions: List[Any],
        organization_id: Optional[str] = None,
        is_default: bool = False,
        created_by: Optional[str] = None,
    ) -> IntakeMeetingTemplate:
        """
        Create a template with its questions.

        Raises:
            ValidationError: Blank name, empty question set or invalid questions
        """
        errors: Dict[str, str] = {}
        if not name or not name.strip():
            errors["name"] = "required"
        try:
            normalized = validate_questions(questions)
        except ValidationError as e:
            errors.update(e.details)
            normalized = []
        if errors:
            raise ValidationError("Invalid intake meeting template", details=errors)

        template = IntakeMeetingTemplate(
            name=name.strip(),
            description=description,
            organization_id=organization_id,
            is_default=is_default,
            created_by=created_by,
        )
        template.questions = self._build_questions(template, normalized, existing={})

        if is_default:
            self.template_repo.demote_defaults(organization_id, exclude_id=template.id)

        self._save_default_scope(template, create=True)
        logger.info("Created intake template %s (%d questions)", template.id, len(normalized))
        return template

    def update_template(self, template_id: Any, patch: Dict[str, Any]) -> IntakeMeetingTemplate:
        """
        Apply a partial update.

        Supported keys: name, description, questions, is_active, is_default.
        A questions patch replaces the whole set: questions carrying an
        existing id keep it, unknown ids get a fresh one, missing ones are
        deleted, and order follows list position.

        Raises:
            NotFoundError: Unknown template
            ValidationError: Unknown keys or invalid values
            PreconditionError: Making a disabled template the default
        """
        template = self.get_template(template_id)

        unknown = set(patch) - TEMPLATE_PATCH_FIELDS
        if unknown:
            raise ValidationError(
                "Unsupported template fields",
                details={field: "not updatable" for field in sorted(unknown)},
            )

        # Validate everything before touching the row
        if "name" in patch:
            name = patch["name"]
            if not name or not str(name).strip():
                raise ValidationError("Template name is required", details={"name": "required"})

        normalized = validate_questions(patch["questions"]) if "questions" in patch else None

        is_active = bool(patch["is_active"]) if "is_active" in patch else template.is_active
        if patch.get("is_default") and not is_active:
            raise PreconditionError("A disabled template cannot be the default")

        if "name" in patch:
            template.name = str(patch["name"]).strip()

        if "description" in patch:
            template.description = patch["description"]

        if normalized is not None:
            self._replace_questions(template, normalized)

        if "is_active" in patch:
            template.is_active = is_active
            if not template.is_active:
                template.is_default = False

        if patch.get("is_default"):
            self.template_repo.demote_defaults(template.organization_id, exclude_id=template.id)
            template.is_default = True
        elif "is_default" in patch:
            template.is_default = False

        template.updated_at = utc_now()
        return self._save_default_scope(template)

    # ============ QUESTION EDITS ============

    def insert_question(
        self,
        template_id: Any,
        question: Any,
        position: Optional[int] = None,
    ) -> IntakeMeetingTemplate:
        """
        Insert a question at a 1-based position (appended when None).

        Positions past the end append; positions below 1 insert first.
        """
        template = self.get_template(template_id)
        current = [_question_to_dict(q) for q in template.questions]
        new_question = _as_dict(question)
        new_question.pop("id", None)

        if position is None or position > len(current):
            current.append(new_question)
        else:
            current.insert(max(position, 1) - 1, new_question)

        self._replace_questions(template, validate_questions(current))
        template.updated_at = utc_now()
        return self.template_repo.update(template)

    def remove_question(self, template_id: Any, question_id: Any) -> IntakeMeetingTemplate:
        """
        Raises:
            NotFoundError: Question is not part of the template
            ValidationError: It is the template's last question
        """
        template = self.get_template(template_id)
        current = [_question_to_dict(q) for q in template.questions]
        remaining = [q for q in current if q["id"] != str(question_id)]

        if len(remaining) == len(current):
            raise NotFoundError("Question", question_id)
        if not remaining:
            raise ValidationError(
                "Cannot remove the last question of a template",
                details={"questions": "at least one question is required"},
            )

        self._replace_questions(template, validate_questions(remaining))
        template.updated_at = utc_now()
        return self.template_repo.update(template)

    def reorder_questions(self, template_id: Any, question_ids: List[Any]) -> IntakeMeetingTemplate:
        """
        Reorder questions to match `question_ids`.

        Raises:
            ValidationError: `question_ids` is not a permutation of the template's questions
        """
        template = self.get_template(template_id)
        by_id = {str(q.id): _question_to_dict(q) for q in template.questions}
        requested = [str(qid) for qid in question_ids]

        if len(requested) != len(set(requested)) or set(requested) != set(by_id):
            raise ValidationError(
                "Question order must list every question of the template exactly once",
                details={
                    "missing": sorted(set(by_id) - set(requested)),
                    "unknown": sorted(set(requested) - set(by_id)),
                },
            )

        self._replace_questions(template, validate_questions([by_id[qid] for qid in requested]))
        template.updated_at = utc_now()
        return self.template_repo.update(template)

    # ============ LIFECYCLE ============

    def clone_template(
        self,
        template_id: Any,
        new_name: str,
        created_by: Optional[str] = None,
    ) -> IntakeMeetingTemplate:
        """Deep copy into the same scope; fresh ids, zero usage, not default."""
        source = self.get_template(template_id)
        if not new_name or not new_name.strip():
            raise ValidationError("Template name is required", details={"name": "required"})

        copied = []
        for question in source.questions:
            data = _question_to_dict(question)
            data["id"] = None
            data["kind"] = QuestionKind(data["kind"])
            copied.append(data)

        clone = IntakeMeetingTemplate(
            name=new_name.strip(),
            description=source.description,
            organization_id=source.organization_id,
            is_default=False,
            is_active=True,
            usage_count=0,
            created_by=created_by or source.created_by,
        )
        clone.questions = self._build_questions(clone, copied, existing={})
        self.template_repo.create(clone)
        logger.info("Cloned intake template %s into %s", source.id, clone.id)
        return clone

    def delete_template(self, template_id: Any) -> None:
        """
        Hard delete a template that no session was created from.

        Raises:
            ConflictError: Sessions reference the template; disable it instead
        """
        template = self.get_template(template_id)
        session_count = self.session_repo.count_by_template(template.id)
        if session_count:
            raise ConflictError(
                "Template is referenced by existing sessions; disable it instead",
                details={"session_count": session_count},
            )
        self.template_repo.delete(template)
        logger.info("Deleted intake template %s", template_id)

    def disable_template(self, template_id: Any) -> IntakeMeetingTemplate:
        """Soft delete: inactive templates cannot start sessions and are never the default."""
        template = self.get_template(template_id)
        template.is_active = False
        template.is_default = False
        template.updated_at = utc_now()
        return self.template_repo.update(template)

    def set_default_template(self, template_id: Any) -> IntakeMeetingTemplate:
        """
        Make a template its scope's default, demoting the previous one.

        Raises:
            PreconditionError: Template is disabled
        """
        template = self.get_template(template_id)
        if not template.is_active:
            raise PreconditionError("A disabled template cannot be the default")

        self.template_repo.demote_defaults(template.organization_id, exclude_id=template.id)
        template.is_default = True
        template.updated_at = utc_now()
        return self._save_default_scope(template)

    def increment_usage(self, template: IntakeMeetingTemplate) -> None:
        """
        Record one more session created from the template.

        Only stages the change; the session-creation transaction commits it.
        """
        template.usage_count = (template.usage_count or 0) + 1
        template.last_used_at = utc_now()
        self.template_repo.update(template, commit=False)

    # ============ AI DRAFT ============

    def generate_template_draft(self, request: TemplateDraftRequest) -> GeneratedIntakeTemplate:
        """
        Draft a template with the generation backend. Nothing is persisted.

        Raises:
            GenerationFailedError: All attempts failed
        """
        prompt = self.prompt_loader.load_intake(
            "template_draft",
            industry=request.industry,
            company_size=request.company_size or "not specified",
            hiring_volume=request.hiring_volume or "not specified",
            focus_areas=", ".join(request.focus_areas) or "general hiring",
            target_seniority=request.target_seniority or "any",
            common_roles=", ".join(request.common_roles) or "not specified",
            question_count=request.question_count,
            instructions_section=(
                f"\nAdditional instructions: {request.additional_instructions.strip()}\n"
                if request.additional_instructions and request.additional_instructions.strip()
                else ""
            ),
        )
        system_prompt = self.prompt_loader.load_intake("template_draft_system")

        draft, _, attempts = generate_with_retries(
            self.generator,
            GeneratedIntakeTemplate,
            prompt,
            system_prompt,
            max_tokens=settings.TEMPLATE_DRAFT_MAX_TOKENS,
            model_id=settings.INTAKE_GENERATION_MODEL,
            temperature=settings.GENERATION_TEMPERATURE,
            label=f"Intake template draft ({request.industry})",
            sleep=self.sleep,
        )
        logger.info("Drafted intake template with %d questions in %d attempt(s)", len(draft.questions), attempts)
        return draft

    # ============ HELPERS ============

    def _save_default_scope(self, template: IntakeMeetingTemplate, create: bool = False) -> IntakeMeetingTemplate:
        # The partial unique indexes reject a second default promoted concurrently
        organization_id = template.organization_id
        try:
            if create:
                return self.template_repo.create(template)
            return self.template_repo.update(template)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                "Another template became the default for this scope at the same time",
                details={"organization_id": organization_id},
            )

    def _build_questions(
        self,
        template: IntakeMeetingTemplate,
        normalized: List[Dict[str, Any]],
        existing: Dict[str, IntakeMeetingQuestion],
    ) -> List[IntakeMeetingQuestion]:
        now = utc_now()
        built: List[IntakeMeetingQuestion] = []
        for position, data in enumerate(normalized, start=1):
            question = existing.get(str(data.get("id"))) if data.get("id") else None
            if question is None:
                question = IntakeMeetingQuestion(id=uuid4(), template_id=template.id)
            question.question = data["question"]
            question.kind = data["kind"]
            question.category = data["category"]
            question.section = data["section"]
            question.required = data["required"]
            question.placeholder = data["placeholder"]
            question.help_text = data["help_text"]
            question.options = list(data["options"]) if data["options"] else None
            question.order = position
            question.updated_at = now
            built.append(question)
        return built

    def _replace_questions(self, template: IntakeMeetingTemplate, normalized: List[Dict[str, Any]]) -> None:
        existing = {str(q.id): q for q in template.questions}
        # Questions dropped from the list are deleted as orphans
        template.questions = self._build_questions(template, normalized, existing)
