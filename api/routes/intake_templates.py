from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session
from typing import List, Optional
from uuid import UUID

from api.auth import verify_api_key
from api.dependencies import get_generator, get_template_service
from api.models.intake_template_schemas import (
    IntakeTemplateCreate,
    IntakeTemplateUpdate,
    IntakeTemplateResponse,
    IntakeTemplateSummary,
    IntakeTemplateClone,
    IntakeQuestionInsert,
    IntakeQuestionOrder,
)
from models.intake_artifacts import GeneratedIntakeTemplate
from services import IntakeMeetingTemplateService, TemplateDraftRequest
from services.intake_generation_service import StructuredGenerator
from utils.database import get_db

router = APIRouter(
    prefix="/intake/templates",
    tags=["Intake Templates"],
    dependencies=[Depends(verify_api_key)]
)


# ============ TEMPLATE ENDPOINTS ============

@router.post("", response_model=IntakeTemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: IntakeTemplateCreate,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """
    Create an intake meeting template with its questions.

    Question order follows the list order. Select and multiselect questions
    need at least one option. All invalid fields are reported together.
    """
    return service.create_template(
        name=payload.name,
        description=payload.description,
        questions=payload.questions,
        organization_id=payload.organization_id,
        is_default=payload.is_default,
        created_by=payload.created_by,
    )


@router.get("", response_model=List[IntakeTemplateSummary])
def list_templates(
    organization_id: Optional[str] = None,
    include_global: bool = True,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """
    List templates visible to an organization.

    **Filters:**
    - `organization_id`: Organization scope (omit for global templates only)
    - `include_global`: Include global templates alongside the organization's
    - `is_active`: Filter by active status (true/false)
    - `search`: Match name or description
    - `skip/limit`: Pagination
    """
    return service.list_templates(
        organization_id=organization_id,
        include_global=include_global,
        is_active=is_active,
        search=search,
        limit=limit,
        offset=skip,
    )


@router.get("/default", response_model=IntakeTemplateResponse)
def get_default_template(
    organization_id: Optional[str] = None,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """Organization default template, falling back to the global default."""
    return service.get_default_template(organization_id)


@router.post("/generate", response_model=GeneratedIntakeTemplate)
def generate_template_draft(
    request: TemplateDraftRequest,
    db: Session = Depends(get_db),
    generator: StructuredGenerator = Depends(get_generator),
):
    """
    Draft a template with AI. The draft is not saved; submit it to
    `POST /intake/templates` to keep it.
    """
    service = IntakeMeetingTemplateService(db, generator=generator)
    return service.generate_template_draft(request)


@router.get("/{template_id}", response_model=IntakeTemplateResponse)
def get_template(
    template_id: UUID,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """Get a template with its ordered questions"""
    return service.get_template(template_id)


@router.patch("/{template_id}", response_model=IntakeTemplateResponse)
def update_template(
    template_id: UUID,
    payload: IntakeTemplateUpdate,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """
    Update a template. A `questions` list replaces the whole question set;
    questions sent with their existing `id` keep it.
    """
    return service.update_template(template_id, payload.model_dump(exclude_unset=True))


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: UUID,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """
    Delete a template. Refused with 409 while sessions reference it;
    use `POST /intake/templates/{id}/disable` instead.
    """
    service.delete_template(template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============ QUESTION ENDPOINTS ============

@router.post("/{template_id}/questions", response_model=IntakeTemplateResponse)
def insert_question(
    template_id: UUID,
    payload: IntakeQuestionInsert,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """Insert a question at a 1-based position (appended when omitted)"""
    return service.insert_question(template_id, payload.question, payload.position)


@router.put("/{template_id}/questions/order", response_model=IntakeTemplateResponse)
def reorder_questions(
    template_id: UUID,
    payload: IntakeQuestionOrder,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """Reorder questions; every question id must be listed exactly once"""
    return service.reorder_questions(template_id, payload.question_ids)


@router.delete("/{template_id}/questions/{question_id}", response_model=IntakeTemplateResponse)
def remove_question(
    template_id: UUID,
    question_id: UUID,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """Remove a question; the last question of a template cannot be removed"""
    return service.remove_question(template_id, question_id)


# ============ LIFECYCLE ENDPOINTS ============

@router.post("/{template_id}/clone", response_model=IntakeTemplateResponse, status_code=status.HTTP_201_CREATED)
def clone_template(
    template_id: UUID,
    payload: IntakeTemplateClone,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """Copy a template and its questions into a new, non-default template"""
    return service.clone_template(template_id, payload.name, created_by=payload.created_by)


@router.post("/{template_id}/default", response_model=IntakeTemplateResponse)
def set_default_template(
    template_id: UUID,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """Make the template its scope's default, demoting the previous default"""
    return service.set_default_template(template_id)


@router.post("/{template_id}/disable", response_model=IntakeTemplateResponse)
def disable_template(
    template_id: UUID,
    service: IntakeMeetingTemplateService = Depends(get_template_service),
):
    """Soft-delete a template: it stays readable but cannot start new sessions"""
    return service.disable_template(template_id)
