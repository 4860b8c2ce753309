from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from models.intake_meeting_question import QuestionKind


# ============ Question Schemas ============

class IntakeQuestionInput(BaseModel):
    """Question definition as submitted by clients. Order comes from list position."""
    id: Optional[UUID] = Field(None, description="Existing question id to keep (updates only)")
    question: Optional[str] = Field(None, description="Prompt the recruiter asks")
    kind: Optional[str] = Field(None, description="text, textarea, select, multiselect, number or date")
    category: Optional[str] = Field(None, description="Grouping category, e.g. 'Compensation'")
    section: Optional[str] = Field(None, description="Grouping section, e.g. 'Logistics'")
    required: bool = Field(False, description="Must be answered before completion")
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    options: Optional[List[str]] = Field(None, description="Choices for select / multiselect questions")

    class Config:
        json_schema_extra = {
            "example": {
                "question": "What does the Salary & Benefits package look like?",
                "kind": "textarea",
                "category": "Compensation",
                "section": "Logistics",
                "required": True,
                "placeholder": "Salary range, benefits, equity, bonuses, etc..."
            }
        }


class IntakeQuestionResponse(BaseModel):
    id: UUID
    question: str
    kind: QuestionKind
    category: str
    section: str
    required: bool
    order: int
    placeholder: Optional[str]
    help_text: Optional[str]
    options: Optional[List[str]]

    class Config:
        from_attributes = True


# ============ Template Schemas ============

class IntakeTemplateCreate(BaseModel):
    """Schema for creating an intake meeting template"""
    name: str = Field(..., description="Template name")
    description: Optional[str] = Field(None, description="Template description")
    organization_id: Optional[str] = Field(None, description="Owning organization; omit for a global template")
    is_default: bool = Field(False, description="Make this the scope's default template")
    created_by: Optional[str] = None
    questions: List[IntakeQuestionInput] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Engineering Intake",
                "description": "Intake questionnaire for engineering roles",
                "organization_id": "acme-corp",
                "questions": [
                    {
                        "question": "Why do you need to hire for this role?",
                        "kind": "textarea",
                        "category": "Role Requirements",
                        "section": "Role Discussion",
                        "required": True
                    },
                    {
                        "question": "Work arrangement",
                        "kind": "select",
                        "category": "Logistics",
                        "section": "Logistics",
                        "options": ["Remote", "Hybrid", "Onsite"]
                    }
                ]
            }
        }


class IntakeTemplateUpdate(BaseModel):
    """Schema for updating a template. A questions list replaces the whole set."""
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None
    questions: Optional[List[IntakeQuestionInput]] = None


class IntakeQuestionInsert(BaseModel):
    question: IntakeQuestionInput
    position: Optional[int] = Field(None, description="1-based position; appended when omitted")


class IntakeQuestionOrder(BaseModel):
    question_ids: List[UUID] = Field(..., description="Every question id of the template, in the new order")


class IntakeTemplateClone(BaseModel):
    name: str = Field(..., description="Name of the copy")
    created_by: Optional[str] = None


class IntakeTemplateSummary(BaseModel):
    """Template without its questions, for listings"""
    id: UUID
    name: str
    description: Optional[str]
    organization_id: Optional[str]
    is_default: bool
    is_active: bool
    usage_count: int
    last_used_at: Optional[datetime]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class IntakeTemplateResponse(IntakeTemplateSummary):
    questions: List[IntakeQuestionResponse] = Field(default_factory=list)
