"""
Generated artifact schemas.

The pydantic models here double as the JSON schemas handed to the LLM
(`model_json_schema()`) and as the validators for what comes back.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.intake_meeting_question import QuestionKind
from utils.clock import utc_now


class ArtifactType(str, Enum):
    JOB_DESCRIPTION = "job_description"
    INTERVIEW_TEMPLATE = "interview_template"


class InterviewType(str, Enum):
    """Interview rounds an interview template can be generated for"""
    PHONE_SCREEN = "Phone Screen"
    TECHNICAL = "Technical"
    BEHAVIORAL = "Behavioral"
    FINAL = "Final"
    PANEL = "Panel"
    CULTURE_FIT = "Culture Fit"
    CASE_STUDY = "Case Study"
    PRESENTATION = "Presentation"


class ExperienceLevel(str, Enum):
    ENTRY = "Entry Level"
    MID = "Mid Level"
    SENIOR = "Senior Level"
    LEAD = "Lead/Principal"
    EXECUTIVE = "Executive"


class QuestionType(str, Enum):
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    CULTURAL = "cultural"
    SITUATIONAL = "situational"
    GENERAL = "general"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# ============ LLM OUTPUT SCHEMAS ============

class GeneratedJobDescription(BaseModel):
    """Job description synthesized from a completed intake meeting"""
    title: str = Field(..., min_length=1, description="Job title")
    department: Optional[str] = Field(default=None, description="Department or team")
    experience_level: ExperienceLevel
    salary_range: Optional[str] = Field(default=None, description="e.g. '$120k - $150k'")
    work_arrangement: Optional[str] = Field(default=None, description="Remote, hybrid or onsite")
    description: str = Field(..., min_length=1, description="Two to three paragraph role overview")
    responsibilities: List[str] = Field(..., min_length=5, max_length=10)
    requirements: List[str] = Field(..., min_length=5, max_length=12)
    skills: List[str] = Field(..., min_length=8, max_length=15)
    benefits: List[str] = Field(..., min_length=6, max_length=12)
    company_info: Optional[str] = None


class InterviewQuestion(BaseModel):
    question: str = Field(..., min_length=1)
    type: QuestionType
    category: str
    difficulty: Difficulty
    time_limit: int = Field(..., gt=0, description="Minutes")
    expected_answer: Optional[str] = None
    scoring_criteria: Optional[List[str]] = None


class GeneratedInterviewTemplate(BaseModel):
    """Interview plan for one interview round"""
    name: str = Field(..., min_length=1)
    description: str
    instructions: str
    questions: List[InterviewQuestion] = Field(..., min_length=1)
    preparation_notes: str
    evaluation_criteria: List[str]


class DraftQuestion(BaseModel):
    question: str = Field(..., min_length=1)
    kind: QuestionKind
    category: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    required: bool = False
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    options: Optional[List[str]] = None


class GeneratedIntakeTemplate(BaseModel):
    """AI-drafted intake questionnaire, not yet persisted"""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    questions: List[DraftQuestion] = Field(..., min_length=1)


# ============ STORED ENVELOPE ============

class GeneratedArtifact(BaseModel):
    """Envelope persisted on the session around a generated payload"""
    session_id: str
    artifact_type: ArtifactType
    interview_type: Optional[InterviewType] = None
    content: Dict[str, Any]
    model_id: Optional[str] = None
    attempts: int = 0
    generated_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    stale: bool = False
    edited: bool = False
