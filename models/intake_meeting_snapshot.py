"""
Value objects for template snapshots.

A session copies its template's questions at creation time so later template
edits never change the question set a session is validated against.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from models.intake_meeting_question import QuestionKind


class QuestionDefinition(BaseModel):
    """A question as frozen into a session snapshot"""
    id: str
    question: str
    kind: QuestionKind
    category: str
    section: str
    required: bool = False
    order: int
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    options: Optional[List[str]] = None


class TemplateSnapshot(BaseModel):
    """Deep copy of a template's question set, owned by a session"""
    template_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    questions: List[QuestionDefinition] = Field(default_factory=list)

    @classmethod
    def from_template(cls, template) -> "TemplateSnapshot":
        return cls(
            template_id=str(template.id),
            name=template.name,
            description=template.description,
            questions=[
                QuestionDefinition(
                    id=str(q.id),
                    question=q.question,
                    kind=q.kind,
                    category=q.category,
                    section=q.section,
                    required=q.required,
                    order=q.order,
                    placeholder=q.placeholder,
                    help_text=q.help_text,
                    options=list(q.options) if q.options else None,
                )
                for q in sorted(template.questions, key=lambda q: q.order)
            ],
        )

    def get_question(self, question_id: str) -> Optional[QuestionDefinition]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def sections(self) -> List[str]:
        """Section names in first-appearance order"""
        seen: List[str] = []
        for question in self.questions:
            if question.section not in seen:
                seen.append(question.section)
        return seen
