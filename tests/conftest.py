"""
Shared fixtures: in-memory SQLite database, services, and backend doubles
for the generation and mail backends.
"""

import copy
import sys
from datetime import datetime
from pathlib import Path

# Add project root to Python path (for direct invocation)
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import models  # noqa: F401  (registers table metadata)
from services import (
    IntakeGenerationService,
    IntakeInvitationService,
    IntakeMeetingSessionService,
    IntakeMeetingTemplateService,
)
from utils.mail_service import DeliveryResult


# ---------------------------------------------------------------------------
# Backend doubles
# ---------------------------------------------------------------------------

class FakeGenerator:
    """
    Scripted structured generator.

    Each call consumes the next scripted output; exceptions are raised, dicts
    returned. The last output repeats once the script runs out.
    """

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.calls = []

    def structured_generate(self, prompt, json_schema, system_prompt, model_id=None, max_tokens=None, temperature=None):
        self.calls.append({
            "prompt": prompt,
            "json_schema": json_schema,
            "system_prompt": system_prompt,
            "model_id": model_id,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        output = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        if isinstance(output, BaseException):
            raise output
        return copy.deepcopy(output)


class FakeMailer:
    """Records invitations; addresses listed in `failures` raise the given error."""

    def __init__(self, failures=None):
        self.failures = failures or {}
        self.sent = []

    def send_invite(self, to_email, session_metadata, meeting_link=None):
        self.sent.append({"email": to_email, "metadata": session_metadata, "meeting_link": meeting_link})
        if to_email in self.failures:
            raise self.failures[to_email]
        return DeliveryResult(email=to_email, provider_message_id=f"<{len(self.sent)}@test>")


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

ROLE_DISCUSSION_QUESTIONS = [
    {
        "question": "Why do you need to hire for this role?",
        "kind": "textarea",
        "category": "Role Requirements",
        "section": "Role Discussion",
        "required": True,
    },
    {
        "question": "Who does this person report to?",
        "kind": "text",
        "category": "Reporting Structure",
        "section": "Role Discussion",
        "required": True,
    },
    {
        "question": "When do you need this candidate to start?",
        "kind": "date",
        "category": "Timeline",
        "section": "Logistics",
        "required": True,
    },
    {
        "question": "Work arrangement",
        "kind": "select",
        "category": "Logistics",
        "section": "Logistics",
        "options": ["Remote", "Hybrid", "Onsite"],
    },
    {
        "question": "Which stacks matter?",
        "kind": "multiselect",
        "category": "Hard Requirements",
        "section": "Candidate Requirements",
        "options": ["Python", "Go", "TypeScript"],
    },
    {
        "question": "Team size",
        "kind": "number",
        "category": "Team Structure",
        "section": "Role Discussion",
    },
]


VALID_JOB_DESCRIPTION = {
    "title": "Senior Backend Engineer",
    "department": "Platform",
    "experience_level": "Senior Level",
    "salary_range": "$150k - $180k",
    "work_arrangement": "Hybrid",
    "description": "Own the services that power our hiring platform.",
    "responsibilities": [f"Responsibility {i}" for i in range(1, 6)],
    "requirements": [f"Requirement {i}" for i in range(1, 6)],
    "skills": [f"Skill {i}" for i in range(1, 9)],
    "benefits": [f"Benefit {i}" for i in range(1, 7)],
}


VALID_INTERVIEW_TEMPLATE = {
    "name": "Technical Interview - Senior Backend Engineer",
    "description": "Deep dive into backend design.",
    "instructions": "Spend five minutes on introductions.",
    "questions": [
        {
            "question": "Design a rate limiter.",
            "type": "technical",
            "category": "System Design",
            "difficulty": "hard",
            "time_limit": 20,
            "scoring_criteria": ["Trade-offs", "Correctness"],
        }
    ],
    "preparation_notes": "Read the candidate's resume.",
    "evaluation_criteria": ["Technical depth", "Communication"],
}


def question_ids(template):
    return [str(q.id) for q in template.questions]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def generator():
    return FakeGenerator(VALID_JOB_DESCRIPTION)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def template_service(db, generator, sleeps):
    return IntakeMeetingTemplateService(db, generator=generator, sleep=sleeps.append)


@pytest.fixture
def session_service(db, template_service):
    return IntakeMeetingSessionService(db, template_service=template_service)


@pytest.fixture
def generation_service(db, generator, sleeps):
    return IntakeGenerationService(db, generator=generator, sleep=sleeps.append)


@pytest.fixture
def invitation_service(db, mailer):
    return IntakeInvitationService(db, mailer=mailer)


@pytest.fixture
def template(template_service):
    return template_service.create_template(
        name="Role Discussion | Intake Meeting",
        description="Intake questionnaire",
        questions=copy.deepcopy(ROLE_DISCUSSION_QUESTIONS),
    )


@pytest.fixture
def draft_session(session_service, template):
    return session_service.create_session(
        template.id,
        client_id="acme-corp",
        conducted_by="dana",
        scheduled_at=datetime(2026, 11, 2, 15, 0),
    )


@pytest.fixture
def completed_session(session_service, draft_session):
    ids = [q.id for q in draft_session.snapshot.questions]
    session_service.record_responses(draft_session.id, {
        ids[0]: "Backfill after a promotion",
        ids[1]: "Jane Doe - VP Engineering",
        ids[2]: "2026-12-01",
        ids[3]: "Hybrid",
        ids[4]: ["Python", "Go"],
    })
    return session_service.complete_session(draft_session.id)
