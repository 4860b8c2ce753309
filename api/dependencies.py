"""
Shared FastAPI dependencies for the intake routes.

Backends are provided through dependencies so tests can swap them with
`app.dependency_overrides`.
"""

from fastapi import Depends
from sqlmodel import Session

from services import (
    IntakeGenerationService,
    IntakeInvitationService,
    IntakeMeetingSessionService,
    IntakeMeetingTemplateService,
)
from services.intake_generation_service import StructuredGenerator
from services.intake_invitation_service import InviteMailer
from utils.database import get_db


def get_generator() -> StructuredGenerator:
    from utils.llm_service import LLMService

    return LLMService.for_intake()


def get_mailer() -> InviteMailer:
    from utils.mail_service import SMTPInviteMailer

    return SMTPInviteMailer()


def get_template_service(db: Session = Depends(get_db)) -> IntakeMeetingTemplateService:
    return IntakeMeetingTemplateService(db)


def get_session_service(db: Session = Depends(get_db)) -> IntakeMeetingSessionService:
    return IntakeMeetingSessionService(db)
