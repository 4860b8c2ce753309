"""
Services module - Business Logic Layer.

Contains application services that orchestrate business logic,
sitting between the API layer (routes) and the data layer (repositories).

Services handle:
- Business rule validation
- Orchestrating multiple repository operations
- Coordinating with external services (LLM, mail)
- Transaction management

Usage:
    from services import IntakeMeetingSessionService

    service = IntakeMeetingSessionService(db_session)
    session = service.create_session(template_id, client_id="acme", conducted_by="dana")
"""

from services.intake_template_service import IntakeMeetingTemplateService, TemplateDraftRequest
from services.intake_session_service import IntakeMeetingSessionService
from services.intake_generation_service import IntakeGenerationService, MAX_GENERATION_ATTEMPTS
from services.intake_invitation_service import IntakeInvitationService, InvitationReport

__all__ = [
    "IntakeMeetingTemplateService",
    "TemplateDraftRequest",
    "IntakeMeetingSessionService",
    "IntakeGenerationService",
    "MAX_GENERATION_ATTEMPTS",
    "IntakeInvitationService",
    "InvitationReport",
]
