"""
Repositories module - Data Access Layer.

Provides repository classes for database operations following the Repository pattern.
Each repository handles CRUD operations for a specific domain entity.

Usage:
    from repositories import (
        IntakeMeetingTemplateRepository,
        IntakeMeetingSessionRepository,
    )

    # Initialize with a database session
    template_repo = IntakeMeetingTemplateRepository(db_session)
    session_repo = IntakeMeetingSessionRepository(db_session)

    # Use repository methods
    template = template_repo.get_default(organization_id="acme")
    sessions = session_repo.list_sessions(client_id="client-42")
"""

from repositories.base_repository import BaseRepository
from repositories.intake_meeting_template_repository import IntakeMeetingTemplateRepository
from repositories.intake_meeting_session_repository import IntakeMeetingSessionRepository
from repositories.intake_meeting_invitation_repository import IntakeMeetingInvitationRepository

__all__ = [
    "BaseRepository",
    "IntakeMeetingTemplateRepository",
    "IntakeMeetingSessionRepository",
    "IntakeMeetingInvitationRepository",
]
