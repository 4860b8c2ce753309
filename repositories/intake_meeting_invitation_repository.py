"""
Repository for invitation delivery records.
"""

from datetime import datetime
from typing import List, Set
from uuid import UUID

from sqlmodel import Session, select

from models.intake_meeting_invitation import IntakeMeetingInvitation, InvitationStatus
from repositories.base_repository import BaseRepository


class IntakeMeetingInvitationRepository(BaseRepository[IntakeMeetingInvitation]):
    """Repository for managing intake meeting invitation history."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, IntakeMeetingInvitation)

    def list_by_session(self, session_id: UUID) -> List[IntakeMeetingInvitation]:
        """Delivery history for a session, oldest first."""
        statement = (
            select(IntakeMeetingInvitation)
            .where(IntakeMeetingInvitation.session_id == session_id)
            .order_by(IntakeMeetingInvitation.created_at)
        )
        return list(self.db.exec(statement).all())

    def sent_emails(self, session_id: UUID, scheduled_for: datetime) -> Set[str]:
        """
        Addresses already invited successfully for one meeting slot.

        Args:
            session_id: Session identifier
            scheduled_for: The session's scheduled time the invites were sent for

        Returns:
            Lower-cased email addresses
        """
        statement = select(IntakeMeetingInvitation.email).where(
            IntakeMeetingInvitation.session_id == session_id,
            IntakeMeetingInvitation.scheduled_for == scheduled_for,
            IntakeMeetingInvitation.status == InvitationStatus.SENT,
        )
        return {email.lower() for email in self.db.exec(statement).all()}

    def delete_by_session(self, session_id: UUID) -> int:
        """
        Stage deletion of every invitation record of a session.

        Returns:
            Number of records staged for deletion
        """
        records = self.list_by_session(session_id)
        for record in records:
            self.db.delete(record)
        return len(records)
