"""
Intake meeting session repository.

Besides CRUD and filtered listing, owns the per-session generation guard:
a compare-and-set on the session row that admits at most one in-flight
generation per session.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from models.intake_meeting_session import IntakeMeetingSession, SessionStatus
from repositories.base_repository import BaseRepository


class IntakeMeetingSessionRepository(BaseRepository[IntakeMeetingSession]):
    """Repository for managing intake meeting sessions."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, IntakeMeetingSession)

    def list_sessions(
        self,
        client_id: Optional[str] = None,
        status: Optional[SessionStatus] = None,
        template_id: Optional[UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[IntakeMeetingSession]:
        """
        List sessions with optional filters.

        Args:
            client_id: Filter by client
            status: Filter by lifecycle status
            template_id: Filter by originating template
            limit: Maximum results (max 100)
            offset: Offset for pagination

        Returns:
            Sessions ordered by created_at DESC
        """
        if limit > 100:
            limit = 100

        statement = select(IntakeMeetingSession)
        if client_id:
            statement = statement.where(IntakeMeetingSession.client_id == client_id)
        if status:
            statement = statement.where(IntakeMeetingSession.status == status)
        if template_id:
            statement = statement.where(IntakeMeetingSession.template_id == template_id)

        statement = (
            statement.order_by(IntakeMeetingSession.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.exec(statement).all())

    def count_by_template(self, template_id: UUID) -> int:
        """Number of sessions that were created from a template."""
        statement = select(func.count()).select_from(IntakeMeetingSession).where(
            IntakeMeetingSession.template_id == template_id
        )
        return self.db.exec(statement).one()

    def get_for_update(self, session_id: UUID) -> Optional[IntakeMeetingSession]:
        """
        Load a session with a row lock held until the next commit.

        Serializes read-merge-write cycles on the JSON columns (a no-op on SQLite).
        """
        statement = (
            select(IntakeMeetingSession)
            .where(IntakeMeetingSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.exec(statement).first()

    # ============ GENERATION GUARD ============

    def try_acquire_generation(
        self,
        session_id: UUID,
        token: str,
        now: datetime,
        stale_before: datetime,
    ) -> bool:
        """
        Claim the session's generation slot.

        Succeeds when no generation holds the slot, or when the holder
        started before `stale_before` (abandoned by a crashed worker).

        Args:
            session_id: Session to claim
            token: Unique token identifying this generation
            now: Claim timestamp
            stale_before: Guards started before this instant are taken over

        Returns:
            True if this caller now holds the slot
        """
        statement = (
            update(IntakeMeetingSession)
            .where(IntakeMeetingSession.id == session_id)
            .where(
                or_(
                    IntakeMeetingSession.generation_token.is_(None),
                    IntakeMeetingSession.generation_started_at < stale_before,
                )
            )
            .values(generation_token=token, generation_started_at=now)
        )
        result = self.db.connection().execute(statement)
        self.db.commit()
        return result.rowcount == 1

    def release_generation(self, session_id: UUID, token: str) -> None:
        """Release the slot if (and only if) `token` still holds it."""
        statement = (
            update(IntakeMeetingSession)
            .where(IntakeMeetingSession.id == session_id)
            .where(IntakeMeetingSession.generation_token == token)
            .values(generation_token=None, generation_started_at=None)
        )
        self.db.connection().execute(statement)
        self.db.commit()

    def is_generation_in_flight(self, session: IntakeMeetingSession, stale_before: datetime) -> bool:
        """True if a live (non-stale) generation holds the session's slot."""
        return (
            session.generation_token is not None
            and session.generation_started_at is not None
            and session.generation_started_at >= stale_before
        )
