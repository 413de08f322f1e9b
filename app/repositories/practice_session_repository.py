from typing import Optional, List, Dict, Any
from datetime import datetime
from sqlalchemy.orm import Session

from app.models.practice_session import PracticeSession, SessionItem
from app.repositories.base import BaseRepository


class PracticeSessionRepository(BaseRepository[PracticeSession]):
    def __init__(self, db: Session):
        super().__init__(db, PracticeSession)

    def add_items(self, session_id: int, items: List[Dict[str, Any]]) -> List[SessionItem]:
        """
        Stage items for a flushed session; the caller commits

        Args:
            session_id: id of the session row
            items: SessionItem column values without session_id

        Returns:
            List[SessionItem]: flushed items
        """
        rows = [SessionItem(session_id=session_id, **item) for item in items]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def delete_session(self, session_id: int) -> bool:
        """Remove a session together with its items"""
        session = self.get_by_id(session_id)
        if session is None:
            return False
        self.db.delete(session)
        self.db.commit()
        return True

    def get_owned(self, session_id: int, user_id: int, for_update: bool = False) -> Optional[PracticeSession]:
        """Session by id, only if it belongs to user_id; for_update locks the row and reloads any cached copy"""
        query = self.db.query(PracticeSession).filter(
            PracticeSession.id == session_id,
            PracticeSession.user_id == user_id
        )
        if for_update:
            query = query.populate_existing().with_for_update()
        return query.first()

    def get_items(self, session_id: int) -> List[SessionItem]:
        """Items in order_index order, reloaded from the database"""
        return self.db.query(SessionItem).populate_existing().filter(
            SessionItem.session_id == session_id
        ).order_by(SessionItem.order_index.asc()).all()

    def get_next_unanswered_item(self, session_id: int) -> Optional[SessionItem]:
        return self.db.query(SessionItem).filter(
            SessionItem.session_id == session_id,
            SessionItem.is_answered == False
        ).order_by(SessionItem.order_index.asc()).first()

    def get_latest_since(self, user_id: int, since: datetime) -> Optional[PracticeSession]:
        """Most recently started session at or after since"""
        return self.db.query(PracticeSession).filter(
            PracticeSession.user_id == user_id,
            PracticeSession.started_at >= since
        ).order_by(PracticeSession.started_at.desc(), PracticeSession.id.desc()).first()

    def get_user_sessions(self, user_id: int, limit: int = 30) -> List[PracticeSession]:
        return self.db.query(PracticeSession).filter(
            PracticeSession.user_id == user_id
        ).order_by(PracticeSession.started_at.desc(), PracticeSession.id.desc()).limit(limit).all()

    def get_completed_sessions(self, user_id: int) -> List[PracticeSession]:
        """Completed sessions, newest first"""
        return self.db.query(PracticeSession).filter(
            PracticeSession.user_id == user_id,
            PracticeSession.status == "completed"
        ).order_by(PracticeSession.started_at.desc()).all()
