from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.models.user_answer import UserAnswer
from app.repositories.base import BaseRepository


class AnswerRepository(BaseRepository[UserAnswer]):
    """Answer history reads"""

    def __init__(self, db: Session):
        super().__init__(db, UserAnswer)

    def get_average_time(self, user_id: int) -> Optional[float]:
        """Mean time_taken_seconds over all of the user's answers, None without history"""
        value = self.db.query(func.avg(UserAnswer.time_taken_seconds)).filter(
            UserAnswer.user_id == user_id
        ).scalar()
        return float(value) if value is not None else None

    def get_slow_question_ids(self, user_id: int, threshold: float, limit: int) -> List[int]:
        """Questions whose slowest recorded answer exceeded threshold, slowest first"""
        if limit <= 0:
            return []
        slowest = func.max(UserAnswer.time_taken_seconds)
        rows = self.db.query(UserAnswer.question_id).filter(
            UserAnswer.user_id == user_id
        ).group_by(UserAnswer.question_id).having(
            slowest > threshold
        ).order_by(slowest.desc(), UserAnswer.question_id.asc()).limit(limit).all()
        return [row[0] for row in rows]

    def get_skipped_question_ids(self, user_id: int, limit: int) -> List[int]:
        """Questions the user skipped, most recent skip first"""
        if limit <= 0:
            return []
        latest = func.max(UserAnswer.answered_at)
        rows = self.db.query(UserAnswer.question_id).filter(
            UserAnswer.user_id == user_id,
            UserAnswer.is_skipped == True
        ).group_by(UserAnswer.question_id).order_by(
            latest.desc(), UserAnswer.question_id.desc()
        ).limit(limit).all()
        return [row[0] for row in rows]
