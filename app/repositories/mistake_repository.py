from typing import List, Optional
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy import desc

from app.models.mistake import MistakeRecord
from app.repositories.base import BaseRepository


class MistakeRepository(BaseRepository[MistakeRecord]):
    def __init__(self, db: Session):
        super().__init__(db, MistakeRecord)

    def get_owned(self, mistake_id: int, user_id: int, for_update: bool = False) -> Optional[MistakeRecord]:
        """Mistake by id, only if it belongs to user_id; for_update locks the row and reloads any cached copy"""
        query = self.db.query(MistakeRecord).filter(
            MistakeRecord.id == mistake_id,
            MistakeRecord.user_id == user_id
        )
        if for_update:
            query = query.populate_existing().with_for_update()
        return query.first()

    def get_for_user_question(self, user_id: int, question_id: int, for_update: bool = False) -> Optional[MistakeRecord]:
        query = self.db.query(MistakeRecord).filter(
            MistakeRecord.user_id == user_id,
            MistakeRecord.question_id == question_id
        )
        if for_update:
            query = query.populate_existing().with_for_update()
        return query.first()

    def get_unresolved(self, user_id: int, limit: Optional[int] = None) -> List[MistakeRecord]:
        """Unresolved mistakes, most recently attempted first"""
        query = self.db.query(MistakeRecord).filter(
            MistakeRecord.user_id == user_id,
            MistakeRecord.is_resolved == False
        ).order_by(desc(MistakeRecord.last_attempted), desc(MistakeRecord.id))

        if limit:
            query = query.limit(limit)

        return query.all()

    def get_unresolved_question_ids(self, user_id: int, limit: int) -> List[int]:
        if limit <= 0:
            return []
        rows = self.db.query(MistakeRecord.question_id).filter(
            MistakeRecord.user_id == user_id,
            MistakeRecord.is_resolved == False
        ).order_by(desc(MistakeRecord.last_attempted), desc(MistakeRecord.id)).limit(limit).all()
        return [row[0] for row in rows]

    def get_due_mastered(self, user_id: int, today: date) -> List[MistakeRecord]:
        """Mastered mistakes whose spaced-repetition date has arrived"""
        return self.db.query(MistakeRecord).filter(
            MistakeRecord.user_id == user_id,
            MistakeRecord.mastery_status == "mastered",
            MistakeRecord.next_review_date != None,
            MistakeRecord.next_review_date <= today
        ).order_by(MistakeRecord.next_review_date.asc()).all()
