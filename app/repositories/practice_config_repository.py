from typing import Optional
from sqlalchemy.orm import Session

from app.models.practice_config import PracticeConfigRecord
from app.repositories.base import BaseRepository


class PracticeConfigRepository(BaseRepository[PracticeConfigRecord]):
    def __init__(self, db: Session):
        super().__init__(db, PracticeConfigRecord)

    def get_for_user(self, user_id: int) -> Optional[PracticeConfigRecord]:
        return self.db.query(PracticeConfigRecord).filter(
            PracticeConfigRecord.user_id == user_id
        ).first()

    def upsert(self, user_id: int, new_topics: int, strong_areas: int,
               mistakes: int, time_consuming: int) -> PracticeConfigRecord:
        record = self.get_for_user(user_id)
        if record is None:
            record = PracticeConfigRecord(user_id=user_id)
            self.db.add(record)
        record.new_topics_percent = new_topics
        record.strong_areas_percent = strong_areas
        record.mistakes_percent = mistakes
        record.time_consuming_percent = time_consuming
        self.db.commit()
        self.db.refresh(record)
        return record
