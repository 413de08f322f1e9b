from sqlalchemy import Column, String, Integer, ForeignKey, Boolean, DateTime, Date, Float, UniqueConstraint
from sqlalchemy.orm import relationship

from app.models.base import BaseModel, _utc_now


"""
Mistake model
One row per (user, question) the user has missed or skipped. Rows are never
deleted; is_resolved and mastery_status are tracked independently.
"""


class MistakeRecord(BaseModel):
    __tablename__ = "user_mistakes"
    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_user_mistake"),
    )

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    selected_option = Column(Integer)
    difficulty = Column(String(20))

    retry_count = Column(Integer, default=0)
    is_resolved = Column(Boolean, default=False)

    consecutive_correct = Column(Integer, default=0)
    total_correct = Column(Integer, default=0)
    mastery_status = Column(String(20), default="not_started")  # not_started, practicing, mastered
    next_review_date = Column(Date)
    time_taken_avg = Column(Float, default=0)
    last_correct_at = Column(DateTime)
    last_attempted = Column(DateTime, default=_utc_now)

    question = relationship("Question")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "question_id": self.question_id,
            "selected_option": self.selected_option,
            "difficulty": self.difficulty,
            "retry_count": self.retry_count,
            "is_resolved": self.is_resolved,
            "consecutive_correct": self.consecutive_correct,
            "total_correct": self.total_correct,
            "mastery_status": self.mastery_status,
            "next_review_date": self._iso(self.next_review_date),
            "time_taken_avg": self.time_taken_avg,
            "last_correct_at": self._iso(self.last_correct_at),
            "last_attempted": self._iso(self.last_attempted)
        }
