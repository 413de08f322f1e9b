from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Boolean, Float, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel, _utc_now

"""
Practice session models
A session is generated once, answered once, and only ever moves
active -> completed. Items carry their source category and a contiguous
0-based order_index.
"""
class PracticeSession(BaseModel):
    __tablename__ = "practice_sessions"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    total_questions = Column(Integer, nullable=False)  # requested
    total_questions_actual = Column(Integer, default=0)
    config_used = Column(JSON)
    status = Column(String(20), default="active")  # active, completed
    questions_answered = Column(Integer, default=0)
    correct_answers = Column(Integer, default=0)
    started_at = Column(DateTime, default=_utc_now, index=True)
    completed_at = Column(DateTime)

    items = relationship(
        "SessionItem",
        back_populates="session",
        order_by="SessionItem.order_index",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "total_questions": self.total_questions,
            "total_questions_actual": self.total_questions_actual,
            "config_used": self.config_used,
            "status": self.status,
            "questions_answered": self.questions_answered,
            "correct_answers": self.correct_answers,
            "started_at": self._iso(self.started_at),
            "completed_at": self._iso(self.completed_at)
        }


class SessionItem(BaseModel):
    __tablename__ = "practice_session_items"
    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_session_question"),
    )

    session_id = Column(Integer, ForeignKey("practice_sessions.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    category = Column(String(30), nullable=False)  # new_topic, strong_area, mistake, time_consuming
    order_index = Column(Integer, nullable=False)
    is_answered = Column(Boolean, default=False)
    is_correct = Column(Boolean)
    is_skipped = Column(Boolean, default=False)
    selected_option = Column(Integer)
    time_taken_seconds = Column(Float)
    answered_at = Column(DateTime)

    session = relationship("PracticeSession", back_populates="items")

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "question_id": self.question_id,
            "category": self.category,
            "order_index": self.order_index,
            "is_answered": self.is_answered,
            "is_correct": self.is_correct,
            "is_skipped": self.is_skipped,
            "selected_option": self.selected_option,
            "time_taken_seconds": self.time_taken_seconds,
            "answered_at": self._iso(self.answered_at)
        }
