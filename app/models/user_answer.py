from sqlalchemy import Column, String, Integer, ForeignKey, Boolean, DateTime, Float
from .base import BaseModel, _utc_now


"""
Answer history model
Every answered or skipped question, whatever surface it came from. Feeds the
time-consuming selector and the skipped-question supplement for mistakes.
"""

class UserAnswer(BaseModel):
    __tablename__ = "user_answers"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    source = Column(String(30), default="daily_practice")
    selected_option = Column(Integer)
    is_correct = Column(Boolean, default=False)
    is_skipped = Column(Boolean, default=False)
    time_taken_seconds = Column(Float, default=0)
    answered_at = Column(DateTime, default=_utc_now, index=True)
