from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Date, Float, UniqueConstraint
from sqlalchemy.orm import relationship

from app.models.base import BaseModel


"""
Concept statistics model
Per (user, concept) counters updated on every answer, plus the derived
metrics recomputed when a session completes.
"""


class ConceptStat(BaseModel):
    __tablename__ = "user_concept_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "concept_id", name="uq_user_concept"),
    )

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    concept_id = Column(Integer, ForeignKey("concepts.id"), nullable=False, index=True)

    total_attempts = Column(Integer, default=0)
    correct_attempts = Column(Integer, default=0)
    avg_time_seconds = Column(Float)
    accuracy_rate = Column(Float)  # None until the first batch recalculation

    proficiency_level = Column(String(20), default="unknown", index=True)
    confidence_score = Column(Integer, default=0)
    recent_trend = Column(String(20), default="stable")
    next_review_date = Column(Date, index=True)
    last_practiced = Column(DateTime)

    concept = relationship("Concept")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "concept_id": self.concept_id,
            "concept_name": self.concept.name if self.concept else None,
            "total_attempts": self.total_attempts,
            "correct_attempts": self.correct_attempts,
            "avg_time_seconds": self.avg_time_seconds,
            "accuracy_rate": self.accuracy_rate,
            "proficiency_level": self.proficiency_level,
            "confidence_score": self.confidence_score,
            "recent_trend": self.recent_trend,
            "next_review_date": self._iso(self.next_review_date),
            "last_practiced": self._iso(self.last_practiced)
        }
