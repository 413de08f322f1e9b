from sqlalchemy import Column, Integer, ForeignKey
from .base import BaseModel

"""
Saved practice configuration, one row per user
"""
class PracticeConfigRecord(BaseModel):
    __tablename__ = "practice_configs"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    new_topics_percent = Column(Integer, default=40)
    strong_areas_percent = Column(Integer, default=20)
    mistakes_percent = Column(Integer, default=30)
    time_consuming_percent = Column(Integer, default=10)

    def to_dict(self):
        return {
            "new_topics": self.new_topics_percent,
            "strong_areas": self.strong_areas_percent,
            "mistakes": self.mistakes_percent,
            "time_consuming": self.time_consuming_percent
        }
