from sqlalchemy import Column, String, Integer, ForeignKey, Boolean, Text
from sqlalchemy.orm import relationship
from .base import BaseModel

"""
Content models
Question -N:1-> Topic -N:1-> Subject. Questions are multiple choice with
four options; correct_answer_index is 0-3.
"""


class Subject(BaseModel):
    __tablename__ = "subjects"

    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True)


class Topic(BaseModel):
    __tablename__ = "topics"

    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    name = Column(String(200), nullable=False)

    subject = relationship("Subject", backref="topics")


class Question(BaseModel):
    __tablename__ = "questions"

    topic_id = Column(Integer, ForeignKey("topics.id"), index=True)
    question_text = Column(Text)
    difficulty = Column(String(20), default="medium")  # easy, medium, hard
    correct_answer_index = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, index=True)

    topic = relationship("Topic", backref="questions")

    def to_dict(self):
        return {
            "id": self.id,
            "topic_id": self.topic_id,
            "question_text": self.question_text,
            "difficulty": self.difficulty,
            "is_active": self.is_active
        }
