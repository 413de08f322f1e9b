from sqlalchemy import Column, String, Integer, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel

"""
Concept models
A concept is the smallest taggable unit of knowledge; questions and concepts
are linked many-to-many through question_concepts.
"""


class Concept(BaseModel):
    __tablename__ = "concepts"

    topic_id = Column(Integer, ForeignKey("topics.id"), index=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True)

    topic = relationship("Topic", backref="concepts")


class QuestionConcept(BaseModel):
    __tablename__ = "question_concepts"
    __table_args__ = (
        UniqueConstraint("question_id", "concept_id", name="uq_question_concept"),
    )

    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    concept_id = Column(Integer, ForeignKey("concepts.id"), nullable=False, index=True)
    is_primary = Column(Boolean, default=False)
