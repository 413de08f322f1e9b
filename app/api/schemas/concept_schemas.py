from pydantic import BaseModel
from typing import Optional


class ConceptStatResponse(BaseModel):
    id: int
    user_id: int
    concept_id: int
    concept_name: Optional[str] = None
    total_attempts: int
    correct_attempts: int
    avg_time_seconds: Optional[float] = None
    accuracy_rate: Optional[float] = None
    proficiency_level: str
    confidence_score: int
    recent_trend: str
    next_review_date: Optional[str] = None
    last_practiced: Optional[str] = None
