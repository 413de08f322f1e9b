from pydantic import BaseModel
from typing import Optional


class MistakeResponse(BaseModel):
    id: int
    user_id: int
    question_id: int
    selected_option: Optional[int] = None
    difficulty: Optional[str] = None
    retry_count: int
    is_resolved: bool
    consecutive_correct: int
    total_correct: int
    mastery_status: str
    next_review_date: Optional[str] = None
    time_taken_avg: Optional[float] = None
    last_correct_at: Optional[str] = None
    last_attempted: Optional[str] = None


class MistakePracticeRequest(BaseModel):
    is_correct: bool
    time_taken: float = 0


class MistakePracticeResponse(BaseModel):
    mistake_id: int
    mastery_status: str
    consecutive_correct: int
    total_correct: int
    retry_count: int
    next_review_date: Optional[str] = None
    progress_message: str


class MistakeRetryRequest(BaseModel):
    is_correct: bool


class MistakeRetryResponse(BaseModel):
    mistake_id: int
    is_resolved: bool
    retry_count: int

