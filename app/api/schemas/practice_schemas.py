from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any

from app.engine.types import PracticeConfig


class PracticeConfigSchema(BaseModel):
    """Category weights in percent"""
    new_topics: int = Field(ge=0, le=100)
    strong_areas: int = Field(ge=0, le=100)
    mistakes: int = Field(ge=0, le=100)
    time_consuming: int = Field(ge=0, le=100)

    model_config = ConfigDict(from_attributes=True)

    def to_config(self) -> PracticeConfig:
        return PracticeConfig(
            new_topics=self.new_topics,
            strong_areas=self.strong_areas,
            mistakes=self.mistakes,
            time_consuming=self.time_consuming,
        )


class GenerateRequest(BaseModel):
    total_questions: int = 10
    config: Optional[PracticeConfigSchema] = None


class CategoryBreakdown(BaseModel):
    new_topic: int = 0
    strong_area: int = 0
    mistake: int = 0
    time_consuming: int = 0


class GenerateResponse(BaseModel):
    session_id: Optional[int] = None
    total_questions: int
    total_questions_actual: int
    breakdown: CategoryBreakdown


class AnswerSubmission(BaseModel):
    item_id: int
    selected_option: Optional[int] = None  # None means skipped
    time_taken: float = 0


class SubmitRequest(BaseModel):
    answers: List[AnswerSubmission]


class AnswerResult(BaseModel):
    item_id: int
    question_id: int
    status: str  # processed, already_answered
    is_correct: bool
    is_skipped: bool
    correct_answer: Optional[int] = None


class SubmitSummary(BaseModel):
    answered: int
    correct: int
    skipped: int
    accuracy: int


class SubmitResponse(BaseModel):
    session_id: int
    status: str
    partial: bool
    results: List[AnswerResult]
    summary: SubmitSummary


class TodayStatusResponse(BaseModel):
    session_id: Optional[int] = None
    status: str  # not_started, in_progress, completed
    questions_answered: int
    total_questions: int
    correct_answers: int


class StreakResponse(BaseModel):
    current_streak: int
    best_streak: int


class SessionResponse(BaseModel):
    id: int
    user_id: int
    total_questions: int
    total_questions_actual: Optional[int] = None
    config_used: Optional[Dict[str, Any]] = None
    status: str
    questions_answered: int
    correct_answers: int
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


class SessionDetailResponse(SessionResponse):
    items: List[Dict[str, Any]] = []


class SessionSummaryResponse(SessionResponse):
    accuracy: int
    breakdown: Dict[str, Dict[str, int]]


class NextItemResponse(BaseModel):
    completed: bool
    item: Optional[Dict[str, Any]] = None
