import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.schemas.practice_schemas import (
    GenerateRequest, GenerateResponse, NextItemResponse, PracticeConfigSchema,
    SessionDetailResponse, SessionResponse, SessionSummaryResponse,
    StreakResponse, SubmitRequest, SubmitResponse, TodayStatusResponse
)
from app.services.background import get_background_runner
from app.services.practice_service import PracticeService
from app.utils.database import get_db, get_session_factory

logger = logging.getLogger(__name__)
router = APIRouter()


def get_practice_service(db: Session = Depends(get_db),
                         session_factory=Depends(get_session_factory),
                         runner=Depends(get_background_runner)) -> PracticeService:
    return PracticeService(db, session_factory=session_factory, runner=runner)


@router.get("/{user_id}/config", response_model=PracticeConfigSchema)
async def get_config(user_id: int, service: PracticeService = Depends(get_practice_service)):
    try:
        return service.get_config(user_id).to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching practice config")


@router.put("/{user_id}/config", response_model=PracticeConfigSchema)
async def save_config(user_id: int, config: PracticeConfigSchema,
                      service: PracticeService = Depends(get_practice_service)):
    try:
        return service.save_config(user_id, config.to_config()).to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Saving practice config")


@router.post("/{user_id}/generate", response_model=GenerateResponse)
async def generate_session(user_id: int, request: GenerateRequest,
                           service: PracticeService = Depends(get_practice_service)):
    """
    Generate today's practice session
    """
    try:
        config = request.config.to_config() if request.config else None
        return await service.generate(user_id, request.total_questions, config)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Generating practice session")


@router.get("/{user_id}/today", response_model=TodayStatusResponse)
async def get_today_status(user_id: int, service: PracticeService = Depends(get_practice_service)):
    try:
        return service.get_today_status(user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching today's status")


@router.get("/{user_id}/history", response_model=List[SessionResponse])
async def get_history(user_id: int, limit: int = Query(30, ge=1, le=100),
                      service: PracticeService = Depends(get_practice_service)):
    try:
        return service.get_history(user_id, limit)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching practice history")


@router.get("/{user_id}/streak", response_model=StreakResponse)
async def get_streak(user_id: int, service: PracticeService = Depends(get_practice_service)):
    try:
        return service.get_streak(user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching practice streak")


@router.get("/{user_id}/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_session(user_id: int, session_id: int,
                      service: PracticeService = Depends(get_practice_service)):
    try:
        return service.get_session(user_id, session_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching practice session")


@router.get("/{user_id}/sessions/{session_id}/next", response_model=NextItemResponse)
async def get_next_item(user_id: int, session_id: int,
                        service: PracticeService = Depends(get_practice_service)):
    try:
        return service.get_next_item(user_id, session_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching next question")


@router.get("/{user_id}/sessions/{session_id}/summary", response_model=SessionSummaryResponse)
async def get_summary(user_id: int, session_id: int,
                      service: PracticeService = Depends(get_practice_service)):
    try:
        return service.get_summary(user_id, session_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching session summary")


@router.post("/{user_id}/sessions/{session_id}/submit", response_model=SubmitResponse)
def submit_answers(user_id: int, session_id: int, request: SubmitRequest,
                   service: PracticeService = Depends(get_practice_service)):
    """
    Submit answers for a session; runs in the threadpool since it holds row locks
    """
    try:
        answers = [answer.model_dump() for answer in request.answers]
        return service.submit(user_id, session_id, answers)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Submitting answers")
