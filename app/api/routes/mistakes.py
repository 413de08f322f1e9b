import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.schemas.mistake_schemas import (
    MistakePracticeRequest, MistakePracticeResponse, MistakeResponse,
    MistakeRetryRequest, MistakeRetryResponse
)
from app.services.mistake_service import MistakeService
from app.utils.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{user_id}", response_model=List[MistakeResponse])
async def list_mistakes(user_id: int, db: Session = Depends(get_db)):
    """Unresolved mistakes, most recently attempted first"""
    try:
        return MistakeService(db).list_mistakes(user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching mistakes")


@router.get("/{user_id}/due", response_model=List[MistakeResponse])
async def get_due_mistakes(user_id: int, db: Session = Depends(get_db)):
    """Mastered mistakes whose review date has arrived"""
    try:
        return MistakeService(db).get_mistakes_due_for_review(user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching mistakes due for review")


@router.post("/{user_id}/{mistake_id}/practice", response_model=MistakePracticeResponse)
def practice_mistake(user_id: int, mistake_id: int, request: MistakePracticeRequest,
                     db: Session = Depends(get_db)):
    try:
        return MistakeService(db).practice(user_id, mistake_id, request.is_correct, request.time_taken)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Practicing mistake")


@router.post("/{user_id}/{mistake_id}/retry", response_model=MistakeRetryResponse)
def retry_mistake(user_id: int, mistake_id: int, request: MistakeRetryRequest,
                  db: Session = Depends(get_db)):
    try:
        return MistakeService(db).retry(user_id, mistake_id, request.is_correct)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Retrying mistake")
