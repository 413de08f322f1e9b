import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.schemas.concept_schemas import ConceptStatResponse
from app.services.proficiency_service import ProficiencyService
from app.utils.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{user_id}/due", response_model=List[ConceptStatResponse])
async def get_due_concepts(user_id: int, limit: int = Query(10, ge=1, le=100),
                           db: Session = Depends(get_db)):
    try:
        return ProficiencyService(db).get_concepts_due_for_review(user_id, limit)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching concepts due for review")


@router.get("/{user_id}/weak", response_model=List[ConceptStatResponse])
async def get_weak_concepts(user_id: int, limit: int = Query(10, ge=1, le=100),
                            db: Session = Depends(get_db)):
    try:
        return ProficiencyService(db).get_weak_concepts(user_id, limit)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching weak concepts")
