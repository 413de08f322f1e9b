import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.schemas.user_schemas import UserCreate, UserResponse
from app.services.user_service import UserService
from app.utils.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_200_OK)
async def register_user(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Register a user; an existing email returns the existing user
    """
    try:
        user_service = UserService(db)
        return user_service.register_user(user_data.display_name, user_data.email)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "User registration")


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: Session = Depends(get_db)):
    try:
        user_service = UserService(db)
        return user_service.get_user(user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Fetching user")
