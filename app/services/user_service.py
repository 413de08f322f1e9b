"""
User service
Registration and lookup. Identity is resolved upstream, so a user row only
anchors ownership of sessions, mistakes and stats.
"""

import logging
from typing import Optional
from sqlalchemy.orm import Session

from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.utils.exceptions import NotFound, ValidationError

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository(db)
        logger.info("User service initialised")

    def register_user(self, display_name: str, email: Optional[str] = None) -> User:
        """
        Create a user, or return the existing one when the email is taken
        """
        try:
            if email:
                existing = self.user_repo.get_by_email(email)
                if existing:
                    logger.info(f"User already registered: {email}")
                    return existing

            if not display_name or not display_name.strip():
                raise ValidationError("display_name must not be empty")

            user = self.user_repo.create(display_name=display_name.strip(), email=email, is_active=True)
            logger.info(f"Registered user {user.id}")
            return user
        except ValidationError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"User registration failed: {e}")
            raise

    def get_user(self, user_id: int) -> User:
        user = self.user_repo.get_by_id(user_id)
        if user is None or not user.is_active:
            raise NotFound("User", user_id)
        return user
