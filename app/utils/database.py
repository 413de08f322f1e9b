from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
import logging

from app.config.settings import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # selectors and background jobs use the engine from worker threads
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_recycle": 3600}


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,  # SQL echo in DEBUG mode
    **_engine_kwargs(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency yielding a request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def get_db_session() -> Session:
    """
    Open a standalone session.
    Used by worker threads that must not share the request session.
    """
    return SessionLocal()


def check_db_connection() -> bool:
    """Run SELECT 1 against the configured database"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


def import_models():
    """Register every model on Base.metadata"""
    from app.models.base import Base
    from app.models.user import User
    from app.models.question import Subject, Topic, Question
    from app.models.concept import Concept, QuestionConcept
    from app.models.practice_config import PracticeConfigRecord
    from app.models.practice_session import PracticeSession, SessionItem
    from app.models.mistake import MistakeRecord
    from app.models.concept_stat import ConceptStat
    from app.models.user_answer import UserAnswer
    return Base


def init_db(bind=None):
    """Create all tables"""
    try:
        Base = import_models()
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables initialised")
    except Exception as e:
        logger.error(f"Database initialisation failed: {e}")
        raise


def get_session_factory():
    """FastAPI dependency: how worker threads open their own sessions"""
    return get_db_session
