"""
Mistake service
Two ways to work a mistake: practice (mastery streaks and spaced repetition)
and retry (marks it resolved or not, nothing else). Session submissions log
misses through record_miss.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.engine.mastery import MasteryState, MistakeMasteryStateMachine
from app.models.mistake import MistakeRecord
from app.models.question import Question
from app.repositories.mistake_repository import MistakeRepository
from app.utils.exceptions import NotFound, ValidationError
from app.utils.helpers import utc_now, utc_today
from app.utils.locks import KeyedLock, row_locks

logger = logging.getLogger(__name__)


def mistake_lock_key(user_id: int, question_id: int) -> Tuple[str, int, int]:
    return ("mistake", user_id, question_id)


class MistakeService:
    def __init__(self, db: Session, locks: KeyedLock = row_locks):
        self.db = db
        self.locks = locks
        self.mistake_repo = MistakeRepository(db)
        self.machine = MistakeMasteryStateMachine(
            streak_threshold=settings.MASTERY_STREAK_THRESHOLD,
            review_interval_days=settings.MASTERY_REVIEW_INTERVAL_DAYS,
        )
        logger.info("Mistake service initialised")

    def _owned_question_id(self, user_id: int, mistake_id: int) -> int:
        mistake = self.mistake_repo.get_owned(mistake_id, user_id)
        if mistake is None:
            raise NotFound("Mistake", mistake_id)
        return mistake.question_id

    def practice(self, user_id: int, mistake_id: int, is_correct: bool, time_taken: float = 0) -> Dict[str, Any]:
        """
        Record one practice attempt on a mistake

        Args:
            user_id: owner
            mistake_id: mistake to practice
            is_correct: attempt result
            time_taken: seconds spent

        Returns:
            Dict: mastery_status, consecutive_correct, next_review_date, progress_message
        """
        if time_taken is not None and time_taken < 0:
            raise ValidationError(f"time_taken must be >= 0, got {time_taken}")

        question_id = self._owned_question_id(user_id, mistake_id)
        with self.locks.hold(mistake_lock_key(user_id, question_id)):
            try:
                mistake = self.mistake_repo.get_owned(mistake_id, user_id, for_update=True)
                if mistake is None:
                    raise NotFound("Mistake", mistake_id)

                state = self.machine.practice(
                    MasteryState.from_record(mistake), is_correct, time_taken or 0, utc_today()
                )
                state.apply_to(mistake)
                now = utc_now()
                mistake.last_attempted = now
                if is_correct:
                    mistake.last_correct_at = now
                self.db.commit()
            except NotFound:
                raise
            except Exception as e:
                self.db.rollback()
                logger.error(f"Mistake practice failed: {e}")
                raise

        logger.info(f"Practiced mistake {mistake_id}: correct={is_correct}, status={state.mastery_status.value}")
        result = self.machine.describe(state)
        result.update({
            "mistake_id": mistake_id,
            "retry_count": state.retry_count,
            "total_correct": state.total_correct,
        })
        return result

    def retry(self, user_id: int, mistake_id: int, is_correct: bool) -> Dict[str, Any]:
        """Mark the mistake resolved (or not) from a single retry; streak fields stay as they are"""
        question_id = self._owned_question_id(user_id, mistake_id)
        with self.locks.hold(mistake_lock_key(user_id, question_id)):
            try:
                mistake = self.mistake_repo.get_owned(mistake_id, user_id, for_update=True)
                if mistake is None:
                    raise NotFound("Mistake", mistake_id)

                state = self.machine.retry(MasteryState.from_record(mistake), is_correct)
                state.apply_to(mistake)
                mistake.last_attempted = utc_now()
                self.db.commit()
            except NotFound:
                raise
            except Exception as e:
                self.db.rollback()
                logger.error(f"Mistake retry failed: {e}")
                raise

        logger.info(f"Retried mistake {mistake_id}: resolved={state.is_resolved}")
        return {
            "mistake_id": mistake_id,
            "is_resolved": state.is_resolved,
            "retry_count": state.retry_count,
        }

    def record_miss(self, user_id: int, question: Question, selected_option: Optional[int]) -> MistakeRecord:
        """
        Upsert the mistake for a wrong or skipped answer; flushes, caller commits

        The caller must hold mistake_lock_key(user_id, question.id).
        """
        mistake = self.mistake_repo.get_for_user_question(user_id, question.id, for_update=True)
        now = utc_now()
        if mistake is None:
            mistake = self.mistake_repo.create(
                commit=False,
                user_id=user_id,
                question_id=question.id,
                selected_option=selected_option,
                difficulty=question.difficulty,
                retry_count=0,
                is_resolved=False,
                consecutive_correct=0,
                total_correct=0,
                mastery_status="not_started",
                time_taken_avg=0,
                last_attempted=now,
            )
            logger.debug(f"New mistake for user {user_id}, question {question.id}")
            return mistake

        self.machine.record_miss(MasteryState.from_record(mistake)).apply_to(mistake)
        mistake.selected_option = selected_option
        mistake.last_attempted = now
        self.db.flush()
        return mistake

    def list_mistakes(self, user_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self.mistake_repo.get_unresolved(user_id, limit)]

    def get_mistakes_due_for_review(self, user_id: int) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self.mistake_repo.get_due_mastered(user_id, utc_today())]
