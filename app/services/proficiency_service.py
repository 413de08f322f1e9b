import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.engine import proficiency
from app.engine.types import WEAK_LEVELS
from app.models.concept_stat import ConceptStat
from app.repositories.concept_stat_repository import ConceptStatRepository
from app.repositories.question_repository import QuestionRepository
from app.utils.helpers import running_mean, unique_in_order, utc_now, utc_today
from app.utils.locks import KeyedLock, row_locks

logger = logging.getLogger(__name__)


def concept_lock_key(user_id: int, concept_id: int) -> Tuple[str, int, int]:
    return ("concept_stat", user_id, concept_id)


class ProficiencyService:
    """
    Concept proficiency aggregation

    record_answer is the real-time step (counters and running mean per linked
    concept); recalculate is the batch step (accuracy, level, confidence,
    trend and review date). Both serialise per (user, concept).
    """

    def __init__(self, db: Session, locks: KeyedLock = row_locks):
        self.db = db
        self.locks = locks
        self.stat_repo = ConceptStatRepository(db)
        self.question_repo = QuestionRepository(db)
        logger.info("Proficiency service initialised")

    def record_answer(self, user_id: int, question_id: int, is_correct: bool, time_taken: float) -> List[int]:
        """
        Fold one answer into every concept linked to the question

        Args:
            user_id: learner
            question_id: answered question
            is_correct: answer correctness
            time_taken: seconds spent

        Returns:
            List[int]: concept ids touched
        """
        concept_ids = self.question_repo.get_concept_ids_for_question(question_id)
        for concept_id in concept_ids:
            with self.locks.hold(concept_lock_key(user_id, concept_id)):
                try:
                    stat = self._get_or_create(user_id, concept_id)
                    previous = stat.total_attempts or 0
                    stat.avg_time_seconds = running_mean(stat.avg_time_seconds, previous, time_taken or 0)
                    stat.total_attempts = previous + 1
                    if is_correct:
                        stat.correct_attempts = (stat.correct_attempts or 0) + 1
                    stat.last_practiced = utc_now()
                    self.db.commit()
                except Exception as e:
                    self.db.rollback()
                    logger.error(f"Real-time concept update failed (user {user_id}, concept {concept_id}): {e}")
                    raise
        logger.debug(f"Recorded answer for user {user_id}, question {question_id}: concepts {concept_ids}")
        return concept_ids

    def _get_or_create(self, user_id: int, concept_id: int) -> ConceptStat:
        stat = self.stat_repo.get_for_user_concept(user_id, concept_id, for_update=True)
        if stat is not None:
            return stat
        try:
            return self.stat_repo.create(
                commit=False,
                user_id=user_id,
                concept_id=concept_id,
                total_attempts=0,
                correct_attempts=0,
            )
        except IntegrityError:
            # another process created the row first
            self.db.rollback()
            return self.stat_repo.get_for_user_concept(user_id, concept_id, for_update=True)

    def recalculate(self, user_id: int, concept_ids: Iterable[int], today: Optional[date] = None) -> int:
        """
        Recompute derived metrics for the given concepts

        Returns:
            int: number of stat rows updated
        """
        today = today or utc_today()
        updated = 0
        for concept_id in unique_in_order(concept_ids):
            with self.locks.hold(concept_lock_key(user_id, concept_id)):
                try:
                    stat = self.stat_repo.get_for_user_concept(user_id, concept_id, for_update=True)
                    if stat is None:
                        continue
                    snapshot = proficiency.recalculate(
                        stat.total_attempts or 0,
                        stat.correct_attempts or 0,
                        stat.accuracy_rate,
                        today,
                    )
                    if stat.proficiency_level != snapshot.proficiency_level.value:
                        logger.info(
                            f"Concept {concept_id} for user {user_id}: "
                            f"{stat.proficiency_level} -> {snapshot.proficiency_level.value}"
                        )
                    stat.accuracy_rate = snapshot.accuracy_rate
                    stat.proficiency_level = snapshot.proficiency_level.value
                    stat.confidence_score = snapshot.confidence_score
                    stat.recent_trend = snapshot.recent_trend.value
                    stat.next_review_date = snapshot.next_review_date
                    self.db.commit()
                    updated += 1
                except Exception as e:
                    self.db.rollback()
                    logger.error(f"Batch concept update failed (user {user_id}, concept {concept_id}): {e}")
                    raise
        return updated

    def concept_ids_for_questions(self, question_ids: Iterable[int]) -> List[int]:
        return self.question_repo.get_concept_ids_for_questions(question_ids)

    def get_concepts_due_for_review(self, user_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        stats = self.stat_repo.get_due_for_review(user_id, utc_today(), limit)
        return [stat.to_dict() for stat in stats]

    def get_weak_concepts(self, user_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        levels = [level.value for level in WEAK_LEVELS]
        stats = self.stat_repo.get_by_levels(user_id, levels, limit)
        return [stat.to_dict() for stat in stats]


def update_proficiency_for_submission(session_factory: Callable[[], Session], user_id: int,
                                      answers: Sequence[Tuple[int, bool, float]],
                                      completed_question_ids: Optional[Sequence[int]] = None,
                                      locks: KeyedLock = row_locks):
    """
    Background job run once per submission

    Applies the real-time step for each answer in order, then, when the
    session completed, the batch step over every concept its answered
    questions touch. A failing real-time update is logged and the remaining
    answers are still applied.

    Args:
        session_factory: opens a database session owned by this job
        user_id: learner
        answers: (question_id, is_correct, time_taken) for non-skipped answers
        completed_question_ids: answered question ids of the completed session, None if still active
    """
    db = session_factory()
    try:
        service = ProficiencyService(db, locks)
        for question_id, is_correct, time_taken in answers:
            try:
                service.record_answer(user_id, question_id, is_correct, time_taken)
            except Exception:
                logger.exception(f"Skipping real-time update for question {question_id}")

        if completed_question_ids is not None:
            concept_ids = service.concept_ids_for_questions(completed_question_ids)
            updated = service.recalculate(user_id, concept_ids)
            logger.info(f"Recalculated {updated} concept stats for user {user_id}")
    finally:
        db.close()
