"""
Practice service
Daily practice sessions: configuration, generation from the four candidate
sources, answer submission, and the read side (today, summary, history,
streak).
"""

import asyncio
import logging
import random
import time
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.engine.allocator import CategoryTargets, allocate_categories, validate_config
from app.engine.assembler import (
    assemble,
    breakdown,
    compute_shortfalls,
    distribute_fallback,
    shuffle_items,
)
from app.engine.selectors import CandidateSelector, default_selectors
from app.engine.types import Candidate, Category, PracticeConfig, SessionStatus
from app.models.practice_session import PracticeSession, SessionItem
from app.models.user_answer import UserAnswer
from app.repositories.candidate_store import CandidateStore, SqlCandidateStore
from app.repositories.practice_config_repository import PracticeConfigRepository
from app.repositories.practice_session_repository import PracticeSessionRepository
from app.repositories.question_repository import QuestionRepository
from app.repositories.user_repository import UserRepository
from app.services.background import BackgroundTaskRunner, get_background_runner
from app.services.mistake_service import MistakeService, mistake_lock_key
from app.services.proficiency_service import update_proficiency_for_submission
from app.utils.database import get_db_session
from app.utils.exceptions import AlreadyCompleted, NotFound, PersistenceError, ValidationError
from app.utils.helpers import start_of_day, utc_now, utc_today
from app.utils.locks import KeyedLock, row_locks

logger = logging.getLogger(__name__)


def default_config() -> PracticeConfig:
    return PracticeConfig(
        new_topics=settings.DEFAULT_NEW_TOPICS_PERCENT,
        strong_areas=settings.DEFAULT_STRONG_AREAS_PERCENT,
        mistakes=settings.DEFAULT_MISTAKES_PERCENT,
        time_consuming=settings.DEFAULT_TIME_CONSUMING_PERCENT,
    )


def accuracy_percent(correct: int, answered: int) -> int:
    """round(correct / answered * 100), half-up; 0 when nothing answered"""
    if not answered:
        return 0
    return (correct * 200 + answered) // (answered * 2)


class PracticeService:
    def __init__(self, db: Session,
                 session_factory: Callable[[], Session] = get_db_session,
                 runner: Optional[BackgroundTaskRunner] = None,
                 rng: Optional[random.Random] = None,
                 locks: KeyedLock = row_locks,
                 selectors: Optional[Dict[Category, CandidateSelector]] = None,
                 generate_timeout: Optional[float] = None,
                 submit_timeout: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.db = db
        self.session_factory = session_factory
        self.runner = runner or get_background_runner()
        self.rng = rng or random.Random()
        self.locks = locks
        self.selectors = selectors or default_selectors()
        self.generate_timeout = generate_timeout or settings.GENERATE_TIMEOUT_SECONDS
        self.submit_timeout = submit_timeout or settings.SUBMIT_TIMEOUT_SECONDS
        self.clock = clock

        self.session_repo = PracticeSessionRepository(db)
        self.config_repo = PracticeConfigRepository(db)
        self.question_repo = QuestionRepository(db)
        self.user_repo = UserRepository(db)
        self.mistake_service = MistakeService(db, locks)
        logger.info("Practice service initialised")

    def _require_user(self, user_id: int):
        user = self.user_repo.get_by_id(user_id)
        if user is None or not user.is_active:
            raise NotFound("User", user_id)
        return user

    def _owned_session(self, user_id: int, session_id: int) -> PracticeSession:
        session = self.session_repo.get_owned(session_id, user_id)
        if session is None:
            raise NotFound("Session", session_id)
        return session

    # ------------------------------------------------------------------
    # configuration

    def get_config(self, user_id: int) -> PracticeConfig:
        """Saved config, or the defaults when the user never saved one"""
        record = self.config_repo.get_for_user(user_id)
        if record is None:
            return default_config()
        return PracticeConfig(**record.to_dict())

    def save_config(self, user_id: int, config: PracticeConfig) -> PracticeConfig:
        validate_config(config)
        self._require_user(user_id)
        try:
            record = self.config_repo.upsert(
                user_id,
                new_topics=config.new_topics,
                strong_areas=config.strong_areas,
                mistakes=config.mistakes,
                time_consuming=config.time_consuming,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Saving practice config failed: {e}")
            raise
        logger.info(f"Saved practice config for user {user_id}: {config.to_dict()}")
        return PracticeConfig(**record.to_dict())

    # ------------------------------------------------------------------
    # generation

    async def generate(self, user_id: int, total_questions: int,
                       config: Optional[PracticeConfig] = None) -> Dict[str, Any]:
        """
        Build and persist a new practice session

        Args:
            user_id: learner
            total_questions: requested number of questions
            config: category weights; the saved (or default) config when None

        Returns:
            Dict: session_id, total_questions, total_questions_actual, breakdown

        Database work runs in worker threads. Selection and the fallback pool
        each get GENERATE_TIMEOUT_SECONDS; a phase that misses it contributes
        nothing. The final write is not cancelled once started.
        """
        if config is not None:
            validate_config(config)
        if total_questions <= 0 or total_questions > settings.MAX_SESSION_QUESTIONS:
            raise ValidationError(
                f"total_questions must be between 1 and {settings.MAX_SESSION_QUESTIONS}, got {total_questions}"
            )
        config = await asyncio.to_thread(self._load_user_config, user_id, config)

        targets = allocate_categories(total_questions, config)
        today = utc_today()
        logger.info(f"Generating session for user {user_id}: {total_questions} questions, targets {targets}")

        candidates = await self._run_selectors(user_id, targets, today)
        assembled = assemble(candidates, targets)

        if len(assembled) < total_questions:
            shortfalls = compute_shortfalls(targets, assembled)
            need = total_questions - len(assembled)
            pool = await self._fallback_pool(assembled.used_ids, need * settings.FALLBACK_OVERFETCH)
            added = distribute_fallback(pool, shortfalls, assembled)
            logger.info(f"Fallback filled {len(added)} of {need} missing questions")

        ordered = shuffle_items(assembled.items, self.rng)
        counts = breakdown(ordered)

        if not ordered:
            logger.warning(f"No questions available for user {user_id}, nothing persisted")
            return {
                "session_id": None,
                "total_questions": total_questions,
                "total_questions_actual": 0,
                "breakdown": counts,
            }

        session_id = await asyncio.to_thread(self._persist, user_id, total_questions, config, ordered)
        logger.info(f"Session {session_id} created with {len(ordered)} questions: {counts}")
        return {
            "session_id": session_id,
            "total_questions": total_questions,
            "total_questions_actual": len(ordered),
            "breakdown": counts,
        }

    async def _run_selectors(self, user_id: int, targets: CategoryTargets,
                             today: date) -> Dict[Category, List[Candidate]]:
        """Run every selector with a positive target side by side under one deadline"""
        tasks = {}
        for category, selector in self.selectors.items():
            target = targets.for_category(category)
            if target <= 0:
                continue
            tasks[category] = asyncio.create_task(
                asyncio.to_thread(self._select, selector, user_id, target, today)
            )

        results = {category: [] for category in Category}
        if not tasks:
            return results

        done, pending = await asyncio.wait(tasks.values(), timeout=self.generate_timeout)
        for category, task in tasks.items():
            if task in pending:
                task.cancel()
                logger.warning(f"{category.value} selector missed the {self.generate_timeout}s deadline")
                continue
            error = task.exception()
            if error is not None:
                logger.error(f"{category.value} selector failed: {error}")
                continue
            results[category] = task.result()
        return results

    def _load_user_config(self, user_id: int, config: Optional[PracticeConfig]) -> PracticeConfig:
        self._require_user(user_id)
        return config if config is not None else self.get_config(user_id)

    async def _fallback_pool(self, exclude_ids: Iterable[int], limit: int) -> List[int]:
        """Random active questions outside exclude_ids; empty when the pool query misses the deadline"""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._fetch_fallback, set(exclude_ids), limit),
                timeout=self.generate_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Fallback pool missed the {self.generate_timeout}s deadline")
            return []

    def _fetch_fallback(self, exclude_ids: Iterable[int], limit: int) -> List[int]:
        store = self._open_store()
        try:
            return store.fetch_random_active_question_ids(exclude_ids, limit)
        finally:
            store.close()

    def _select(self, selector: CandidateSelector, user_id: int, target: int, today: date) -> List[Candidate]:
        store = self._open_store()
        try:
            return selector.select(store, user_id, target, today)
        finally:
            store.close()

    def _open_store(self) -> CandidateStore:
        return SqlCandidateStore(self.session_factory(), owns_session=True)

    def _persist(self, user_id: int, total_questions: int, config: PracticeConfig,
                 ordered: List[Candidate]) -> int:
        """Write the session and its items as one unit; delete the session if the items fail"""
        session_id = None
        try:
            session = self.session_repo.create(
                commit=False,
                user_id=user_id,
                total_questions=total_questions,
                total_questions_actual=len(ordered),
                config_used=config.to_dict(),
                status=SessionStatus.ACTIVE.value,
                questions_answered=0,
                correct_answers=0,
                started_at=utc_now(),
            )
            session_id = session.id
            self.session_repo.add_items(session_id, [
                {
                    "question_id": candidate.question_id,
                    "category": candidate.category.value,
                    "order_index": index,
                }
                for index, candidate in enumerate(ordered)
            ])
            self.db.commit()
            return session_id
        except Exception as e:
            self.db.rollback()
            logger.error(f"Persisting session for user {user_id} failed: {e}")
            if session_id is not None:
                self._compensate(session_id)
            raise PersistenceError(f"Could not save practice session: {e}") from e

    def _compensate(self, session_id: int):
        try:
            if self.session_repo.delete_session(session_id):
                logger.warning(f"Deleted orphaned session {session_id}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Compensation for session {session_id} failed: {e}")

    # ------------------------------------------------------------------
    # submission

    def submit(self, user_id: int, session_id: int, answers: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Grade answers, log mistakes and schedule the proficiency update

        Each answer is committed on its own, so a timeout leaves a durable
        prefix. The session completes only when every answer was processed.

        Args:
            user_id: owner of the session
            session_id: session being answered
            answers: dicts with item_id, selected_option (None = skipped), time_taken

        Returns:
            Dict: session_id, status, partial, results, summary
        """
        answers = self._normalise_answers(answers)

        session = self._owned_session(user_id, session_id)
        if session.status == SessionStatus.COMPLETED.value:
            raise AlreadyCompleted(session_id)

        with self.locks.hold(("session", session_id)):
            session = self.session_repo.get_owned(session_id, user_id, for_update=True)
            if session is None:
                raise NotFound("Session", session_id)
            if session.status == SessionStatus.COMPLETED.value:
                raise AlreadyCompleted(session_id)

            items = {item.id: item for item in self.session_repo.get_items(session_id)}
            unknown = [a["item_id"] for a in answers if a["item_id"] not in items]
            if unknown:
                raise ValidationError(f"Items not in session {session_id}: {unknown}")
            questions = self.question_repo.get_questions_by_ids(item.question_id for item in items.values())

            deadline = self.clock() + self.submit_timeout
            results = []
            background_answers = []
            partial = False

            try:
                for answer in answers:
                    if self.clock() > deadline:
                        partial = True
                        logger.warning(
                            f"Submit for session {session_id} timed out after {len(results)} of {len(answers)} answers"
                        )
                        break

                    item = items[answer["item_id"]]
                    if item.is_answered:
                        results.append(self._item_result(item, questions.get(item.question_id), "already_answered"))
                        continue

                    self._process_answer(user_id, item, questions.get(item.question_id), answer)
                    results.append(self._item_result(item, questions.get(item.question_id), "processed"))
                    if not item.is_skipped:
                        background_answers.append((item.question_id, bool(item.is_correct), item.time_taken_seconds))
            except Exception:
                # answers before the failing one are already committed
                self._recount_after_failure(session, list(items.values()))
                self._schedule_proficiency(user_id, session_id, background_answers, None)
                raise

            completed_question_ids = self._close_out(session, list(items.values()), complete=not partial)

        processed = [r for r in results if r["status"] == "processed"]
        answered = sum(1 for r in processed if not r["is_skipped"])
        correct = sum(1 for r in processed if r["is_correct"])
        skipped = sum(1 for r in processed if r["is_skipped"])

        self._schedule_proficiency(user_id, session_id, background_answers, completed_question_ids)

        return {
            "session_id": session_id,
            "status": session.status,
            "partial": partial,
            "results": results,
            "summary": {
                "answered": answered,
                "correct": correct,
                "skipped": skipped,
                "accuracy": accuracy_percent(correct, answered),
            },
        }

    def _schedule_proficiency(self, user_id: int, session_id: int, answers: List[tuple],
                              completed_question_ids: Optional[List[int]]):
        if not answers and completed_question_ids is None:
            return
        self.runner.submit(
            f"proficiency:session:{session_id}",
            update_proficiency_for_submission,
            self.session_factory,
            user_id,
            answers,
            completed_question_ids,
            self.locks,
        )

    def _recount_after_failure(self, session: PracticeSession, items: List[SessionItem]):
        """Bring the session counters in line with the committed items; the session stays active"""
        try:
            self._close_out(session, items, complete=False)
        except Exception as e:
            logger.error(f"Recounting session {session.id} after a failed answer failed: {e}")

    @staticmethod
    def _normalise_answers(answers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        normalised = []
        seen = set()
        for answer in answers:
            item_id = answer.get("item_id")
            if not isinstance(item_id, int) or isinstance(item_id, bool):
                raise ValidationError(f"Malformed item_id: {item_id!r}")
            if item_id in seen:
                raise ValidationError(f"Item {item_id} answered twice")
            seen.add(item_id)

            selected = answer.get("selected_option")
            if selected is not None and (not isinstance(selected, int) or selected < 0):
                raise ValidationError(f"Malformed selected_option for item {item_id}: {selected!r}")

            time_taken = answer.get("time_taken") or 0
            if time_taken < 0:
                raise ValidationError(f"time_taken must be >= 0 for item {item_id}")
            normalised.append({"item_id": item_id, "selected_option": selected, "time_taken": float(time_taken)})
        return normalised

    def _process_answer(self, user_id: int, item: SessionItem, question, answer: Dict[str, Any]):
        """Grade one answer and commit it together with its mistake upsert"""
        selected = answer["selected_option"]
        is_skipped = selected is None
        is_correct = (not is_skipped and question is not None
                      and question.correct_answer_index == selected)
        now = utc_now()

        with self.locks.hold(mistake_lock_key(user_id, item.question_id)):
            try:
                item.is_answered = True
                item.is_skipped = is_skipped
                item.is_correct = is_correct
                item.selected_option = selected
                item.time_taken_seconds = answer["time_taken"]
                item.answered_at = now

                self.db.add(UserAnswer(
                    user_id=user_id,
                    question_id=item.question_id,
                    source="daily_practice",
                    selected_option=selected,
                    is_correct=is_correct,
                    is_skipped=is_skipped,
                    time_taken_seconds=answer["time_taken"],
                    answered_at=now,
                ))

                if not is_correct and question is not None:
                    self.mistake_service.record_miss(user_id, question, selected)

                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Saving answer for item {item.id} failed: {e}")
                raise
        logger.debug(f"Item {item.id}: skipped={is_skipped}, correct={is_correct}")

    @staticmethod
    def _item_result(item: SessionItem, question, status: str) -> Dict[str, Any]:
        return {
            "item_id": item.id,
            "question_id": item.question_id,
            "status": status,
            "is_correct": bool(item.is_correct),
            "is_skipped": bool(item.is_skipped),
            "correct_answer": question.correct_answer_index if question is not None else None,
        }

    def _close_out(self, session: PracticeSession, items: List[SessionItem], complete: bool) -> Optional[List[int]]:
        """
        Recompute session counters from its items and optionally complete it

        Returns:
            Optional[List[int]]: answered question ids when the session completed, else None
        """
        try:
            session.questions_answered = sum(1 for i in items if i.is_answered and not i.is_skipped)
            session.correct_answers = sum(1 for i in items if i.is_correct)
            if complete:
                session.status = SessionStatus.COMPLETED.value
                session.completed_at = utc_now()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Updating session {session.id} failed: {e}")
            raise

        if not complete:
            return None
        logger.info(
            f"Session {session.id} completed: {session.correct_answers}/{session.questions_answered} correct"
        )
        return [i.question_id for i in items if i.is_answered and not i.is_skipped]

    # ------------------------------------------------------------------
    # read side

    def get_session(self, user_id: int, session_id: int) -> Dict[str, Any]:
        session = self._owned_session(user_id, session_id)
        data = session.to_dict()
        data["items"] = [item.to_dict() for item in session.items]
        return data

    def get_next_item(self, user_id: int, session_id: int) -> Dict[str, Any]:
        """Lowest order_index item not yet answered, or completed=True"""
        session = self._owned_session(user_id, session_id)
        item = self.session_repo.get_next_unanswered_item(session.id)
        if item is None:
            return {"completed": True, "item": None}
        question = self.question_repo.get_by_id(item.question_id)
        data = item.to_dict()
        data["question"] = question.to_dict() if question else None
        return {"completed": False, "item": data}

    def get_today_status(self, user_id: int) -> Dict[str, Any]:
        session = self.session_repo.get_latest_since(user_id, start_of_day(utc_today()))
        if session is None:
            return {
                "session_id": None,
                "status": "not_started",
                "questions_answered": 0,
                "total_questions": 0,
                "correct_answers": 0,
            }
        status = "completed" if session.status == SessionStatus.COMPLETED.value else "in_progress"
        return {
            "session_id": session.id,
            "status": status,
            "questions_answered": session.questions_answered or 0,
            "total_questions": session.total_questions_actual or 0,
            "correct_answers": session.correct_answers or 0,
        }

    def get_summary(self, user_id: int, session_id: int) -> Dict[str, Any]:
        session = self._owned_session(user_id, session_id)
        per_category = {category.value: {"total": 0, "correct": 0} for category in Category}
        for item in session.items:
            per_category[item.category]["total"] += 1
            if item.is_correct:
                per_category[item.category]["correct"] += 1

        data = session.to_dict()
        data["accuracy"] = accuracy_percent(session.correct_answers or 0, session.questions_answered or 0)
        data["breakdown"] = per_category
        return data

    def get_history(self, user_id: int, limit: int = 30) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.session_repo.get_user_sessions(user_id, limit)]

    def get_streak(self, user_id: int) -> Dict[str, int]:
        """
        Consecutive days with a completed session

        Days are the UTC start dates of completed sessions. current_streak
        counts back from the most recent such day; best_streak is the
        longest run seen.
        """
        sessions = self.session_repo.get_completed_sessions(user_id)
        days = sorted({s.started_at.date() for s in sessions if s.started_at}, reverse=True)
        if not days:
            return {"current_streak": 0, "best_streak": 0}

        current = 1
        best = 1
        run = 1
        current_open = True
        for previous, day in zip(days, days[1:]):
            if (previous - day).days == 1:
                run += 1
                if current_open:
                    current = run
            else:
                current_open = False
                run = 1
            best = max(best, run)
        return {"current_streak": current, "best_streak": best}
