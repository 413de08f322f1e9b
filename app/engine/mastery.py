from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Dict, Optional
import logging

from app.engine.types import MasteryStatus
from app.utils.helpers import add_days, running_mean

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MasteryState:
    """Mutable fields of one mistake row, as a value"""
    retry_count: int = 0
    consecutive_correct: int = 0
    total_correct: int = 0
    mastery_status: MasteryStatus = MasteryStatus.NOT_STARTED
    next_review_date: Optional[date] = None
    time_taken_avg: float = 0.0
    is_resolved: bool = False

    @classmethod
    def from_record(cls, record) -> "MasteryState":
        return cls(
            retry_count=record.retry_count or 0,
            consecutive_correct=record.consecutive_correct or 0,
            total_correct=record.total_correct or 0,
            mastery_status=MasteryStatus(record.mastery_status or MasteryStatus.NOT_STARTED.value),
            next_review_date=record.next_review_date,
            time_taken_avg=record.time_taken_avg or 0.0,
            is_resolved=bool(record.is_resolved),
        )

    def apply_to(self, record) -> None:
        record.retry_count = self.retry_count
        record.consecutive_correct = self.consecutive_correct
        record.total_correct = self.total_correct
        record.mastery_status = self.mastery_status.value
        record.next_review_date = self.next_review_date
        record.time_taken_avg = self.time_taken_avg
        record.is_resolved = self.is_resolved


class MistakeMasteryStateMachine:
    """
    Streak tracking for a single mistake

    not_started -> practicing -> mastered, and back to not_started on any
    incorrect practice. Three ways to mutate a mistake exist:

    - practice: streak logic, schedules a review once mastered, leaves
      is_resolved alone
    - retry: bumps retry_count and sets is_resolved straight from the answer,
      streak fields untouched
    - record_miss: a miss during a session, marks the mistake unresolved
    """

    def __init__(self, streak_threshold: int = 3, review_interval_days: int = 7):
        self.streak_threshold = streak_threshold
        self.review_interval_days = review_interval_days

    def practice(self, state: MasteryState, is_correct: bool, time_taken: float, today: date) -> MasteryState:
        """
        Apply one practice attempt

        Args:
            state: current row state
            is_correct: whether the attempt was correct
            time_taken: seconds spent, folded into the mean only when correct
            today: date used for the review schedule

        Returns:
            MasteryState: new state
        """
        retry_count = state.retry_count + 1

        if not is_correct:
            new_state = replace(
                state,
                retry_count=retry_count,
                consecutive_correct=0,
                mastery_status=MasteryStatus.NOT_STARTED,
                next_review_date=None,
            )
            if state.mastery_status != MasteryStatus.NOT_STARTED:
                logger.info(f"Streak broken: {state.mastery_status.value} -> not_started")
            return new_state

        consecutive = state.consecutive_correct + 1
        avg = running_mean(state.time_taken_avg, state.total_correct, time_taken)

        if consecutive >= self.streak_threshold:
            status = MasteryStatus.MASTERED
            next_review = add_days(today, self.review_interval_days)
        else:
            status = MasteryStatus.PRACTICING
            next_review = None

        if status != state.mastery_status:
            logger.info(f"Mastery transition: {state.mastery_status.value} -> {status.value}")

        return replace(
            state,
            retry_count=retry_count,
            consecutive_correct=consecutive,
            total_correct=state.total_correct + 1,
            mastery_status=status,
            next_review_date=next_review,
            time_taken_avg=avg,
        )

    def retry(self, state: MasteryState, is_correct: bool) -> MasteryState:
        return replace(state, retry_count=state.retry_count + 1, is_resolved=bool(is_correct))

    def record_miss(self, state: MasteryState) -> MasteryState:
        return replace(state, retry_count=state.retry_count + 1, is_resolved=False)

    def progress_message(self, state: MasteryState) -> str:
        if state.mastery_status == MasteryStatus.MASTERED:
            return f"Mastered! Next review on {state.next_review_date.isoformat()}."
        if state.mastery_status == MasteryStatus.PRACTICING:
            left = self.streak_threshold - state.consecutive_correct
            return (f"{state.consecutive_correct}/{self.streak_threshold} correct in a row, "
                    f"{left} more to master.")
        return f"Answer correctly {self.streak_threshold} times in a row to master this question."

    def describe(self, state: MasteryState) -> Dict[str, Any]:
        return {
            "mastery_status": state.mastery_status.value,
            "consecutive_correct": state.consecutive_correct,
            "next_review_date": state.next_review_date.isoformat() if state.next_review_date else None,
            "progress_message": self.progress_message(state),
        }
