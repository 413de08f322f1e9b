"""
Concept proficiency formulas

Pure functions behind the batch recalculation: accuracy, level table, review
schedule, trend and confidence.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

from app.engine.types import ProficiencyLevel, Trend
from app.utils.helpers import add_days

# (min accuracy, min attempts, level), evaluated top-down after the <2 attempts check
LEVEL_TABLE = (
    (90, 10, ProficiencyLevel.MASTERED),
    (75, 5, ProficiencyLevel.STRONG),
    (50, 3, ProficiencyLevel.MEDIUM),
    (25, 2, ProficiencyLevel.DEVELOPING),
)

BASE_REVIEW_DAYS = {
    ProficiencyLevel.MASTERED: 30,
    ProficiencyLevel.STRONG: 14,
    ProficiencyLevel.MEDIUM: 7,
    ProficiencyLevel.DEVELOPING: 3,
    ProficiencyLevel.WEAK: 1,
    ProficiencyLevel.UNKNOWN: 1,
}

MAX_CORRECT_BONUS_DAYS = 5
TREND_DEAD_BAND = 5.0
CONFIDENCE_FULL_ATTEMPTS = 20


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def accuracy_rate(total_attempts: int, correct_attempts: int) -> float:
    if not total_attempts:
        return 0.0
    return correct_attempts * 100 / total_attempts


def proficiency_level(accuracy: float, total_attempts: int) -> ProficiencyLevel:
    if total_attempts < 2:
        return ProficiencyLevel.UNKNOWN
    for min_accuracy, min_attempts, level in LEVEL_TABLE:
        if accuracy >= min_accuracy and total_attempts >= min_attempts:
            return level
    return ProficiencyLevel.WEAK


def next_review_date(level: ProficiencyLevel, correct_attempts: int, today: date) -> date:
    days = BASE_REVIEW_DAYS[level] + min(correct_attempts, MAX_CORRECT_BONUS_DAYS)
    return add_days(today, days)


def trend(new_accuracy: float, previous_accuracy: Optional[float]) -> Trend:
    """First computation has nothing to compare against and reports stable"""
    if previous_accuracy is None:
        return Trend.STABLE
    delta = new_accuracy - previous_accuracy
    if delta > TREND_DEAD_BAND:
        return Trend.IMPROVING
    if delta < -TREND_DEAD_BAND:
        return Trend.DECLINING
    return Trend.STABLE


def confidence_score(accuracy: float, total_attempts: int) -> int:
    volume = 0.5 + 0.5 * min(total_attempts / CONFIDENCE_FULL_ATTEMPTS, 1)
    score = _round_half_up(100 * (accuracy / 100) * volume)
    return max(0, min(100, score))


@dataclass(frozen=True)
class ProficiencySnapshot:
    accuracy_rate: float
    proficiency_level: ProficiencyLevel
    confidence_score: int
    recent_trend: Trend
    next_review_date: date


def recalculate(total_attempts: int, correct_attempts: int,
                previous_accuracy: Optional[float], today: date) -> ProficiencySnapshot:
    """
    Derive every batch metric for one concept stat

    Args:
        total_attempts: attempts so far
        correct_attempts: correct attempts so far
        previous_accuracy: accuracy stored by the last recalculation, None if never run
        today: base date for the review schedule

    Returns:
        ProficiencySnapshot: values to write back
    """
    accuracy = accuracy_rate(total_attempts, correct_attempts)
    level = proficiency_level(accuracy, total_attempts)
    return ProficiencySnapshot(
        accuracy_rate=accuracy,
        proficiency_level=level,
        confidence_score=confidence_score(accuracy, total_attempts),
        recent_trend=trend(accuracy, previous_accuracy),
        next_review_date=next_review_date(level, correct_attempts, today),
    )
