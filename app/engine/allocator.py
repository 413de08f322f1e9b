from dataclasses import dataclass
from typing import Dict
import logging

from app.engine.types import Category, PracticeConfig
from app.utils.exceptions import ConfigInvalid, ValidationError

logger = logging.getLogger(__name__)


def _round_half_up(total: int, percent: int) -> int:
    return (total * percent + 50) // 100


def validate_config(config: PracticeConfig) -> None:
    """Reject configs whose percentages do not add up to 100"""
    values = (config.new_topics, config.strong_areas, config.mistakes, config.time_consuming)
    if any(value < 0 for value in values):
        raise ValidationError(f"Percentages must be non-negative: {config.to_dict()}")
    if config.total != 100:
        raise ConfigInvalid(config.total)


@dataclass(frozen=True)
class CategoryTargets:
    mistake: int
    time_consuming: int
    strong_area: int
    new_topic: int

    @property
    def total(self) -> int:
        return self.mistake + self.time_consuming + self.strong_area + self.new_topic

    def for_category(self, category: Category) -> int:
        return getattr(self, category.value)

    def as_dict(self) -> Dict[Category, int]:
        return {category: self.for_category(category) for category in Category}


def allocate_categories(total_questions: int, config: PracticeConfig) -> CategoryTargets:
    """
    Turn percentages into integer per-category targets

    mistakes, time-consuming and strong-area are each rounded half-up; the
    new-topic bucket takes whatever remains so the targets always sum to
    total_questions. When the three rounded values overshoot the total, the
    overshoot is taken back from strong-area, then time-consuming, then
    mistakes, so no target goes negative.

    Args:
        total_questions: requested session size, > 0
        config: category weights

    Returns:
        CategoryTargets: exact per-category counts
    """
    validate_config(config)
    if total_questions <= 0:
        raise ValidationError(f"total_questions must be positive, got {total_questions}")

    mistakes = _round_half_up(total_questions, config.mistakes)
    time_consuming = _round_half_up(total_questions, config.time_consuming)
    strong = _round_half_up(total_questions, config.strong_areas)

    overshoot = mistakes + time_consuming + strong - total_questions
    if overshoot > 0:
        take = min(overshoot, strong)
        strong -= take
        overshoot -= take
        take = min(overshoot, time_consuming)
        time_consuming -= take
        overshoot -= take
        mistakes -= overshoot

    targets = CategoryTargets(
        mistake=mistakes,
        time_consuming=time_consuming,
        strong_area=strong,
        new_topic=total_questions - mistakes - time_consuming - strong,
    )
    logger.debug(f"Allocated {total_questions} questions: {targets}")
    return targets
