"""
Candidate selectors

Each selector turns one sourcing strategy into an ordered, over-fetched list of
candidates for its category. Selectors only read from a CandidateStore and keep
no state between calls, so the four of them can run side by side.
"""

import logging
from datetime import date
from typing import Dict, List

from app.config.settings import settings
from app.engine.types import Candidate, Category, REVIEWABLE_LEVELS
from app.repositories.candidate_store import CandidateStore
from app.utils.helpers import unique_in_order

logger = logging.getLogger(__name__)


class CandidateSelector:
    """Base class: over-fetch factor plus the category tag"""

    category: Category = None

    def __init__(self, overfetch: int):
        self.overfetch = overfetch

    def fetch_limit(self, target: int) -> int:
        return target * self.overfetch

    def select(self, store: CandidateStore, user_id: int, target: int, today: date) -> List[Candidate]:
        if target <= 0:
            return []
        question_ids = unique_in_order(self._question_ids(store, user_id, target, today))
        logger.debug(
            f"{self.category.value} selector: user {user_id}, target {target}, "
            f"{len(question_ids)} candidates"
        )
        return [Candidate(question_id=qid, category=self.category) for qid in question_ids]

    def _question_ids(self, store: CandidateStore, user_id: int, target: int, today: date) -> List[int]:
        raise NotImplementedError


class MistakeSelector(CandidateSelector):
    """Unresolved mistakes, newest attempt first; topped up with skipped questions"""

    category = Category.MISTAKE

    def _question_ids(self, store, user_id, target, today):
        question_ids = unique_in_order(
            store.fetch_unresolved_mistake_question_ids(user_id, self.fetch_limit(target))
        )
        missing = target - len(question_ids)
        if missing > 0:
            skipped = store.fetch_skipped_question_ids(user_id, self.fetch_limit(missing) + len(question_ids))
            question_ids.extend(skipped)
        return question_ids


class TimeConsumingSelector(CandidateSelector):
    """Past questions answered well above the user's own average time"""

    category = Category.TIME_CONSUMING

    def __init__(self, overfetch: int, default_avg_seconds: float, multiplier: float):
        super().__init__(overfetch)
        self.default_avg_seconds = default_avg_seconds
        self.multiplier = multiplier

    def threshold_for(self, store: CandidateStore, user_id: int) -> float:
        average = store.fetch_average_answer_time(user_id)
        if average is None:
            average = self.default_avg_seconds
        return average * self.multiplier

    def _question_ids(self, store, user_id, target, today):
        threshold = self.threshold_for(store, user_id)
        return store.fetch_slow_question_ids(user_id, threshold, self.fetch_limit(target))


class StrongAreaSelector(CandidateSelector):
    """Spaced repetition: medium-or-better concepts whose review date has come"""

    category = Category.STRONG_AREA

    def _question_ids(self, store, user_id, target, today):
        limit = self.fetch_limit(target)
        levels = [level.value for level in REVIEWABLE_LEVELS]
        concept_ids = store.fetch_due_concept_ids(user_id, today, levels, limit)
        return store.fetch_question_ids_for_concepts(concept_ids, limit)


class NewTopicSelector(CandidateSelector):
    """Concepts the user has never attempted"""

    category = Category.NEW_TOPIC

    def _question_ids(self, store, user_id, target, today):
        limit = self.fetch_limit(target)
        if not store.has_concept_history(user_id):
            return store.fetch_concept_linked_question_ids(limit)
        concept_ids = store.fetch_unattempted_concept_ids(user_id, limit)
        return store.fetch_question_ids_for_concepts(concept_ids, limit)


def default_selectors() -> Dict[Category, CandidateSelector]:
    """The four selectors configured from settings, keyed by category"""
    return {
        Category.MISTAKE: MistakeSelector(settings.MISTAKE_OVERFETCH),
        Category.TIME_CONSUMING: TimeConsumingSelector(
            settings.TIME_CONSUMING_OVERFETCH,
            settings.DEFAULT_AVG_TIME_SECONDS,
            settings.TIME_CONSUMING_MULTIPLIER,
        ),
        Category.STRONG_AREA: StrongAreaSelector(settings.STRONG_AREA_OVERFETCH),
        Category.NEW_TOPIC: NewTopicSelector(settings.NEW_TOPIC_OVERFETCH),
    }
