"""
Session assembly

Merges selector output under one used-question set, tops up the shortfall from
a random pool, and shuffles the result. Nothing here touches the database.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from app.engine.allocator import CategoryTargets
from app.engine.types import CATEGORY_ORDER, Candidate, Category

logger = logging.getLogger(__name__)


@dataclass
class AssembledSet:
    """Chosen candidates in construction order plus the used-id set"""
    items: List[Candidate] = field(default_factory=list)
    used_ids: Set[int] = field(default_factory=set)

    def add(self, candidate: Candidate) -> bool:
        if candidate.question_id in self.used_ids:
            return False
        self.used_ids.add(candidate.question_id)
        self.items.append(candidate)
        return True

    def count_for(self, category: Category) -> int:
        return sum(1 for item in self.items if item.category == category)

    def __len__(self) -> int:
        return len(self.items)


def assemble(candidates: Dict[Category, List[Candidate]], targets: CategoryTargets) -> AssembledSet:
    """
    Take each category's candidates up to its target, skipping ids already used

    Categories are processed mistake, time_consuming, strong_area, new_topic.
    Falling short of a target is expected and left for the fallback filler.
    """
    assembled = AssembledSet()
    for category in CATEGORY_ORDER:
        target = targets.for_category(category)
        taken = 0
        for candidate in candidates.get(category, []):
            if taken >= target:
                break
            if assembled.add(Candidate(question_id=candidate.question_id, category=category)):
                taken += 1
        if taken < target:
            logger.debug(f"{category.value}: {taken}/{target} after dedup")
    return assembled


def compute_shortfalls(targets: CategoryTargets, assembled: AssembledSet) -> Dict[Category, int]:
    """Per-category unmet demand, only positive entries"""
    shortfalls = {}
    for category in CATEGORY_ORDER:
        missing = targets.for_category(category) - assembled.count_for(category)
        if missing > 0:
            shortfalls[category] = missing
    return shortfalls


def distribute_fallback(pool: Iterable[int], shortfalls: Dict[Category, int],
                        assembled: AssembledSet) -> List[Candidate]:
    """
    Hand pool questions out round-robin across categories with a shortfall

    Each pass gives one question to every category that still needs one, so
    bigger shortfalls receive proportionally more. Stops when every shortfall
    is covered or the pool runs dry. Added candidates are appended to
    assembled as well as returned.

    Args:
        pool: random question ids, already excluding assembled.used_ids
        shortfalls: output of compute_shortfalls
        assembled: set being filled

    Returns:
        List[Candidate]: candidates added by this call
    """
    remaining = {category: count for category, count in shortfalls.items() if count > 0}
    pool_iter = iter(pool)
    added = []

    while remaining:
        progressed = False
        for category in CATEGORY_ORDER:
            if remaining.get(category, 0) <= 0:
                continue
            candidate = _next_unused(pool_iter, assembled, category)
            if candidate is None:
                return added
            assembled.add(candidate)
            added.append(candidate)
            remaining[category] -= 1
            progressed = True
        remaining = {category: count for category, count in remaining.items() if count > 0}
        if not progressed:
            break
    return added


def _next_unused(pool_iter, assembled: AssembledSet, category: Category) -> Optional[Candidate]:
    for question_id in pool_iter:
        if question_id not in assembled.used_ids:
            return Candidate(question_id=question_id, category=category)
    return None


def shuffle_items(items: List[Candidate], rng: Optional[random.Random] = None) -> List[Candidate]:
    """Uniform shuffle on a copy"""
    rng = rng or random.Random()
    shuffled = list(items)
    rng.shuffle(shuffled)
    return shuffled


def breakdown(items: Iterable[Candidate]) -> Dict[str, int]:
    """Item count per category value, every category present"""
    counts = {category.value: 0 for category in Category}
    for item in items:
        counts[item.category.value] += 1
    return counts
