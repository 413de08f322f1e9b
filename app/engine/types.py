from enum import Enum
from dataclasses import dataclass, asdict
from typing import Dict, Any


class Category(Enum):
    """Candidate source a session item was drawn from"""
    MISTAKE = "mistake"
    TIME_CONSUMING = "time_consuming"
    STRONG_AREA = "strong_area"
    NEW_TOPIC = "new_topic"


# Source precedence for dedup and fallback distribution
CATEGORY_ORDER = (
    Category.MISTAKE,
    Category.TIME_CONSUMING,
    Category.STRONG_AREA,
    Category.NEW_TOPIC,
)


class SessionStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class MasteryStatus(Enum):
    """Per-mistake streak state"""
    NOT_STARTED = "not_started"
    PRACTICING = "practicing"
    MASTERED = "mastered"


class ProficiencyLevel(Enum):
    """Per-concept tier, weakest to strongest"""
    UNKNOWN = "unknown"
    WEAK = "weak"
    DEVELOPING = "developing"
    MEDIUM = "medium"
    STRONG = "strong"
    MASTERED = "mastered"


# Levels eligible for spaced-repetition review in a practice session
REVIEWABLE_LEVELS = (
    ProficiencyLevel.MEDIUM,
    ProficiencyLevel.STRONG,
    ProficiencyLevel.MASTERED,
)

WEAK_LEVELS = (ProficiencyLevel.WEAK, ProficiencyLevel.DEVELOPING)


class Trend(Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass(frozen=True)
class PracticeConfig:
    """Category weights in percent; must sum to 100"""
    new_topics: int
    strong_areas: int
    mistakes: int
    time_consuming: int

    @property
    def total(self) -> int:
        return self.new_topics + self.strong_areas + self.mistakes + self.time_consuming

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Candidate:
    """A question proposed by a selector for a given category"""
    question_id: int
    category: Category
