from typing import Iterable, List, Optional, Protocol
from datetime import date
from sqlalchemy.orm import Session

from app.repositories.answer_repository import AnswerRepository
from app.repositories.concept_repository import ConceptRepository
from app.repositories.concept_stat_repository import ConceptStatRepository
from app.repositories.mistake_repository import MistakeRepository
from app.repositories.question_repository import QuestionRepository


class CandidateStore(Protocol):
    """
    Read-side queries the candidate selectors depend on.

    One method per query shape; every list comes back already ordered by the
    priority the selector wants.
    """

    def fetch_unresolved_mistake_question_ids(self, user_id: int, limit: int) -> List[int]: ...

    def fetch_skipped_question_ids(self, user_id: int, limit: int) -> List[int]: ...

    def fetch_average_answer_time(self, user_id: int) -> Optional[float]: ...

    def fetch_slow_question_ids(self, user_id: int, threshold: float, limit: int) -> List[int]: ...

    def fetch_due_concept_ids(self, user_id: int, today: date, levels: Iterable[str], limit: int) -> List[int]: ...

    def fetch_unattempted_concept_ids(self, user_id: int, limit: int) -> List[int]: ...

    def has_concept_history(self, user_id: int) -> bool: ...

    def fetch_question_ids_for_concepts(self, concept_ids: List[int], limit: int) -> List[int]: ...

    def fetch_concept_linked_question_ids(self, limit: int) -> List[int]: ...

    def fetch_random_active_question_ids(self, exclude_ids: Iterable[int], limit: int) -> List[int]: ...

    def close(self) -> None: ...


class SqlCandidateStore:
    """CandidateStore backed by the SQLAlchemy repositories"""

    def __init__(self, db: Session, owns_session: bool = False):
        self.db = db
        self.owns_session = owns_session
        self.question_repo = QuestionRepository(db)
        self.concept_repo = ConceptRepository(db)
        self.concept_stat_repo = ConceptStatRepository(db)
        self.mistake_repo = MistakeRepository(db)
        self.answer_repo = AnswerRepository(db)

    def fetch_unresolved_mistake_question_ids(self, user_id: int, limit: int) -> List[int]:
        return self.mistake_repo.get_unresolved_question_ids(user_id, limit)

    def fetch_skipped_question_ids(self, user_id: int, limit: int) -> List[int]:
        return self.answer_repo.get_skipped_question_ids(user_id, limit)

    def fetch_average_answer_time(self, user_id: int) -> Optional[float]:
        return self.answer_repo.get_average_time(user_id)

    def fetch_slow_question_ids(self, user_id: int, threshold: float, limit: int) -> List[int]:
        return self.answer_repo.get_slow_question_ids(user_id, threshold, limit)

    def fetch_due_concept_ids(self, user_id: int, today: date, levels: Iterable[str], limit: int) -> List[int]:
        return self.concept_stat_repo.get_due_concept_ids(user_id, today, levels, limit)

    def fetch_unattempted_concept_ids(self, user_id: int, limit: int) -> List[int]:
        return self.concept_repo.get_concept_ids_without_stats(user_id, limit)

    def has_concept_history(self, user_id: int) -> bool:
        return self.concept_repo.user_has_concept_history(user_id)

    def fetch_question_ids_for_concepts(self, concept_ids: List[int], limit: int) -> List[int]:
        return self.question_repo.get_question_ids_for_concepts(concept_ids, limit)

    def fetch_concept_linked_question_ids(self, limit: int) -> List[int]:
        return self.question_repo.get_concept_linked_question_ids(limit)

    def fetch_random_active_question_ids(self, exclude_ids: Iterable[int], limit: int) -> List[int]:
        return self.question_repo.get_random_active_question_ids(exclude_ids, limit)

    def close(self) -> None:
        """Close the session only if this store opened it"""
        if self.owns_session:
            self.db.close()
