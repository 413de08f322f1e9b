from typing import List, Optional, Iterable
from datetime import date
from sqlalchemy.orm import Session, joinedload

from app.models.concept_stat import ConceptStat
from app.repositories.base import BaseRepository


class ConceptStatRepository(BaseRepository[ConceptStat]):
    def __init__(self, db: Session):
        super().__init__(db, ConceptStat)

    def get_for_user_concept(self, user_id: int, concept_id: int, for_update: bool = False) -> Optional[ConceptStat]:
        """Stats row for (user, concept); for_update takes a row lock and reloads any cached copy"""
        query = self.db.query(ConceptStat).filter(
            ConceptStat.user_id == user_id,
            ConceptStat.concept_id == concept_id
        )
        if for_update:
            query = query.populate_existing().with_for_update()
        return query.first()

    def get_due_concept_ids(self, user_id: int, today: date, levels: Iterable[str], limit: int) -> List[int]:
        """
        Concepts at one of the given levels whose review date has arrived

        Args:
            user_id: learner
            today: review cutoff, inclusive
            levels: proficiency levels to include
            limit: maximum number of concepts

        Returns:
            List[int]: concept ids, most overdue first
        """
        if limit <= 0:
            return []
        rows = self.db.query(ConceptStat.concept_id).filter(
            ConceptStat.user_id == user_id,
            ConceptStat.proficiency_level.in_(list(levels)),
            ConceptStat.next_review_date != None,
            ConceptStat.next_review_date <= today
        ).order_by(
            ConceptStat.next_review_date.asc(),
            ConceptStat.concept_id.asc()
        ).limit(limit).all()
        return [row[0] for row in rows]

    def get_due_for_review(self, user_id: int, today: date, limit: int = 10) -> List[ConceptStat]:
        """Any concept whose review date has arrived, most overdue first"""
        return self.db.query(ConceptStat).options(joinedload(ConceptStat.concept)).filter(
            ConceptStat.user_id == user_id,
            ConceptStat.next_review_date != None,
            ConceptStat.next_review_date <= today
        ).order_by(ConceptStat.next_review_date.asc()).limit(limit).all()

    def get_by_levels(self, user_id: int, levels: Iterable[str], limit: int = 10) -> List[ConceptStat]:
        """Concepts at the given levels, lowest accuracy first"""
        return self.db.query(ConceptStat).options(joinedload(ConceptStat.concept)).filter(
            ConceptStat.user_id == user_id,
            ConceptStat.proficiency_level.in_(list(levels))
        ).order_by(ConceptStat.accuracy_rate.asc()).limit(limit).all()
