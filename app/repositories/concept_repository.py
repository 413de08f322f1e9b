from typing import List
from sqlalchemy.orm import Session
from sqlalchemy import select

from app.models.concept import Concept
from app.models.concept_stat import ConceptStat
from app.repositories.base import BaseRepository


class ConceptRepository(BaseRepository[Concept]):
    def __init__(self, db: Session):
        super().__init__(db, Concept)

    def get_concept_ids_without_stats(self, user_id: int, limit: int) -> List[int]:
        """Active concepts the user has never attempted"""
        if limit <= 0:
            return []
        attempted = select(ConceptStat.concept_id).where(ConceptStat.user_id == user_id)
        rows = self.db.query(Concept.id).filter(
            Concept.is_active == True,
            ~Concept.id.in_(attempted)
        ).order_by(Concept.id.asc()).limit(limit).all()
        return [row[0] for row in rows]

    def user_has_concept_history(self, user_id: int) -> bool:
        return self.db.query(ConceptStat.id).filter(ConceptStat.user_id == user_id).first() is not None
