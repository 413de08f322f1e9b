from typing import List, Iterable, Optional, Dict
from sqlalchemy.orm import Session
from sqlalchemy import func, select

from app.models.question import Question
from app.models.concept import QuestionConcept
from app.repositories.base import BaseRepository


class QuestionRepository(BaseRepository[Question]):
    """
    Question and question-concept link queries
    """

    def __init__(self, db: Session):
        super().__init__(db, Question)

    def get_questions_by_ids(self, question_ids: Iterable[int]) -> Dict[int, Question]:
        """
        Fetch questions keyed by id

        Args:
            question_ids: ids to load

        Returns:
            Dict[int, Question]: found questions; missing ids are absent
        """
        question_ids = list(question_ids)
        if not question_ids:
            return {}
        rows = self.db.query(Question).filter(Question.id.in_(question_ids)).all()
        return {q.id: q for q in rows}

    def get_question_ids_for_concepts(self, concept_ids: List[int], limit: int) -> List[int]:
        """
        Active questions linked to the given concepts, in concept order

        Args:
            concept_ids: concepts in priority order
            limit: maximum number of question ids

        Returns:
            List[int]: distinct question ids, questions of earlier concepts first
        """
        if not concept_ids or limit <= 0:
            return []
        rows = self.db.query(QuestionConcept.concept_id, QuestionConcept.question_id).join(
            Question, Question.id == QuestionConcept.question_id
        ).filter(
            QuestionConcept.concept_id.in_(concept_ids),
            Question.is_active == True
        ).order_by(QuestionConcept.question_id.asc()).all()

        by_concept: Dict[int, List[int]] = {}
        for concept_id, question_id in rows:
            by_concept.setdefault(concept_id, []).append(question_id)

        result = []
        seen = set()
        for concept_id in concept_ids:
            for question_id in by_concept.get(concept_id, []):
                if question_id in seen:
                    continue
                seen.add(question_id)
                result.append(question_id)
                if len(result) >= limit:
                    return result
        return result

    def get_concept_linked_question_ids(self, limit: int) -> List[int]:
        """Random active questions that have at least one concept link"""
        if limit <= 0:
            return []
        rows = self.db.query(Question.id).filter(
            Question.is_active == True,
            Question.id.in_(select(QuestionConcept.question_id))
        ).order_by(func.random()).limit(limit).all()
        return [row[0] for row in rows]

    def get_random_active_question_ids(self, exclude_ids: Iterable[int], limit: int) -> List[int]:
        """Random active questions not in exclude_ids"""
        if limit <= 0:
            return []
        query = self.db.query(Question.id).filter(Question.is_active == True)
        exclude_ids = list(exclude_ids)
        if exclude_ids:
            query = query.filter(~Question.id.in_(exclude_ids))
        rows = query.order_by(func.random()).limit(limit).all()
        return [row[0] for row in rows]

    def get_concept_ids_for_question(self, question_id: int) -> List[int]:
        rows = self.db.query(QuestionConcept.concept_id).filter(
            QuestionConcept.question_id == question_id
        ).order_by(QuestionConcept.concept_id.asc()).all()
        return [row[0] for row in rows]

    def get_concept_ids_for_questions(self, question_ids: Iterable[int]) -> List[int]:
        """Distinct concepts linked to any of the questions"""
        question_ids = list(question_ids)
        if not question_ids:
            return []
        rows = self.db.query(QuestionConcept.concept_id).filter(
            QuestionConcept.question_id.in_(question_ids)
        ).distinct().order_by(QuestionConcept.concept_id.asc()).all()
        return [row[0] for row in rows]
