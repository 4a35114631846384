"""Read access to exams and questions."""

import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adaptive_sat.db.models import ExamDB, QuestionDB
from adaptive_sat.models.exam import (
    DIFFICULTY_BANDS,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    Difficulty,
    Exam,
    ModuleTag,
    Question,
)

from .exceptions import QuestionNotFoundError

logger = logging.getLogger(__name__)


def _load_json(raw: str | None, default, expected: type, field: str, question_id: str):
    """Decode a JSON column, falling back to `default` on bad or mistyped data."""
    if not raw:
        return default
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Question %s has unparseable %s; using empty value", question_id, field)
        return default
    if not isinstance(value, expected):
        logger.warning(
            "Question %s has %s of type %s, expected %s",
            question_id, field, type(value).__name__, expected.__name__,
        )
        return default
    return value


def _clamp_difficulty(raw: int | None, question_id: str) -> int:
    """Pull an out-of-range difficulty back into 1-5 so the row stays gradable."""
    if raw is None:
        return 3
    clamped = min(max(raw, MIN_DIFFICULTY), MAX_DIFFICULTY)
    if clamped != raw:
        logger.warning("Question %s has difficulty %s; treating it as %d", question_id, raw, clamped)
    return clamped


class QuestionRepository:
    """Exams and questions as seen by the session core."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_exams(self) -> list[Exam]:
        result = await self.db.execute(
            select(ExamDB).where(ExamDB.is_active.is_(True)).order_by(ExamDB.created_at)
        )
        return [self._exam_to_model(e) for e in result.scalars().all()]

    async def get_exam(self, exam_id: str, active_only: bool = True) -> Exam | None:
        """Get an exam by ID; inactive exams are hidden unless asked for."""
        query = select(ExamDB).where(ExamDB.id == exam_id)
        if active_only:
            query = query.where(ExamDB.is_active.is_(True))
        result = await self.db.execute(query)
        db_exam = result.scalar_one_or_none()
        if not db_exam:
            return None
        return self._exam_to_model(db_exam)

    async def find_questions_by_module(
        self,
        exam_id: str,
        module: ModuleTag,
        band: Difficulty | None = None,
    ) -> list[Question]:
        """Questions of one exam module, optionally limited to a difficulty band."""
        query = (
            select(QuestionDB)
            .where(QuestionDB.exam_id == exam_id)
            .where(QuestionDB.module == module.value)
        )
        if band:
            low, high = DIFFICULTY_BANDS[band]
            query = query.where(QuestionDB.difficulty.between(low, high))
        query = query.order_by(QuestionDB.created_at, QuestionDB.id)

        result = await self.db.execute(query)
        return [self._question_to_model(q) for q in result.scalars().all()]

    async def find_questions_by_ids(self, question_ids: list[str]) -> dict[str, Question]:
        if not question_ids:
            return {}
        result = await self.db.execute(
            select(QuestionDB).where(QuestionDB.id.in_(question_ids))
        )
        return {q.id: self._question_to_model(q) for q in result.scalars().all()}

    async def find_correct_answer(self, question_id: str) -> str:
        result = await self.db.execute(
            select(QuestionDB.correct_answer).where(QuestionDB.id == question_id)
        )
        answer = result.scalar_one_or_none()
        if answer is None:
            raise QuestionNotFoundError(f"Question {question_id} not found")
        return answer

    def _exam_to_model(self, db_exam: ExamDB) -> Exam:
        return Exam(
            id=db_exam.id,
            name=db_exam.name,
            description=db_exam.description,
            total_questions=db_exam.total_questions,
            is_active=db_exam.is_active,
            created_at=db_exam.created_at,
        )

    def _question_to_model(self, db_question: QuestionDB) -> Question:
        """Convert a database row, decoding its JSON columns once."""
        options = _load_json(db_question.options, [], list, "options", db_question.id)
        return Question(
            id=db_question.id,
            exam_id=db_question.exam_id,
            module=ModuleTag(db_question.module),
            difficulty=_clamp_difficulty(db_question.difficulty, db_question.id),
            skill_category=db_question.skill_category,
            question_text=db_question.question_text,
            question_data=_load_json(
                db_question.question_data, {}, dict, "question_data", db_question.id
            ),
            options=[str(o) for o in options],
            correct_answer=db_question.correct_answer,
            explanation=db_question.explanation,
        )
