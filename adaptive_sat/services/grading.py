"""Grading of modules, sections and whole sessions against the answer keys."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adaptive_sat.db.models import TestSessionDB
from adaptive_sat.models.exam import SECTION_MODULES, Difficulty, ModuleTag, Question, Section
from adaptive_sat.models.session import (
    ModuleGrade,
    OverallGrade,
    Response,
    SectionGrade,
    SkillBreakdown,
)

from .exceptions import SessionNotFoundError
from .question_repository import QuestionRepository
from .response_store import ResponseStore

logger = logging.getLogger(__name__)

# Session column holding the tier a second module was routed to
MODULE2_DIFFICULTY_FIELDS = {
    ModuleTag.READING_WRITING_2: "module2_difficulty",
    ModuleTag.MATH_2: "math2_difficulty",
}

SKILL_RANK_SIZE = 3


def answers_match(user_answer: str | None, correct_answer: str | None) -> bool:
    """Case-insensitive, whitespace-trimmed comparison. Blank is never correct."""
    given = (user_answer or "").strip().lower()
    expected = (correct_answer or "").strip().lower()
    return bool(given) and given == expected


def _accuracy(correct: int, total: int) -> float:
    return correct / total if total > 0 else 0.0


class GradingEngine:
    """Compares stored responses with the question bank's answer keys."""

    def __init__(
        self,
        db: AsyncSession,
        questions: QuestionRepository | None = None,
        responses: ResponseStore | None = None,
    ):
        self.db = db
        self.questions = questions or QuestionRepository(db)
        self.responses = responses or ResponseStore(db)

    async def _load_session(self, session_id: str) -> TestSessionDB:
        result = await self.db.execute(
            select(TestSessionDB).where(TestSessionDB.id == session_id)
        )
        db_session = result.scalar_one_or_none()
        if not db_session:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return db_session

    async def grade_module(self, session_id: str, module: ModuleTag) -> ModuleGrade:
        """Grade one module of a session.

        Second modules are graded only against the band the session was routed
        to. If no band has been recorded the whole module pool is used.
        """
        db_session = await self._load_session(session_id)

        band = None
        difficulty_field = MODULE2_DIFFICULTY_FIELDS.get(module)
        if difficulty_field:
            stored = getattr(db_session, difficulty_field)
            band = Difficulty(stored) if stored else None

        questions = await self.questions.find_questions_by_module(
            db_session.exam_id, module, band
        )
        if not questions:
            logger.warning(
                "No questions for exam %s, module %s, band %s; grading as zero",
                db_session.exam_id, module.value, band.value if band else "n/a",
            )
            return ModuleGrade(module=module, difficulty=band)

        answer_key = {q.id: q.correct_answer for q in questions}
        responses = await self.responses.get_for_session(session_id)

        correct_count = 0
        for response in responses:
            if response.question_id not in answer_key:
                continue  # not part of this module's set
            if answers_match(response.user_answer, answer_key[response.question_id]):
                correct_count += 1

        total = len(questions)
        percent = _accuracy(correct_count, total)
        logger.info(
            "Graded session %s, %s%s: %d/%d = %.2f%%",
            session_id,
            module.value,
            f" ({band.value})" if band else "",
            correct_count,
            total,
            percent * 100,
        )
        return ModuleGrade(
            module=module,
            difficulty=band,
            correct_count=correct_count,
            total_questions=total,
            percent=percent,
        )

    async def _graded_responses(self, session_id: str) -> list[tuple[Response, Question]]:
        """Responses paired with their questions; orphans are dropped."""
        responses = await self.responses.get_for_session(session_id)
        questions = await self.questions.find_questions_by_ids(
            [r.question_id for r in responses]
        )
        return [
            (response, questions[response.question_id])
            for response in responses
            if response.question_id in questions
        ]

    async def grade_section(self, session_id: str, section: Section) -> SectionGrade:
        """Grade every answered question of both modules in a section."""
        await self._load_session(session_id)
        modules = set(SECTION_MODULES[section])

        total = 0
        correct_count = 0
        for response, question in await self._graded_responses(session_id):
            if question.module not in modules:
                continue
            total += 1
            if answers_match(response.user_answer, question.correct_answer):
                correct_count += 1

        return SectionGrade(
            section=section,
            correct_count=correct_count,
            total_questions=total,
            percent=_accuracy(correct_count, total),
        )

    async def grade_session_overall(self, session_id: str) -> OverallGrade:
        """Correctness across the session with a per-skill breakdown."""
        await self._load_session(session_id)
        graded = await self._graded_responses(session_id)
        if not graded:
            return OverallGrade()

        # dicts keep first-encounter order, which breaks ranking ties
        per_skill: dict[str, list[int]] = {}
        correct_count = 0
        time_spent = 0
        for response, question in graded:
            stats = per_skill.setdefault(question.skill_category, [0, 0])
            stats[1] += 1
            time_spent += response.time_spent
            if answers_match(response.user_answer, question.correct_answer):
                stats[0] += 1
                correct_count += 1

        skills = [
            SkillBreakdown(
                skill_category=skill,
                correct=correct,
                total=total,
                accuracy=_accuracy(correct, total),
            )
            for skill, (correct, total) in per_skill.items()
        ]
        # sorted() is stable, including with reverse=True
        weakest = sorted(skills, key=lambda s: s.accuracy)[:SKILL_RANK_SIZE]
        strongest = sorted(skills, key=lambda s: s.accuracy, reverse=True)[:SKILL_RANK_SIZE]

        total = len(graded)
        return OverallGrade(
            correct_count=correct_count,
            total_questions=total,
            percent=_accuracy(correct_count, total),
            average_time_per_question=time_spent / total,
            skills=skills,
            weakest_skills=weakest,
            strongest_skills=strongest,
        )

    async def review_items(self, session_id: str) -> list[tuple[Response, Question]]:
        """Answered questions in answering order, for post-test review."""
        await self._load_session(session_id)
        return await self._graded_responses(session_id)
