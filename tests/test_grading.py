"""Tests for module, section and overall grading."""

import pytest

from adaptive_sat.db.models import ExamDB
from adaptive_sat.models.exam import Difficulty, ModuleTag, Section
from adaptive_sat.services.exceptions import SessionNotFoundError
from adaptive_sat.services.grading import GradingEngine, answers_match
from adaptive_sat.services.response_store import ResponseStore

from .helpers import make_session


async def save(db, session_id, answers):
    store = ResponseStore(db)
    for seq, (question_id, user_answer) in enumerate(answers.items()):
        await store.upsert(session_id, question_id, user_answer, time_spent=20, sequence_number=seq)
    await db.commit()


class TestAnswersMatch:
    @pytest.mark.parametrize(
        "given, expected, result",
        [
            ("B", "B", True),
            (" b ", "B", True),
            ("a", "A ", True),
            ("A", "B", False),
            ("", "A", False),
            ("   ", "A", False),
            (None, "A", False),
            ("", "", False),
        ],
    )
    def test_comparison(self, given, expected, result):
        assert answers_match(given, expected) is result


class TestGradeModule:
    async def test_counts_correct_answers(self, db, exam):
        session_id = await make_session(db)
        await save(db, session_id, {"rw1-1": " a ", "rw1-2": "C"})

        grade = await GradingEngine(db).grade_module(session_id, ModuleTag.READING_WRITING_1)

        assert grade.correct_count == 1
        assert grade.total_questions == 2
        assert grade.percent == 0.5
        assert grade.difficulty is None

    async def test_unanswered_questions_count_as_wrong(self, db, exam):
        session_id = await make_session(db)
        await save(db, session_id, {"m1-1": "A"})

        grade = await GradingEngine(db).grade_module(session_id, ModuleTag.MATH_1)

        assert grade.correct_count == 1
        assert grade.total_questions == 4
        assert grade.percent == 0.25

    async def test_ignores_responses_outside_the_module(self, db, exam):
        session_id = await make_session(db)
        await save(db, session_id, {"rw1-1": "A", "m1-1": "A", "no-such-question": "A"})

        grade = await GradingEngine(db).grade_module(session_id, ModuleTag.READING_WRITING_1)

        assert grade.correct_count == 1
        assert grade.total_questions == 2

    async def test_blank_answer_is_incorrect(self, db, exam):
        session_id = await make_session(db)
        await save(db, session_id, {"rw1-1": "", "rw1-2": "B"})

        grade = await GradingEngine(db).grade_module(session_id, ModuleTag.READING_WRITING_1)

        assert grade.correct_count == 1

    async def test_second_module_uses_routed_band(self, db, exam):
        session_id = await make_session(
            db,
            current_module=ModuleTag.READING_WRITING_2.value,
            module2_difficulty=Difficulty.EASY.value,
        )
        # rw2-h1 is right but belongs to the hard band
        await save(db, session_id, {"rw2-e1": "C", "rw2-h1": "B"})

        grade = await GradingEngine(db).grade_module(session_id, ModuleTag.READING_WRITING_2)

        assert grade.difficulty is Difficulty.EASY
        assert grade.total_questions == 2
        assert grade.correct_count == 1

    async def test_second_module_without_band_uses_whole_pool(self, db, exam):
        session_id = await make_session(db, current_module=ModuleTag.READING_WRITING_2.value)
        await save(db, session_id, {"rw2-e1": "C", "rw2-h1": "B"})

        grade = await GradingEngine(db).grade_module(session_id, ModuleTag.READING_WRITING_2)

        assert grade.difficulty is None
        assert grade.total_questions == 5
        assert grade.correct_count == 2

    async def test_empty_question_set_grades_zero(self, db, exam):
        db.add(ExamDB(id="empty-exam", name="No questions"))
        await db.commit()
        session_id = await make_session(db, exam_id="empty-exam")

        grade = await GradingEngine(db).grade_module(session_id, ModuleTag.READING_WRITING_1)

        assert grade.correct_count == 0
        assert grade.total_questions == 0
        assert grade.percent == 0.0

    async def test_unknown_session(self, db, exam):
        with pytest.raises(SessionNotFoundError):
            await GradingEngine(db).grade_module("missing", ModuleTag.MATH_1)


class TestGradeSection:
    async def test_counts_answered_questions_in_both_modules(self, db, exam):
        session_id = await make_session(db)
        await save(db, session_id, {
            "rw1-1": "A",
            "rw1-2": "D",
            "rw2-h1": "b",
            "m1-1": "A",
        })

        grading = GradingEngine(db)
        rw = await grading.grade_section(session_id, Section.READING_WRITING)
        math = await grading.grade_section(session_id, Section.MATH)

        assert (rw.correct_count, rw.total_questions) == (2, 3)
        assert rw.percent == pytest.approx(2 / 3)
        assert (math.correct_count, math.total_questions) == (1, 1)

    async def test_no_answers(self, db, exam):
        session_id = await make_session(db)

        grade = await GradingEngine(db).grade_section(session_id, Section.MATH)

        assert grade.total_questions == 0
        assert grade.percent == 0.0


class TestGradeSessionOverall:
    async def test_skill_breakdown_and_ranking(self, db, exam):
        session_id = await make_session(db)
        await save(db, session_id, {
            "rw1-1": "A",  # Information and Ideas, right
            "rw1-2": "A",  # Craft and Structure, wrong
            "m1-1": "A",  # Algebra, right
            "m1-2": "B",  # Advanced Math, right
            "m1-3": "A",  # Problem-Solving, wrong
            "m1-4": "D",  # Geometry, right
        })

        overall = await GradingEngine(db).grade_session_overall(session_id)

        assert overall.correct_count == 4
        assert overall.total_questions == 6
        assert overall.average_time_per_question == 20
        assert [s.skill_category for s in overall.skills] == [
            "Information and Ideas",
            "Craft and Structure",
            "Algebra",
            "Advanced Math",
            "Problem-Solving and Data Analysis",
            "Geometry and Trigonometry",
        ]
        # ties keep first-encounter order
        assert [s.skill_category for s in overall.weakest_skills] == [
            "Craft and Structure",
            "Problem-Solving and Data Analysis",
            "Information and Ideas",
        ]
        assert [s.skill_category for s in overall.strongest_skills] == [
            "Information and Ideas",
            "Algebra",
            "Advanced Math",
        ]

    async def test_empty_session(self, db, exam):
        session_id = await make_session(db)

        overall = await GradingEngine(db).grade_session_overall(session_id)

        assert overall.total_questions == 0
        assert overall.skills == []
        assert overall.weakest_skills == []
