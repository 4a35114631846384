"""Tests for seeding exams from JSON files."""

import json

from sqlalchemy import func, select

from adaptive_sat import main
from adaptive_sat.db.models import ExamDB, QuestionDB


def write_exam(path, questions):
    path.write_text(json.dumps({"name": "Seeded exam", "questions": questions}))


QUESTION = {
    "module": "math_1",
    "difficulty": 2,
    "skill_category": "Algebra",
    "question_text": "If x + 1 = 3, what is x?",
    "options": ["1", "2", "3", "4"],
    "correct_answer": "B",
}


async def test_seeds_empty_database(db, session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(main, "async_session", session_factory)
    monkeypatch.setattr(main.settings, "skip_seeding", False)
    write_exam(tmp_path / "exam.json", [QUESTION, {**QUESTION, "module": "math_9"}])

    imported = await main.seed_exams(tmp_path)

    assert imported == 1
    exam = (await db.execute(select(ExamDB))).scalar_one()
    assert exam.name == "Seeded exam"
    question = (await db.execute(select(QuestionDB))).scalar_one()
    assert json.loads(question.options) == ["1", "2", "3", "4"]
    assert question.exam_id == exam.id


async def test_skips_when_exams_exist(db, exam, session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(main, "async_session", session_factory)
    monkeypatch.setattr(main.settings, "skip_seeding", False)
    write_exam(tmp_path / "exam.json", [QUESTION])

    assert await main.seed_exams(tmp_path) == 0
    assert await db.scalar(select(func.count()).select_from(ExamDB)) == 1


async def test_skip_seeding_setting(db, session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(main, "async_session", session_factory)
    monkeypatch.setattr(main.settings, "skip_seeding", True)
    write_exam(tmp_path / "exam.json", [QUESTION])

    assert await main.seed_exams(tmp_path) == 0


async def test_out_of_range_difficulty_is_skipped(db, session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(main, "async_session", session_factory)
    monkeypatch.setattr(main.settings, "skip_seeding", False)
    write_exam(tmp_path / "exam.json", [
        QUESTION,
        {**QUESTION, "difficulty": 7},
        {**QUESTION, "difficulty": 0},
        {**QUESTION, "difficulty": None},
    ])

    assert await main.seed_exams(tmp_path) == 1
    difficulties = (await db.execute(select(QuestionDB.difficulty))).scalars().all()
    assert difficulties == [2]
