"""Shared fixtures: an in-memory database seeded with a small adaptive exam."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from adaptive_sat.db.models import Base, ExamDB, QuestionDB
from adaptive_sat.services.exam_session import ExamSessionService
from adaptive_sat.services.session_locks import SessionLockRegistry

from .helpers import EXAM_ID, QUESTIONS


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def exam(db):
    """Exam with a couple of questions per module and difficulty band."""
    db.add(ExamDB(id=EXAM_ID, name="Practice Test 1", total_questions=len(QUESTIONS)))
    for question_id, module, difficulty, skill, correct in QUESTIONS:
        db.add(QuestionDB(
            id=question_id,
            exam_id=EXAM_ID,
            module=module.value,
            difficulty=difficulty,
            skill_category=skill,
            question_text=f"Question {question_id}",
            options='["A", "B", "C", "D"]',
            correct_answer=correct,
            explanation=f"The answer is {correct}.",
        ))
    await db.commit()
    return EXAM_ID


@pytest.fixture
def service(db):
    return ExamSessionService(db, locks=SessionLockRegistry())
