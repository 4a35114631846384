"""Test data and helpers shared by the test modules."""

from adaptive_sat.db.models import TestSessionDB
from adaptive_sat.models.exam import ModuleTag

EXAM_ID = "exam-1"
USER_ID = "student-1"

# (id, module, difficulty, skill_category, correct_answer)
QUESTIONS = [
    ("rw1-1", ModuleTag.READING_WRITING_1, 2, "Information and Ideas", "A"),
    ("rw1-2", ModuleTag.READING_WRITING_1, 4, "Craft and Structure", "B"),
    ("rw2-e1", ModuleTag.READING_WRITING_2, 1, "Information and Ideas", "C"),
    ("rw2-e2", ModuleTag.READING_WRITING_2, 2, "Expression of Ideas", "D"),
    ("rw2-m1", ModuleTag.READING_WRITING_2, 3, "Standard English Conventions", "A"),
    ("rw2-h1", ModuleTag.READING_WRITING_2, 4, "Craft and Structure", "B"),
    ("rw2-h2", ModuleTag.READING_WRITING_2, 5, "Expression of Ideas", "C"),
    ("m1-1", ModuleTag.MATH_1, 2, "Algebra", "A"),
    ("m1-2", ModuleTag.MATH_1, 3, "Advanced Math", "B"),
    ("m1-3", ModuleTag.MATH_1, 4, "Problem-Solving and Data Analysis", "C"),
    ("m1-4", ModuleTag.MATH_1, 3, "Geometry and Trigonometry", "D"),
    ("m2-e1", ModuleTag.MATH_2, 1, "Algebra", "A"),
    ("m2-m1", ModuleTag.MATH_2, 3, "Algebra", "B"),
    ("m2-m2", ModuleTag.MATH_2, 3, "Geometry and Trigonometry", "C"),
    ("m2-h1", ModuleTag.MATH_2, 4, "Advanced Math", "D"),
]


async def make_session(db, **fields) -> str:
    """Insert a session row directly, bypassing the state machine."""
    fields.setdefault("user_id", USER_ID)
    fields.setdefault("exam_id", EXAM_ID)
    fields.setdefault("current_module", ModuleTag.READING_WRITING_1.value)
    db_session = TestSessionDB(**fields)
    db.add(db_session)
    await db.commit()
    return db_session.id


async def answer_all(service, session_id, answers, user_id=USER_ID, start=0):
    """Save answers given as {question_id: answer} in order."""
    for offset, (question_id, user_answer) in enumerate(answers.items()):
        await service.save_answer(
            session_id=session_id,
            user_id=user_id,
            question_id=question_id,
            user_answer=user_answer,
            time_spent=30,
            sequence_number=start + offset,
        )
