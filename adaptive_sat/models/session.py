"""Test session, response and grading models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .exam import Difficulty, Exam, ModuleConfig, ModuleTag, Section


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class TestSession(BaseModel):
    """A test-taker's run through one exam."""
    __test__ = False  # not a pytest test class

    id: str
    user_id: str
    exam_id: str
    status: SessionStatus = SessionStatus.IN_PROGRESS
    current_module: ModuleTag | None = None
    time_remaining: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    module1_score: int | None = None  # Reading & Writing module 1, percent
    rw2_score: int | None = None
    math1_score: int | None = None
    math2_score: int | None = None

    module2_difficulty: Difficulty | None = None
    math2_difficulty: Difficulty | None = None

    rw_score: int | None = None  # 200-800
    math_score: int | None = None  # 200-800
    total_score: int | None = None  # 400-1600


class Response(BaseModel):
    """A recorded answer to one question within one session."""
    id: str
    session_id: str
    question_id: str
    user_answer: str | None = None
    time_spent: int = 0
    sequence_number: int = 0
    is_flagged: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AnswerSave(BaseModel):
    """An answer (or flag) save during a module."""
    question_id: str = Field(min_length=1)
    user_answer: str = Field(max_length=10)
    time_spent: int = Field(default=0, ge=0)
    sequence_number: int = Field(default=0, ge=0)
    is_flagged: bool = False


class ModuleGrade(BaseModel):
    """Grading of a single module."""
    module: ModuleTag
    difficulty: Difficulty | None = None  # band the question set was filtered to
    correct_count: int = 0
    total_questions: int = 0
    percent: float = 0.0


class SectionGrade(BaseModel):
    """Grading across both modules of a section."""
    section: Section
    correct_count: int = 0
    total_questions: int = 0
    percent: float = 0.0


class SkillBreakdown(BaseModel):
    skill_category: str
    correct: int
    total: int
    accuracy: float


class OverallGrade(BaseModel):
    """Whole-session correctness, grouped by skill category."""
    correct_count: int = 0
    total_questions: int = 0
    percent: float = 0.0
    average_time_per_question: float = 0.0
    skills: list[SkillBreakdown] = Field(default_factory=list)
    weakest_skills: list[SkillBreakdown] = Field(default_factory=list)
    strongest_skills: list[SkillBreakdown] = Field(default_factory=list)


class StartSessionResult(BaseModel):
    """Outcome of a start request.

    When an unfinished session already exists and the caller did not choose
    between resuming and restarting, `requires_confirmation` is set and
    `existing_session` carries the session to confirm against.
    """
    session: TestSession | None = None
    existing_session: TestSession | None = None
    requires_confirmation: bool = False
    resumed: bool = False


class SessionStatusView(BaseModel):
    session: TestSession
    responses: list[Response]
    current_module: ModuleTag | None


class SessionMeta(BaseModel):
    exam: Exam
    current_module: ModuleTag | None
    modules: list[ModuleConfig]


class CompleteModuleResult(BaseModel):
    module: ModuleTag
    correct_count: int
    total_questions: int
    percent: float
    score: int | None  # stored percent for the module
    next_module: ModuleTag | None
    difficulty: Difficulty | None  # adaptive tier of this module's section
    session: TestSession


class FinalResults(BaseModel):
    """Final results for a completed session."""
    session_id: str
    exam_id: str
    user_id: str
    module_scores: dict[str, int | None]
    module2_difficulty: Difficulty | None
    math2_difficulty: Difficulty | None
    rw_score: int | None
    math_score: int | None
    total_score: int | None
    reading_writing: SectionGrade
    math: SectionGrade
    overall: OverallGrade
    completed_at: datetime | None


class ReviewItem(BaseModel):
    """One answered question in a post-test review."""
    question_id: str
    module: ModuleTag
    difficulty: Difficulty
    skill_category: str
    question_text: str
    options: list[str]
    user_answer: str | None
    correct_answer: str
    is_correct: bool
    is_flagged: bool
    time_spent: int
    explanation: str | None = None


class ReviewSummary(BaseModel):
    """One of a user's sessions in the review list."""
    session_id: str
    exam_id: str
    exam_name: str
    status: SessionStatus
    total_score: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
