"""Exam structure models for the digital SAT format.

Each exam is four timed modules taken in a fixed order:
- Reading & Writing module 1: 27 questions, 32 minutes
- Reading & Writing module 2: 27 questions, 32 minutes (adaptive tier)
- Math module 1: 22 questions, 35 minutes
- Math module 2: 22 questions, 35 minutes (adaptive tier)

The tier of each second module is picked from the accuracy on the first
module of the same section.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ModuleTag(str, Enum):
    READING_WRITING_1 = "reading_writing_1"
    READING_WRITING_2 = "reading_writing_2"
    MATH_1 = "math_1"
    MATH_2 = "math_2"


class Section(str, Enum):
    READING_WRITING = "rw"
    MATH = "math"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5

# Inclusive question difficulty range for each band
DIFFICULTY_BANDS: dict[Difficulty, tuple[int, int]] = {
    Difficulty.EASY: (1, 2),
    Difficulty.MEDIUM: (3, 3),
    Difficulty.HARD: (4, 5),
}

MODULE_SEQUENCE: list[ModuleTag] = [
    ModuleTag.READING_WRITING_1,
    ModuleTag.READING_WRITING_2,
    ModuleTag.MATH_1,
    ModuleTag.MATH_2,
]

SECTION_MODULES: dict[Section, tuple[ModuleTag, ModuleTag]] = {
    Section.READING_WRITING: (ModuleTag.READING_WRITING_1, ModuleTag.READING_WRITING_2),
    Section.MATH: (ModuleTag.MATH_1, ModuleTag.MATH_2),
}


def next_module(module: ModuleTag) -> ModuleTag | None:
    """Module that follows `module`, or None after the last one."""
    index = MODULE_SEQUENCE.index(module)
    if index + 1 < len(MODULE_SEQUENCE):
        return MODULE_SEQUENCE[index + 1]
    return None


def module_position(module: ModuleTag) -> int:
    return MODULE_SEQUENCE.index(module)


class ModuleConfig(BaseModel):
    """Static description of one module."""
    module: ModuleTag
    section: Section
    title: str
    description: str
    question_count: int
    time_seconds: int
    adaptive: bool = False


MODULE_CONFIGS: dict[ModuleTag, ModuleConfig] = {
    ModuleTag.READING_WRITING_1: ModuleConfig(
        module=ModuleTag.READING_WRITING_1,
        section=Section.READING_WRITING,
        title="Reading and Writing: Module 1",
        description=(
            "A broad mix of easy, medium and hard questions on reading "
            "comprehension, rhetoric and standard English conventions."
        ),
        question_count=27,
        time_seconds=1920,  # 32 minutes
    ),
    ModuleTag.READING_WRITING_2: ModuleConfig(
        module=ModuleTag.READING_WRITING_2,
        section=Section.READING_WRITING,
        title="Reading and Writing: Module 2",
        description=(
            "Questions targeted to your Module 1 performance. A harder "
            "module opens up the top of the score range."
        ),
        question_count=27,
        time_seconds=1920,  # 32 minutes
        adaptive=True,
    ),
    ModuleTag.MATH_1: ModuleConfig(
        module=ModuleTag.MATH_1,
        section=Section.MATH,
        title="Math: Module 1",
        description=(
            "Algebra, advanced math, problem solving and data analysis, "
            "and geometry across the full difficulty range."
        ),
        question_count=22,
        time_seconds=2100,  # 35 minutes
    ),
    ModuleTag.MATH_2: ModuleConfig(
        module=ModuleTag.MATH_2,
        section=Section.MATH,
        title="Math: Module 2",
        description=(
            "Questions targeted to your Math Module 1 performance. "
            "This is the final module of the test."
        ),
        question_count=22,
        time_seconds=2100,  # 35 minutes
        adaptive=True,
    ),
}


class Exam(BaseModel):
    """An exam the test-taker can start."""
    id: str
    name: str
    description: str | None = None
    total_questions: int = 0
    is_active: bool = True
    created_at: datetime | None = None


class Question(BaseModel):
    """A question with its JSON columns already decoded."""
    id: str
    exam_id: str
    module: ModuleTag
    difficulty: int = Field(ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY, default=3)
    skill_category: str
    question_text: str
    question_data: dict[str, Any] = Field(default_factory=dict)
    options: list[str] = Field(default_factory=list)
    correct_answer: str
    explanation: str | None = None

    @property
    def band(self) -> Difficulty:
        for difficulty, (low, high) in DIFFICULTY_BANDS.items():
            if low <= self.difficulty <= high:
                return difficulty
        return Difficulty.MEDIUM


class PublicQuestion(BaseModel):
    """Question as served during a test: no answer key, no explanation."""
    id: str
    module: ModuleTag
    difficulty: int
    skill_category: str
    question_text: str
    question_data: dict[str, Any] = Field(default_factory=dict)
    options: list[str] = Field(default_factory=list)

    @classmethod
    def from_question(cls, question: Question) -> "PublicQuestion":
        return cls(
            id=question.id,
            module=question.module,
            difficulty=question.difficulty,
            skill_category=question.skill_category,
            question_text=question.question_text,
            question_data=question.question_data,
            options=question.options,
        )
