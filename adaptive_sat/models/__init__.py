"""Pydantic models for the adaptive SAT core."""

from .exam import (
    Difficulty,
    Exam,
    ModuleConfig,
    ModuleTag,
    PublicQuestion,
    Question,
    Section,
)
from .session import (
    CompleteModuleResult,
    FinalResults,
    ModuleGrade,
    OverallGrade,
    Response,
    SectionGrade,
    SessionStatus,
    TestSession,
)

__all__ = [
    "Difficulty",
    "Exam",
    "ModuleConfig",
    "ModuleTag",
    "PublicQuestion",
    "Question",
    "Section",
    "CompleteModuleResult",
    "FinalResults",
    "ModuleGrade",
    "OverallGrade",
    "Response",
    "SectionGrade",
    "SessionStatus",
    "TestSession",
]
