"""Business logic services."""

from .exam_session import ExamSessionService
from .grading import GradingEngine
from .question_repository import QuestionRepository
from .response_store import ResponseStore

__all__ = [
    "ExamSessionService",
    "GradingEngine",
    "QuestionRepository",
    "ResponseStore",
]
