"""Database layer for the adaptive SAT core."""

from .database import get_db, init_db, async_session
from .models import Base, ExamDB, QuestionDB, TestSessionDB, ResponseDB

__all__ = [
    "get_db",
    "init_db",
    "async_session",
    "Base",
    "ExamDB",
    "QuestionDB",
    "TestSessionDB",
    "ResponseDB",
]
