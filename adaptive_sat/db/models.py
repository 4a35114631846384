"""SQLAlchemy database models."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class ExamDB(Base):
    """Exam database model. Owned by the platform, read-only to the core."""

    __tablename__ = "exams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class QuestionDB(Base):
    """Question database model."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    exam_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exams.id"), nullable=False, index=True
    )
    module: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    difficulty: Mapped[int] = mapped_column(Integer, default=3)
    skill_category: Mapped[str] = mapped_column(String(100), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_data: Mapped[str] = mapped_column(Text, default="{}")  # JSON
    options: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    correct_answer: Mapped[str] = mapped_column(String(10), nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class TestSessionDB(Base):
    """Adaptive test session database model."""

    __tablename__ = "test_sessions"
    __test__ = False  # not a pytest test class

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    exam_id: Mapped[str] = mapped_column(String(36), ForeignKey("exams.id"), nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="in_progress")
    current_module: Mapped[str | None] = mapped_column(String(30), nullable=True)
    time_remaining: Mapped[int] = mapped_column(Integer, default=0)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Raw module percentages (0-100)
    module1_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rw2_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    math1_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    math2_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Adaptive routing decisions
    module2_difficulty: Mapped[str | None] = mapped_column(String(10), nullable=True)
    math2_difficulty: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Scaled scores
    rw_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    math_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_score: Mapped[int | None] = mapped_column(Integer, nullable=True)


class ResponseDB(Base):
    """One test-taker response per (session, question)."""

    __tablename__ = "responses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("test_sessions.id"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("questions.id"), nullable=False
    )
    user_answer: Mapped[str | None] = mapped_column(String(10), nullable=True)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)
    sequence_number: Mapped[int] = mapped_column(Integer, default=0)
    is_flagged: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_response_session_question"),
    )
